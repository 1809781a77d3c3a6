from . import (
    auth,
    classes,
    class_types,
    instructor,
    packages,
    payments,
    public,
    reservations,
    student,
    users,
    waitlist,
    misc,
)

__all__ = [
    "auth",
    "classes",
    "class_types",
    "instructor",
    "packages",
    "payments",
    "public",
    "reservations",
    "student",
    "users",
    "waitlist",
    "misc",
]
