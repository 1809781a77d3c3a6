from . import (
    attendance_service,
    credit_ledger,
    guest_booking_service,
    notification_service,
    package_service,
    payment_service,
    reservation_service,
    schedule_service,
    user_service,
    waitlist_service,
)
__all__ = [
    "attendance_service",
    "credit_ledger",
    "guest_booking_service",
    "notification_service",
    "package_service",
    "payment_service",
    "reservation_service",
    "schedule_service",
    "user_service",
    "waitlist_service",
]
