from datetime import datetime, timedelta, timezone

from app.db import models

_counter = {"user": 0, "class_type": 0}


def create_user(session, role=models.UserRole.student, email=None, first_name="Test"):
    _counter["user"] += 1
    user = models.User(
        email=email or f"user{_counter['user']}@example.com",
        first_name=first_name,
        last_name=f"User{_counter['user']}",
        password_hash="not-a-real-hash",
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def create_class(
    session,
    *,
    capacity=6,
    small=None,
    medium=None,
    large=None,
    starts_in=timedelta(days=2),
    instructor=None,
    price=450,
):
    _counter["class_type"] += 1
    class_type = models.ClassType(name=f"Workshop {_counter['class_type']}", default_price=price)
    session.add(class_type)
    session.commit()
    starts_at = datetime.now(timezone.utc) + starts_in
    studio_class = models.StudioClass(
        class_type_id=class_type.id,
        instructor_id=instructor.id if instructor else None,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(hours=2),
        capacity=capacity,
        small_frame_capacity=small,
        medium_frame_capacity=medium,
        large_frame_capacity=large,
    )
    session.add(studio_class)
    session.commit()
    session.refresh(studio_class)
    return studio_class


def create_package(
    session,
    user,
    *,
    total=4,
    used=0,
    status=models.PackageStatus.active,
    expires_in=timedelta(days=30),
):
    package = models.Package(
        user_id=user.id,
        name=f"{total} classes",
        total_credits=total,
        used_credits=used,
        status=status,
        price=1000,
        purchased_at=datetime.now(timezone.utc),
        expires_at=datetime.now(timezone.utc) + expires_in,
    )
    session.add(package)
    session.commit()
    session.refresh(package)
    return package


def create_reservation(
    session,
    user,
    studio_class,
    *,
    package=None,
    frame_size=models.FrameSize.medium,
    status=models.ReservationStatus.confirmed,
):
    reservation = models.Reservation(
        user_id=user.id,
        class_id=studio_class.id,
        package_id=package.id if package else None,
        frame_size=frame_size,
        status=status,
    )
    session.add(reservation)
    session.commit()
    session.refresh(reservation)
    return reservation
