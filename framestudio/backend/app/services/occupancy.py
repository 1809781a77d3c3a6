from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db import models
from .capacity import CapacityResult, calculate_class_capacity
from .errors import ConflictError, NotFoundError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def lock_class(db: Session, class_id: int) -> models.StudioClass:
    """Load the class row with ``FOR UPDATE`` so bookings for it run one at a time."""

    db.flush()
    studio_class = db.execute(
        select(models.StudioClass)
        .where(models.StudioClass.id == class_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if studio_class is None:
        raise NotFoundError("Class not found")
    db.expire(studio_class, ["waitlist", "reservations"])
    return studio_class


def lock_reservation(db: Session, reservation_id: int) -> tuple[models.Reservation, models.StudioClass]:
    """Lock the class a reservation belongs to, then reload the reservation."""

    class_id = db.scalar(
        select(models.Reservation.class_id).where(models.Reservation.id == reservation_id)
    )
    if class_id is None:
        raise NotFoundError("Reservation not found")
    studio_class = lock_class(db, class_id)
    reservation = db.execute(
        select(models.Reservation)
        .where(models.Reservation.id == reservation_id)
        .execution_options(populate_existing=True)
    ).scalar_one()
    return reservation, studio_class


def active_frame_sizes(db: Session, class_id: int) -> list[models.FrameSize]:
    db.flush()
    return list(
        db.scalars(
            select(models.Reservation.frame_size).where(
                models.Reservation.class_id == class_id,
                models.Reservation.status.in_(models.ACTIVE_RESERVATION_STATUSES),
            )
        )
    )


def count_active(db: Session, class_id: int) -> int:
    db.flush()
    return db.scalar(
        select(func.count(models.Reservation.id)).where(
            models.Reservation.class_id == class_id,
            models.Reservation.status.in_(models.ACTIVE_RESERVATION_STATUSES),
        )
    ) or 0


def check_capacity(
    db: Session,
    studio_class: models.StudioClass,
    frame_size: models.FrameSize | None = None,
) -> CapacityResult:
    return calculate_class_capacity(
        active_frame_sizes(db, studio_class.id),
        studio_class.frame_capacities,
        frame_size,
        studio_class.capacity,
    )


def refresh_class_status(db: Session, studio_class: models.StudioClass) -> models.ClassStatus:
    if studio_class.status in (models.ClassStatus.cancelled, models.ClassStatus.completed):
        return studio_class.status
    booked = count_active(db, studio_class.id)
    if booked >= studio_class.capacity:
        studio_class.status = models.ClassStatus.full
    elif studio_class.status == models.ClassStatus.full:
        studio_class.status = models.ClassStatus.scheduled
    return studio_class.status


def ensure_room_for(
    db: Session,
    studio_class: models.StudioClass,
    reservation: models.Reservation,
    status: models.ReservationStatus,
) -> None:
    """Reject putting an inactive reservation back on the roster of a full class.

    Call before the status changes.
    """

    if reservation.status in models.ACTIVE_RESERVATION_STATUSES:
        return
    if status not in models.ACTIVE_RESERVATION_STATUSES:
        return
    capacity = check_capacity(db, studio_class, reservation.frame_size)
    if not capacity.has_capacity:
        raise ConflictError(capacity.message or "No capacity left for this reservation")


def find_reservation(db: Session, class_id: int, user_id: int) -> models.Reservation | None:
    return db.execute(
        select(models.Reservation).where(
            models.Reservation.class_id == class_id,
            models.Reservation.user_id == user_id,
        )
    ).scalar_one_or_none()


def find_active_reservation(db: Session, class_id: int, user_id: int) -> models.Reservation | None:
    reservation = find_reservation(db, class_id, user_id)
    if reservation and reservation.status != models.ReservationStatus.cancelled:
        return reservation
    return None


def place_reservation(
    db: Session,
    studio_class: models.StudioClass,
    *,
    user_id: int,
    frame_size: models.FrameSize,
    package_id: int | None = None,
    notes: str | None = None,
) -> models.Reservation:
    """Insert a CONFIRMED reservation, reusing a cancelled row for the same student."""

    db.flush()
    reservation = find_reservation(db, studio_class.id, user_id)
    if reservation and reservation.status != models.ReservationStatus.cancelled:
        raise ConflictError("User already has a reservation for this class")
    if reservation is None:
        reservation = models.Reservation(user_id=user_id, class_id=studio_class.id)
        db.add(reservation)
    reservation.status = models.ReservationStatus.confirmed
    reservation.frame_size = frame_size
    reservation.package_id = package_id
    reservation.reserved_at = utc_now()
    reservation.checked_in_at = None
    reservation.cancelled_at = None
    reservation.cancellation_reason = None
    reservation.notes = notes
    db.flush()
    return reservation


__all__ = [
    "active_frame_sizes",
    "as_utc",
    "check_capacity",
    "count_active",
    "ensure_room_for",
    "find_active_reservation",
    "find_reservation",
    "lock_class",
    "lock_reservation",
    "place_reservation",
    "refresh_class_status",
    "utc_now",
]
