from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..core.constants import ATTENDANCE_REASON
from ..db import models
from ..db.session import atomic
from . import credit_ledger, occupancy
from .audit_service import Actor, SYSTEM
from .errors import InvalidRequestError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

ATTENDANCE_STATUSES = (
    models.ReservationStatus.confirmed,
    models.ReservationStatus.checked_in,
    models.ReservationStatus.completed,
    models.ReservationStatus.no_show,
)


@dataclass(slots=True)
class AttendanceResult:
    reservation: models.Reservation
    previous_status: models.ReservationStatus
    credit_delta: int = 0
    used_credits_before: int | None = None
    used_credits_after: int | None = None


@dataclass(slots=True)
class ClassRoster:
    studio_class: models.StudioClass
    reservations: list[models.Reservation]
    summary: dict[str, int] = field(default_factory=dict)


def _ensure_owner(studio_class: models.StudioClass, instructor_id: int | None) -> None:
    if instructor_id is not None and studio_class.instructor_id != instructor_id:
        raise PermissionDeniedError("You can only manage attendance for your own classes")


def set_attendance(
    db: Session,
    *,
    reservation_id: int,
    status: models.ReservationStatus,
    progress_notes: str | None = None,
    instructor_id: int | None = None,
    actor: Actor = SYSTEM,
) -> AttendanceResult:
    """Record an attendance outcome and move the package balance with it.

    Entering CHECKED_IN or COMPLETED from any other status consumes a credit,
    leaving them returns one. The reservation and the package change in the
    same transaction. Moving a NO_SHOW or COMPLETED reservation back to
    CONFIRMED or CHECKED_IN needs a free place in its frame size.
    ``instructor_id`` limits the call to that instructor's classes.
    """

    if status not in ATTENDANCE_STATUSES:
        allowed = ", ".join(item.value for item in ATTENDANCE_STATUSES)
        raise InvalidRequestError(f"Invalid attendance status. Allowed: {allowed}")

    with atomic(db):
        reservation, studio_class = occupancy.lock_reservation(db, reservation_id)
        _ensure_owner(studio_class, instructor_id)
        if reservation.status == models.ReservationStatus.cancelled:
            raise InvalidRequestError("Cannot record attendance for a cancelled reservation")
        occupancy.ensure_room_for(db, studio_class, reservation, status)

        result = AttendanceResult(reservation=reservation, previous_status=reservation.status)
        reservation.status = status
        if status == models.ReservationStatus.checked_in:
            reservation.checked_in_at = occupancy.utc_now()
        if progress_notes is not None:
            reservation.notes = progress_notes.strip() or None

        if reservation.package_id is not None:
            package = credit_ledger.lock_package(db, reservation.package_id)
            result.used_credits_before = package.used_credits
            result.credit_delta = credit_ledger.reconcile(
                db,
                package,
                result.previous_status,
                status,
                reason=ATTENDANCE_REASON,
                actor=actor,
                context={"reservation_id": reservation.id, "class_id": reservation.class_id},
            )
            result.used_credits_after = package.used_credits
        occupancy.refresh_class_status(db, studio_class)

    logger.info(
        "Attendance updated",
        extra={
            "reservation_id": reservation_id,
            "old_status": result.previous_status.value,
            "new_status": status.value,
            "credit_delta": result.credit_delta,
        },
    )
    return result


def class_roster(db: Session, class_id: int, *, instructor_id: int | None = None) -> ClassRoster:
    studio_class = db.get(models.StudioClass, class_id)
    if studio_class is None:
        raise NotFoundError("Class not found")
    _ensure_owner(studio_class, instructor_id)
    reservations = list(
        db.scalars(
            select(models.Reservation)
            .where(
                models.Reservation.class_id == class_id,
                models.Reservation.status != models.ReservationStatus.cancelled,
            )
            .options(selectinload(models.Reservation.user), selectinload(models.Reservation.package))
            .order_by(models.Reservation.reserved_at, models.Reservation.id)
        )
    )
    counts = Counter(reservation.status.value for reservation in reservations)
    summary = {item.value: counts.get(item.value, 0) for item in ATTENDANCE_STATUSES}
    summary["total"] = len(reservations)
    return ClassRoster(studio_class=studio_class, reservations=reservations, summary=summary)


__all__ = ["ATTENDANCE_STATUSES", "AttendanceResult", "ClassRoster", "class_roster", "set_attendance"]
