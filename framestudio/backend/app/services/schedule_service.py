from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..core.constants import CAPACITY_CHANGED, CLASS_CANCELLED, CLASS_CANCELLED_REASON, CLASS_COMPLETED
from ..db import models
from ..db.session import atomic
from . import occupancy, waitlist_service
from .audit_service import SYSTEM, Actor, log_action
from .capacity import CapacityResult, calculate_class_capacity
from .errors import ConflictError, InvalidRequestError, NotFoundError
from .notification_service import EmailNotification, build_class_cancellation
from .reservation_service import release_reservation

logger = logging.getLogger(__name__)

_FRAME_FIELDS = ("small_frame_capacity", "medium_frame_capacity", "large_frame_capacity")


def _class_query():
    return select(models.StudioClass).options(
        selectinload(models.StudioClass.class_type),
        selectinload(models.StudioClass.instructor),
    )


def _annotate(studio_class: models.StudioClass, capacity: CapacityResult) -> models.StudioClass:
    setattr(studio_class, "booked", capacity.distribution.total)
    setattr(studio_class, "available_spots", capacity.available_spots)
    setattr(studio_class, "frame_availability", frame_rows(studio_class, capacity))
    return studio_class


def frame_rows(studio_class: models.StudioClass, capacity: CapacityResult) -> list[dict[str, Any]]:
    capacities = studio_class.frame_capacities
    return [
        {
            "frame_size": size.value,
            "capacity": capacities[size.value],
            "booked": capacity.distribution.count(size),
            "available": capacity.available[size.value],
        }
        for size in models.FrameSize
    ]


def list_classes(
    db: Session,
    *,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    class_type_id: int | None = None,
    instructor_id: int | None = None,
    bookable_only: bool = False,
) -> list[models.StudioClass]:
    stmt = _class_query()
    if from_dt:
        stmt = stmt.where(models.StudioClass.starts_at >= from_dt)
    if to_dt:
        stmt = stmt.where(models.StudioClass.starts_at <= to_dt)
    if class_type_id:
        stmt = stmt.where(models.StudioClass.class_type_id == class_type_id)
    if instructor_id:
        stmt = stmt.where(models.StudioClass.instructor_id == instructor_id)
    if bookable_only:
        stmt = stmt.where(
            models.StudioClass.status.in_([models.ClassStatus.scheduled, models.ClassStatus.full])
        )
    classes = list(db.scalars(stmt.order_by(models.StudioClass.starts_at)))
    class_ids = [item.id for item in classes]
    sizes: dict[int, list[models.FrameSize]] = defaultdict(list)
    if class_ids:
        rows = db.execute(
            select(models.Reservation.class_id, models.Reservation.frame_size).where(
                models.Reservation.class_id.in_(class_ids),
                models.Reservation.status.in_(models.ACTIVE_RESERVATION_STATUSES),
            )
        ).all()
        for class_id, frame_size in rows:
            sizes[class_id].append(frame_size)
    for studio_class in classes:
        capacity = calculate_class_capacity(
            sizes[studio_class.id], studio_class.frame_capacities, None, studio_class.capacity
        )
        _annotate(studio_class, capacity)
    return classes


def get_class(db: Session, class_id: int) -> models.StudioClass:
    studio_class = db.execute(_class_query().where(models.StudioClass.id == class_id)).scalar_one_or_none()
    if studio_class is None:
        raise NotFoundError("Class not found")
    return _annotate(studio_class, occupancy.check_capacity(db, studio_class))


def frame_availability(db: Session, class_id: int) -> dict[str, Any]:
    studio_class = get_class(db, class_id)
    return {
        "class_id": studio_class.id,
        "status": studio_class.status,
        "capacity": studio_class.capacity,
        "booked": studio_class.booked,
        "available_spots": studio_class.available_spots,
        "frames": studio_class.frame_availability,
    }


def _validate_people(
    db: Session, *, class_type_id: int | None = None, instructor_id: int | None = None
) -> models.ClassType | None:
    class_type = None
    if class_type_id is not None:
        class_type = db.get(models.ClassType, class_type_id)
        if class_type is None:
            raise NotFoundError("Class type not found")
    if instructor_id is not None:
        instructor = db.get(models.User, instructor_id)
        if instructor is None or instructor.role not in (models.UserRole.instructor, models.UserRole.admin):
            raise InvalidRequestError("Instructor not found")
    return class_type


def create_class(db: Session, *, actor: Actor = SYSTEM, **fields: Any) -> models.StudioClass:
    with atomic(db):
        class_type = _validate_people(
            db, class_type_id=fields.get("class_type_id"), instructor_id=fields.get("instructor_id")
        )
        if fields.get("ends_at") is None:
            fields["ends_at"] = fields["starts_at"] + timedelta(minutes=class_type.duration_min or 120)
        if fields["ends_at"] <= fields["starts_at"]:
            raise InvalidRequestError("Class must end after it starts")
        for name in _FRAME_FIELDS:
            if fields.get(name) is None:
                fields.pop(name, None)
        studio_class = models.StudioClass(**fields)
        db.add(studio_class)
        db.flush()
    logger.info("Class created", extra={"class_id": studio_class.id, "actor_id": actor.id})
    return get_class(db, studio_class.id)


def update_class(db: Session, class_id: int, *, actor: Actor = SYSTEM, **changes: Any) -> models.StudioClass:
    """Edit schedule fields. Capacity changes go through :func:`change_capacity`."""

    changes.pop("capacity", None)
    with atomic(db):
        studio_class = occupancy.lock_class(db, class_id)
        if studio_class.status == models.ClassStatus.cancelled:
            raise InvalidRequestError("Cancelled classes cannot be edited")
        _validate_people(
            db, class_type_id=changes.get("class_type_id"), instructor_id=changes.get("instructor_id")
        )
        for key, value in changes.items():
            setattr(studio_class, key, value)
        if studio_class.ends_at and occupancy.as_utc(studio_class.ends_at) <= occupancy.as_utc(studio_class.starts_at):
            raise InvalidRequestError("Class must end after it starts")
        if any(name in changes for name in _FRAME_FIELDS):
            distribution = occupancy.check_capacity(db, studio_class).distribution
            capacities = studio_class.frame_capacities
            for size in models.FrameSize:
                booked = distribution.count(size)
                if capacities[size.value] < booked:
                    raise ConflictError(
                        f"Cannot reduce {size.value} frames to {capacities[size.value]}: "
                        f"{booked} students are already booked"
                    )
            waitlist_service.fill_open_spots(db, studio_class, actor=actor)
    return get_class(db, class_id)


def change_capacity(
    db: Session, class_id: int, capacity: int, *, actor: Actor = SYSTEM
) -> tuple[models.StudioClass, list[models.Reservation]]:
    """Resize a class; freed places are handed to the waitlist in priority order."""

    if capacity <= 0:
        raise InvalidRequestError("Capacity must be positive")
    with atomic(db):
        studio_class = occupancy.lock_class(db, class_id)
        if studio_class.status == models.ClassStatus.cancelled:
            raise InvalidRequestError("Cannot change capacity of a cancelled class")
        booked = occupancy.count_active(db, class_id)
        if capacity < booked:
            raise ConflictError(
                f"Cannot reduce capacity to {capacity}: {booked} students are already booked"
            )
        old_capacity = studio_class.capacity
        studio_class.capacity = capacity
        log_action(
            db,
            action=CAPACITY_CHANGED,
            actor=actor,
            table_name="classes",
            record_id=class_id,
            old_values={"capacity": old_capacity},
            new_values={"capacity": capacity, "booked": booked},
        )
        promoted: list[models.Reservation] = []
        if capacity > old_capacity:
            promoted = waitlist_service.fill_open_spots(db, studio_class, actor=actor)
        else:
            occupancy.refresh_class_status(db, studio_class)
    logger.info(
        "Class capacity changed",
        extra={"class_id": class_id, "from": old_capacity, "to": capacity, "promoted": len(promoted)},
    )
    return get_class(db, class_id), promoted


def cancel_class(
    db: Session, class_id: int, *, actor: Actor = SYSTEM
) -> tuple[models.StudioClass, list[EmailNotification]]:
    """Cancel a class, its reservations and its waitlist, returning credits.

    Returns the class and the emails to send to the affected students.
    """

    notifications: list[EmailNotification] = []
    with atomic(db):
        studio_class = occupancy.lock_class(db, class_id)
        if studio_class.status == models.ClassStatus.cancelled:
            return get_class(db, class_id), notifications
        old_status = studio_class.status
        studio_class.status = models.ClassStatus.cancelled
        reservations = list(
            db.scalars(
                select(models.Reservation)
                .where(
                    models.Reservation.class_id == class_id,
                    models.Reservation.status.in_(models.ACTIVE_RESERVATION_STATUSES),
                )
                .options(selectinload(models.Reservation.user))
            )
        )
        class_name = studio_class.class_type.name if studio_class.class_type else None
        for reservation in reservations:
            outcome = release_reservation(
                db,
                reservation,
                studio_class,
                reason=CLASS_CANCELLED_REASON,
                restore_credits=True,
                promote=False,
                actor=actor,
            )
            notifications.append(
                build_class_cancellation(
                    email=reservation.user.email,
                    class_name=class_name,
                    starts_at=occupancy.as_utc(studio_class.starts_at),
                    credit_restored=outcome.credit_restored,
                )
            )
        waitlisted = len(studio_class.waitlist)
        studio_class.waitlist.clear()
        log_action(
            db,
            action=CLASS_CANCELLED,
            actor=actor,
            table_name="classes",
            record_id=class_id,
            old_values={"status": old_status.value},
            new_values={
                "status": studio_class.status.value,
                "reservations_cancelled": len(reservations),
                "waitlist_cleared": waitlisted,
            },
        )
    logger.info(
        "Class cancelled",
        extra={"class_id": class_id, "reservations": len(reservations), "waitlist": waitlisted},
    )
    return get_class(db, class_id), notifications


@dataclass(slots=True)
class CompletionSummary:
    studio_class: models.StudioClass
    completed: list[models.Reservation] = field(default_factory=list)
    no_show: list[models.Reservation] = field(default_factory=list)
    not_checked_in: list[models.Reservation] = field(default_factory=list)


def complete_class(
    db: Session, class_id: int, *, notes: str | None = None, actor: Actor = SYSTEM
) -> CompletionSummary:
    """Close a class that has started: checked-in students become COMPLETED.

    Confirmed reservations nobody checked in are left as they are and reported.
    """

    with atomic(db):
        studio_class = occupancy.lock_class(db, class_id)
        if studio_class.status == models.ClassStatus.completed:
            raise InvalidRequestError("Class is already completed")
        if studio_class.status == models.ClassStatus.cancelled:
            raise InvalidRequestError("Cannot complete a cancelled class")
        now = occupancy.utc_now()
        if occupancy.as_utc(studio_class.starts_at) > now:
            raise InvalidRequestError("Class has not started yet")
        reservations = list(
            db.scalars(
                select(models.Reservation)
                .where(
                    models.Reservation.class_id == class_id,
                    models.Reservation.status != models.ReservationStatus.cancelled,
                )
                .options(selectinload(models.Reservation.user))
                .order_by(models.Reservation.id)
            )
        )
        summary = CompletionSummary(studio_class=studio_class)
        for reservation in reservations:
            if reservation.status == models.ReservationStatus.checked_in:
                summary.completed.append(reservation)
            elif reservation.status == models.ReservationStatus.no_show:
                summary.no_show.append(reservation)
            elif reservation.status == models.ReservationStatus.confirmed:
                summary.not_checked_in.append(reservation)
        if not summary.completed:
            raise InvalidRequestError(
                "No students are checked in. Mark students as checked in before completing the class."
            )
        # checked-in students already paid their credit
        for reservation in summary.completed:
            reservation.status = models.ReservationStatus.completed
        old_status = studio_class.status
        studio_class.status = models.ClassStatus.completed
        if notes and notes.strip():
            studio_class.notes = (
                f"{studio_class.notes or ''}\n\n--- Completion notes ({now.date().isoformat()}) ---\n"
                f"{notes.strip()}"
            )
        log_action(
            db,
            action=CLASS_COMPLETED,
            actor=actor,
            table_name="classes",
            record_id=class_id,
            old_values={"status": old_status.value},
            new_values={
                "status": studio_class.status.value,
                "completed": len(summary.completed),
                "no_show": len(summary.no_show),
                "not_checked_in": len(summary.not_checked_in),
            },
        )
    logger.info(
        "Class completed",
        extra={"class_id": class_id, "completed": len(summary.completed), "no_show": len(summary.no_show)},
    )
    summary.studio_class = get_class(db, class_id)
    return summary


def count_classes(db: Session) -> int:
    return db.scalar(select(func.count(models.StudioClass.id))) or 0


__all__ = [
    "CompletionSummary",
    "cancel_class",
    "change_capacity",
    "complete_class",
    "count_classes",
    "create_class",
    "frame_availability",
    "frame_rows",
    "get_class",
    "list_classes",
    "update_class",
]
