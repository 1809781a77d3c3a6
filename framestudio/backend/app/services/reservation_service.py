"""Booking, cancellation and admin edits of reservations.

Every public entry point runs as one transaction that starts by locking the
class row, so the capacity check and the insert that depends on it cannot
interleave with another booking for the same class.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Literal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..core.constants import (
    RESCHEDULED_REASON,
    RESERVATION_CANCELLED,
    RESERVATION_CANCELLED_REASON,
    RESERVATION_CREATED_REASON,
    RESERVATION_DELETED,
    RESERVATION_DELETED_REASON,
    RESERVATION_RESCHEDULED,
    RESERVATION_UPDATED_REASON,
)
from ..db import models
from ..db.session import atomic
from . import credit_ledger, occupancy, waitlist_service
from .audit_service import SYSTEM, Actor, log_action
from .capacity import CapacityResult
from .errors import ConflictError, InvalidRequestError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

_DUPLICATE_CONSTRAINTS = ("uq_reservation_user_class", "uq_waitlist_user_class")


@dataclass(slots=True)
class BookingOutcome:
    kind: Literal["created", "waitlisted", "override_required"]
    capacity: CapacityResult
    booked: int
    class_capacity: int
    reservation: models.Reservation | None = None
    waitlist_entry: models.WaitlistEntry | None = None
    class_status: models.ClassStatus | None = None


@dataclass(slots=True)
class CancellationOutcome:
    reservation: models.Reservation
    credit_restored: bool = False
    promoted: list[models.Reservation] = field(default_factory=list)


@dataclass(slots=True)
class RescheduleOutcome:
    previous: models.Reservation
    reservation: models.Reservation
    credit_transferred: bool = False
    promoted: list[models.Reservation] = field(default_factory=list)


def _is_duplicate(exc: IntegrityError) -> bool:
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", None) or ""
    if constraint in _DUPLICATE_CONSTRAINTS:
        return True
    # SQLite reports the columns instead of the constraint name
    message = str(exc.orig)
    return "UNIQUE" in message and "user_id" in message and "class_id" in message


def create_reservation(
    db: Session,
    *,
    class_id: int,
    user_id: int,
    frame_size: models.FrameSize,
    package_id: int | None = None,
    force_override: bool = False,
    is_admin: bool = False,
    notes: str | None = None,
    actor: Actor = SYSTEM,
) -> BookingOutcome:
    try:
        with atomic(db):
            outcome = _create(
                db,
                class_id=class_id,
                user_id=user_id,
                frame_size=frame_size,
                package_id=package_id,
                force_override=force_override,
                is_admin=is_admin,
                notes=notes,
                actor=actor,
            )
    except IntegrityError as exc:
        if _is_duplicate(exc):
            raise ConflictError("User already has a reservation for this class") from exc
        raise
    return outcome


def _create(
    db: Session,
    *,
    class_id: int,
    user_id: int,
    frame_size: models.FrameSize,
    package_id: int | None,
    force_override: bool,
    is_admin: bool,
    notes: str | None,
    actor: Actor,
) -> BookingOutcome:
    if db.get(models.User, user_id) is None:
        raise NotFoundError("Student not found")
    studio_class = occupancy.lock_class(db, class_id)
    if studio_class.status in (models.ClassStatus.cancelled, models.ClassStatus.completed):
        raise InvalidRequestError(f"Class is {studio_class.status.value} and cannot be booked")
    if not is_admin and occupancy.as_utc(studio_class.starts_at) <= occupancy.utc_now():
        raise InvalidRequestError("Class has already started")
    if occupancy.find_active_reservation(db, class_id, user_id):
        raise ConflictError("User already has a reservation for this class")
    if any(entry.user_id == user_id for entry in studio_class.waitlist):
        raise ConflictError("User is already on the waitlist for this class")

    package = None
    if package_id is not None:
        package = credit_ledger.lock_package(db, package_id)
        credit_ledger.ensure_usable(package, user_id=user_id)

    capacity = occupancy.check_capacity(db, studio_class, frame_size)
    booked = capacity.distribution.total
    if not capacity.has_capacity:
        if is_admin and not force_override:
            return BookingOutcome(
                kind="override_required",
                capacity=capacity,
                booked=booked,
                class_capacity=studio_class.capacity,
                class_status=studio_class.status,
            )
        if not is_admin:
            entry = waitlist_service.enqueue(db, studio_class, user_id=user_id, frame_size=frame_size)
            logger.info(
                "Class full, student waitlisted",
                extra={"class_id": class_id, "user_id": user_id, "priority": entry.priority},
            )
            return BookingOutcome(
                kind="waitlisted",
                capacity=capacity,
                booked=booked,
                class_capacity=studio_class.capacity,
                waitlist_entry=entry,
                class_status=studio_class.status,
            )
        logger.warning(
            "Admin override past capacity",
            extra={"class_id": class_id, "user_id": user_id, "frame_size": frame_size.value},
        )

    reservation = occupancy.place_reservation(
        db,
        studio_class,
        user_id=user_id,
        frame_size=frame_size,
        package_id=package.id if package else None,
        notes=notes,
    )
    status = occupancy.refresh_class_status(db, studio_class)
    if package is not None:
        credit_ledger.consume(
            db,
            package,
            reason=RESERVATION_CREATED_REASON,
            actor=actor,
            context={"reservation_id": reservation.id, "class_id": class_id},
        )
    logger.info(
        "Reservation created",
        extra={"reservation_id": reservation.id, "class_id": class_id, "user_id": user_id},
    )
    return BookingOutcome(
        kind="created",
        capacity=capacity,
        booked=booked + 1,
        class_capacity=studio_class.capacity,
        reservation=reservation,
        class_status=status,
    )


def _check_cancellation_window(studio_class: models.StudioClass, action: str = "cancelled") -> None:
    hours = get_settings().cancellation_window_hours
    starts_at = occupancy.as_utc(studio_class.starts_at)
    if starts_at - occupancy.utc_now() < timedelta(hours=hours):
        raise InvalidRequestError(
            f"Reservations can only be {action} at least {hours} hours before the class starts"
        )


def _restore_credit(
    db: Session,
    reservation: models.Reservation,
    *,
    reason: str,
    actor: Actor,
) -> bool:
    if reservation.package_id is None:
        return False
    package = credit_ledger.lock_package(db, reservation.package_id)
    delta = credit_ledger.restore(
        db,
        package,
        reason=reason,
        actor=actor,
        context={"reservation_id": reservation.id, "class_id": reservation.class_id},
    )
    return delta != 0


def release_reservation(
    db: Session,
    reservation: models.Reservation,
    studio_class: models.StudioClass,
    *,
    reason: str | None,
    restore_credits: bool,
    promote: bool = True,
    actor: Actor = SYSTEM,
) -> CancellationOutcome:
    """Cancel ``reservation`` inside the caller's transaction.

    The class must already be locked. A freed place goes to the waitlist
    unless ``promote`` is off.
    """

    old_status = reservation.status
    was_active = old_status in models.ACTIVE_RESERVATION_STATUSES
    reservation.status = models.ReservationStatus.cancelled
    reservation.cancelled_at = occupancy.utc_now()
    reservation.cancellation_reason = reason
    outcome = CancellationOutcome(reservation=reservation)
    if restore_credits:
        outcome.credit_restored = _restore_credit(
            db, reservation, reason=RESERVATION_CANCELLED_REASON, actor=actor
        )
    log_action(
        db,
        action=RESERVATION_CANCELLED,
        actor=actor,
        table_name="reservations",
        record_id=reservation.id,
        old_values={"status": old_status.value},
        new_values={
            "status": reservation.status.value,
            "reason": reason,
            "credit_restored": outcome.credit_restored,
        },
    )
    if was_active and promote:
        promoted = waitlist_service.promote_next(db, studio_class, actor=actor)
        if promoted is not None:
            outcome.promoted.append(promoted)
    else:
        occupancy.refresh_class_status(db, studio_class)
    return outcome


def cancel_reservation(
    db: Session,
    reservation_id: int,
    *,
    reason: str | None = None,
    notes: str | None = None,
    restore_credits: bool = True,
    policy_override: bool = False,
    enforce_window: bool = False,
    user_id: int | None = None,
    actor: Actor = SYSTEM,
) -> CancellationOutcome:
    """Cancel a reservation and hand its place to the waitlist.

    ``enforce_window`` applies the student self-service rule: the class has to
    start at least ``CANCELLATION_WINDOW_HOURS`` from now unless
    ``policy_override`` is set. ``user_id`` restricts the call to the owner of
    the reservation.
    """

    with atomic(db):
        reservation, studio_class = occupancy.lock_reservation(db, reservation_id)
        if user_id is not None and reservation.user_id != user_id:
            raise PermissionDeniedError("Not allowed to cancel this reservation")
        if reservation.status == models.ReservationStatus.cancelled:
            raise InvalidRequestError("Reservation is already cancelled")
        if enforce_window and not policy_override:
            _check_cancellation_window(studio_class)
        if notes is not None:
            reservation.notes = notes.strip() or None
        outcome = release_reservation(
            db,
            reservation,
            studio_class,
            reason=reason or RESERVATION_CANCELLED_REASON,
            restore_credits=restore_credits,
            actor=actor,
        )
    logger.info(
        "Reservation cancelled",
        extra={
            "reservation_id": reservation_id,
            "class_id": studio_class.id,
            "promoted": [item.id for item in outcome.promoted],
        },
    )
    return outcome


def delete_reservation(
    db: Session,
    reservation_id: int,
    *,
    restore_credits: bool = True,
    actor: Actor = SYSTEM,
) -> CancellationOutcome:
    with atomic(db):
        reservation, studio_class = occupancy.lock_reservation(db, reservation_id)
        was_active = reservation.status in models.ACTIVE_RESERVATION_STATUSES
        outcome = CancellationOutcome(reservation=reservation)
        # a cancelled reservation has had its credit returned already
        if restore_credits and reservation.status != models.ReservationStatus.cancelled:
            outcome.credit_restored = _restore_credit(
                db, reservation, reason=RESERVATION_DELETED_REASON, actor=actor
            )
        log_action(
            db,
            action=RESERVATION_DELETED,
            actor=actor,
            table_name="reservations",
            record_id=reservation.id,
            old_values={
                "status": reservation.status.value,
                "user_id": reservation.user_id,
                "class_id": reservation.class_id,
                "package_id": reservation.package_id,
            },
            new_values={"credit_restored": outcome.credit_restored},
        )
        db.delete(reservation)
        db.flush()
        if was_active:
            promoted = waitlist_service.promote_next(db, studio_class, actor=actor)
            if promoted is not None:
                outcome.promoted.append(promoted)
        else:
            occupancy.refresh_class_status(db, studio_class)
    logger.info("Reservation deleted", extra={"reservation_id": reservation_id})
    return outcome


def update_reservation(
    db: Session,
    reservation_id: int,
    *,
    status: models.ReservationStatus | None = None,
    notes: str | None = None,
    cancellation_reason: str | None = None,
    restore_credits: bool = True,
    policy_override: bool = False,
    actor: Actor = SYSTEM,
) -> CancellationOutcome:
    if status == models.ReservationStatus.cancelled:
        return cancel_reservation(
            db,
            reservation_id,
            reason=cancellation_reason,
            notes=notes,
            restore_credits=restore_credits,
            policy_override=policy_override,
            actor=actor,
        )

    with atomic(db):
        reservation, studio_class = occupancy.lock_reservation(db, reservation_id)
        if notes is not None:
            reservation.notes = notes.strip() or None
        if status is not None and status != reservation.status:
            old_status = reservation.status
            reactivated = old_status == models.ReservationStatus.cancelled
            occupancy.ensure_room_for(db, studio_class, reservation, status)
            if reactivated:
                reservation.cancelled_at = None
                reservation.cancellation_reason = None
            reservation.status = status
            if status == models.ReservationStatus.checked_in:
                reservation.checked_in_at = occupancy.utc_now()
            if reservation.package_id is not None:
                package = credit_ledger.lock_package(db, reservation.package_id)
                context = {"reservation_id": reservation.id, "class_id": studio_class.id}
                if reactivated:
                    credit_ledger.ensure_usable(package, user_id=reservation.user_id)
                    credit_ledger.consume(
                        db, package, reason=RESERVATION_CREATED_REASON, actor=actor, context=context
                    )
                credit_ledger.reconcile(
                    db,
                    package,
                    old_status,
                    status,
                    reason=RESERVATION_UPDATED_REASON,
                    actor=actor,
                    context=context,
                )
            occupancy.refresh_class_status(db, studio_class)
    return CancellationOutcome(reservation=reservation)


def reschedule_reservation(
    db: Session,
    reservation_id: int,
    new_class_id: int,
    *,
    user_id: int | None = None,
    actor: Actor = SYSTEM,
) -> RescheduleOutcome:
    """Move a confirmed reservation to another class, keeping its package credit.

    Both classes have to start outside the cancellation window. The place left
    behind goes to the old class's waitlist.
    """

    with atomic(db):
        old_class_id = db.scalar(
            select(models.Reservation.class_id).where(models.Reservation.id == reservation_id)
        )
        if old_class_id is None:
            raise NotFoundError("Reservation not found")
        if old_class_id == new_class_id:
            raise InvalidRequestError("Reservation is already for this class")
        # classes are always locked in id order
        locked = {class_id: occupancy.lock_class(db, class_id) for class_id in sorted((old_class_id, new_class_id))}
        old_class, new_class = locked[old_class_id], locked[new_class_id]
        reservation = db.execute(
            select(models.Reservation)
            .where(models.Reservation.id == reservation_id)
            .execution_options(populate_existing=True)
        ).scalar_one()

        if user_id is not None and reservation.user_id != user_id:
            raise PermissionDeniedError("Not allowed to reschedule this reservation")
        if reservation.status != models.ReservationStatus.confirmed:
            raise InvalidRequestError("Only confirmed reservations can be rescheduled")
        _check_cancellation_window(old_class, "rescheduled")
        if new_class.status in (models.ClassStatus.cancelled, models.ClassStatus.completed):
            raise InvalidRequestError(f"Class is {new_class.status.value} and cannot be booked")
        hours = get_settings().cancellation_window_hours
        if occupancy.as_utc(new_class.starts_at) - occupancy.utc_now() < timedelta(hours=hours):
            raise InvalidRequestError(f"Cannot reschedule to a class that starts within {hours} hours")
        if occupancy.find_active_reservation(db, new_class_id, reservation.user_id):
            raise ConflictError("You already have a reservation for this class")
        if any(entry.user_id == reservation.user_id for entry in new_class.waitlist):
            raise ConflictError("User is already on the waitlist for this class")
        if reservation.package_id is not None:
            package = db.get(models.Package, reservation.package_id)
            restricted_to = package.package_type.class_type_id if package.package_type else None
            if restricted_to is not None and restricted_to != new_class.class_type_id:
                raise InvalidRequestError("Your package is not valid for this class type")
        capacity = occupancy.check_capacity(db, new_class, reservation.frame_size)
        if not capacity.has_capacity:
            raise ConflictError(capacity.message or "The selected class is full")

        released = release_reservation(
            db,
            reservation,
            old_class,
            reason=RESCHEDULED_REASON,
            restore_credits=False,
            actor=actor,
        )
        moved = occupancy.place_reservation(
            db,
            new_class,
            user_id=reservation.user_id,
            frame_size=reservation.frame_size,
            package_id=reservation.package_id,
            notes=reservation.notes,
        )
        occupancy.refresh_class_status(db, new_class)
        log_action(
            db,
            action=RESERVATION_RESCHEDULED,
            actor=actor,
            table_name="reservations",
            record_id=moved.id,
            old_values={"reservation_id": reservation.id, "class_id": old_class_id},
            new_values={"class_id": new_class_id, "package_id": moved.package_id},
        )
    logger.info(
        "Reservation rescheduled",
        extra={"reservation_id": reservation_id, "from_class": old_class_id, "to_class": new_class_id},
    )
    return RescheduleOutcome(
        previous=reservation,
        reservation=moved,
        credit_transferred=moved.package_id is not None,
        promoted=released.promoted,
    )


def get_reservation(db: Session, reservation_id: int) -> models.Reservation:
    reservation = db.execute(
        select(models.Reservation)
        .where(models.Reservation.id == reservation_id)
        .options(
            selectinload(models.Reservation.user),
            selectinload(models.Reservation.package),
            selectinload(models.Reservation.studio_class).selectinload(models.StudioClass.class_type),
        )
    ).scalar_one_or_none()
    if reservation is None:
        raise NotFoundError("Reservation not found")
    return reservation


def list_reservations(
    db: Session,
    *,
    class_id: int | None = None,
    user_id: int | None = None,
    status: models.ReservationStatus | None = None,
    instructor_id: int | None = None,
) -> list[models.Reservation]:
    stmt = select(models.Reservation).options(
        selectinload(models.Reservation.user),
        selectinload(models.Reservation.package),
        selectinload(models.Reservation.studio_class).selectinload(models.StudioClass.class_type),
    )
    if class_id:
        stmt = stmt.where(models.Reservation.class_id == class_id)
    if user_id:
        stmt = stmt.where(models.Reservation.user_id == user_id)
    if status:
        stmt = stmt.where(models.Reservation.status == status)
    if instructor_id:
        stmt = stmt.join(models.Reservation.studio_class).where(
            models.StudioClass.instructor_id == instructor_id
        )
    stmt = stmt.order_by(models.Reservation.reserved_at.desc(), models.Reservation.id.desc())
    return list(db.scalars(stmt))


__all__ = [
    "BookingOutcome",
    "CancellationOutcome",
    "cancel_reservation",
    "create_reservation",
    "delete_reservation",
    "get_reservation",
    "list_reservations",
    "release_reservation",
    "reschedule_reservation",
    "RescheduleOutcome",
    "update_reservation",
]
