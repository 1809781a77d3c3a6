"""Per-class waitlist.

``StudioClass.waitlist`` is an ordering list counted from 1: appending puts a
student at the tail and removing anyone renumbers the rest, so priorities
always form the sequence 1..n.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..core.constants import WAITLIST_PROMOTED, WAITLIST_PROMOTION_REASON
from ..db import models
from ..db.session import atomic
from . import credit_ledger, occupancy
from .audit_service import SYSTEM, Actor, log_action
from .errors import ConflictError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)


def enqueue(
    db: Session,
    studio_class: models.StudioClass,
    *,
    user_id: int,
    frame_size: models.FrameSize,
) -> models.WaitlistEntry:
    if any(entry.user_id == user_id for entry in studio_class.waitlist):
        raise ConflictError("User is already on the waitlist for this class")
    if occupancy.find_active_reservation(db, studio_class.id, user_id):
        raise ConflictError("User already has a reservation for this class")
    entry = models.WaitlistEntry(user_id=user_id, frame_size=frame_size)
    studio_class.waitlist.append(entry)
    db.flush()
    return entry


def _seat(
    db: Session,
    studio_class: models.StudioClass,
    entry: models.WaitlistEntry,
    *,
    actor: Actor,
    package_id: int | None = None,
) -> models.Reservation:
    user_id, frame_size, priority = entry.user_id, entry.frame_size, entry.priority
    studio_class.waitlist.remove(entry)
    reservation = occupancy.place_reservation(
        db,
        studio_class,
        user_id=user_id,
        frame_size=frame_size,
        package_id=package_id,
    )
    log_action(
        db,
        action=WAITLIST_PROMOTED,
        actor=actor,
        table_name="reservations",
        record_id=reservation.id,
        new_values={
            "class_id": studio_class.id,
            "user_id": user_id,
            "priority": priority,
            "frame_size": frame_size.value,
        },
    )
    logger.info(
        "Promoted waitlist entry",
        extra={"class_id": studio_class.id, "user_id": user_id, "reservation_id": reservation.id},
    )
    return reservation


def promote_next(
    db: Session,
    studio_class: models.StudioClass,
    *,
    actor: Actor = SYSTEM,
) -> models.Reservation | None:
    """Seat the highest-priority waiting student whose frame size still fits.

    With nobody to seat, only the FULL/SCHEDULED status of the class is
    brought back in line with its bookings.
    """

    for entry in list(studio_class.waitlist):
        if occupancy.find_active_reservation(db, studio_class.id, entry.user_id):
            logger.warning(
                "Dropping waitlist entry of an already booked student",
                extra={"class_id": studio_class.id, "user_id": entry.user_id},
            )
            studio_class.waitlist.remove(entry)
            continue
        if not occupancy.check_capacity(db, studio_class, entry.frame_size).has_capacity:
            continue
        reservation = _seat(db, studio_class, entry, actor=actor)
        occupancy.refresh_class_status(db, studio_class)
        return reservation
    occupancy.refresh_class_status(db, studio_class)
    return None


def fill_open_spots(
    db: Session,
    studio_class: models.StudioClass,
    *,
    actor: Actor = SYSTEM,
) -> list[models.Reservation]:
    promoted: list[models.Reservation] = []
    while True:
        reservation = promote_next(db, studio_class, actor=actor)
        if reservation is None:
            return promoted
        promoted.append(reservation)


def _get_entry(db: Session, entry_id: int) -> models.WaitlistEntry:
    entry = db.get(models.WaitlistEntry, entry_id)
    if entry is None:
        raise NotFoundError("Waitlist entry not found")
    return entry


def _entry_in_queue(studio_class: models.StudioClass, entry_id: int) -> models.WaitlistEntry:
    for entry in studio_class.waitlist:
        if entry.id == entry_id:
            return entry
    raise NotFoundError("Waitlist entry not found")


def add_entry(
    db: Session,
    *,
    class_id: int,
    user_id: int,
    frame_size: models.FrameSize,
    priority: int | None = None,
) -> models.WaitlistEntry:
    with atomic(db):
        if db.get(models.User, user_id) is None:
            raise NotFoundError("Student not found")
        studio_class = occupancy.lock_class(db, class_id)
        entry = enqueue(db, studio_class, user_id=user_id, frame_size=frame_size)
        if priority is not None:
            _reposition(studio_class, entry, priority)
            db.flush()
    return entry


def _reposition(studio_class: models.StudioClass, entry: models.WaitlistEntry, priority: int) -> None:
    queue = studio_class.waitlist
    queue.remove(entry)
    index = min(max(priority, 1), len(queue) + 1) - 1
    queue.insert(index, entry)


def move_entry(db: Session, entry_id: int, priority: int) -> models.WaitlistEntry:
    with atomic(db):
        studio_class = occupancy.lock_class(db, _get_entry(db, entry_id).class_id)
        entry = _entry_in_queue(studio_class, entry_id)
        if entry.priority != priority:
            _reposition(studio_class, entry, priority)
    return entry


def remove_entry(db: Session, entry_id: int, *, requester: models.User) -> None:
    with atomic(db):
        entry = _get_entry(db, entry_id)
        if requester.role != models.UserRole.admin and entry.user_id != requester.id:
            raise PermissionDeniedError("Not allowed to remove this waitlist entry")
        studio_class = occupancy.lock_class(db, entry.class_id)
        studio_class.waitlist.remove(_entry_in_queue(studio_class, entry_id))


def promote_entry(
    db: Session,
    entry_id: int,
    *,
    package_id: int | None = None,
    actor: Actor = SYSTEM,
) -> models.Reservation:
    with atomic(db):
        studio_class = occupancy.lock_class(db, _get_entry(db, entry_id).class_id)
        entry = _entry_in_queue(studio_class, entry_id)
        if not occupancy.check_capacity(db, studio_class, entry.frame_size).has_capacity:
            raise ConflictError("Class is still at full capacity")
        if occupancy.find_active_reservation(db, studio_class.id, entry.user_id):
            raise ConflictError("User already has a reservation for this class")
        package = None
        if package_id is not None:
            package = credit_ledger.lock_package(db, package_id)
            credit_ledger.ensure_usable(package, user_id=entry.user_id)
        reservation = _seat(db, studio_class, entry, actor=actor, package_id=package_id)
        if package is not None:
            credit_ledger.consume(
                db,
                package,
                reason=WAITLIST_PROMOTION_REASON,
                actor=actor,
                context={"reservation_id": reservation.id, "class_id": studio_class.id},
            )
        occupancy.refresh_class_status(db, studio_class)
    return reservation


def list_entries(
    db: Session,
    *,
    class_id: int | None = None,
    user_id: int | None = None,
) -> list[models.WaitlistEntry]:
    stmt = select(models.WaitlistEntry).options(
        selectinload(models.WaitlistEntry.user),
        selectinload(models.WaitlistEntry.studio_class).selectinload(models.StudioClass.class_type),
    )
    if class_id:
        stmt = stmt.where(models.WaitlistEntry.class_id == class_id)
    if user_id:
        stmt = stmt.where(models.WaitlistEntry.user_id == user_id)
    stmt = stmt.order_by(models.WaitlistEntry.class_id, models.WaitlistEntry.priority)
    return list(db.scalars(stmt))


__all__ = [
    "add_entry",
    "enqueue",
    "fill_open_spots",
    "list_entries",
    "move_entry",
    "promote_entry",
    "promote_next",
    "remove_entry",
]
