"""The only code path that changes ``Package.used_credits``.

Every movement is clamped to ``[0, total_credits]``, keeps the package status
in step with its balance and leaves an audit entry behind.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.constants import CREDIT_DEDUCTED, CREDIT_RESTORED, PACKAGE_STATUS_UPDATED
from ..db import models
from . import occupancy
from .audit_service import SYSTEM, Actor, log_action
from .errors import InvalidRequestError, NotFoundError


def is_expired(package: models.Package, now: datetime | None = None) -> bool:
    if package.status == models.PackageStatus.expired:
        return True
    if package.expires_at is None:
        return False
    return (now or occupancy.utc_now()) > occupancy.as_utc(package.expires_at)


def lock_package(db: Session, package_id: int) -> models.Package:
    db.flush()
    package = db.execute(
        select(models.Package)
        .where(models.Package.id == package_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if package is None:
        raise NotFoundError("Package not found")
    return package


def _usable_statuses() -> set[models.PackageStatus]:
    statuses = {models.PackageStatus.active}
    if get_settings().allow_pending_payment_credits:
        statuses.add(models.PackageStatus.pending_payment)
    return statuses


def ensure_usable(
    package: models.Package,
    *,
    user_id: int | None = None,
    now: datetime | None = None,
) -> None:
    if user_id is not None and package.user_id != user_id:
        raise InvalidRequestError("Package does not belong to this student")
    if package.status not in _usable_statuses():
        label = package.status.value.replace("_", " ")
        raise InvalidRequestError(f"Cannot use {label} package")
    if is_expired(package, now):
        raise InvalidRequestError("Package has expired and cannot be used")
    if package.remaining_credits <= 0:
        raise InvalidRequestError("No credits remaining in this package")


def sync_status(
    db: Session,
    package: models.Package,
    *,
    actor: Actor = SYSTEM,
    trigger: str | None = None,
) -> models.PackageStatus:
    """Flip ACTIVE <-> USED_UP to match the balance."""

    old_status = package.status
    exhausted = package.used_credits >= package.total_credits
    if old_status == models.PackageStatus.active and exhausted:
        new_status = models.PackageStatus.used_up
        reason = "all_credits_used"
    elif old_status == models.PackageStatus.used_up and not exhausted and not is_expired(package):
        new_status = models.PackageStatus.active
        reason = "credits_available"
    else:
        return old_status

    package.status = new_status
    log_action(
        db,
        action=PACKAGE_STATUS_UPDATED,
        actor=actor,
        table_name="packages",
        record_id=package.id,
        old_values={"status": old_status.value},
        new_values={"status": new_status.value, "reason": reason, "triggered_by": trigger},
    )
    return new_status


def _apply(
    db: Session,
    package: models.Package,
    delta: int,
    *,
    reason: str,
    actor: Actor,
    context: dict[str, Any] | None,
) -> int:
    before = package.used_credits or 0
    after = max(0, min(package.total_credits, before + delta))
    if after == before:
        return 0
    package.used_credits = after
    log_action(
        db,
        action=CREDIT_DEDUCTED if after > before else CREDIT_RESTORED,
        actor=actor,
        table_name="packages",
        record_id=package.id,
        old_values={"used_credits": before},
        new_values={
            "used_credits": after,
            "credits_before": before,
            "credits_after": after,
            "reason": reason,
            **(context or {}),
        },
    )
    sync_status(db, package, actor=actor, trigger=reason)
    return after - before


def consume(
    db: Session,
    package: models.Package,
    *,
    reason: str,
    actor: Actor = SYSTEM,
    context: dict[str, Any] | None = None,
) -> int:
    return _apply(db, package, 1, reason=reason, actor=actor, context=context)


def restore(
    db: Session,
    package: models.Package,
    *,
    reason: str,
    actor: Actor = SYSTEM,
    context: dict[str, Any] | None = None,
) -> int:
    return _apply(db, package, -1, reason=reason, actor=actor, context=context)


def attendance_delta(
    old_status: models.ReservationStatus, new_status: models.ReservationStatus
) -> int:
    was_attended = old_status in models.ATTENDED_STATUSES
    now_attended = new_status in models.ATTENDED_STATUSES
    if now_attended and not was_attended:
        return 1
    if was_attended and not now_attended:
        return -1
    return 0


def reconcile(
    db: Session,
    package: models.Package,
    old_status: models.ReservationStatus,
    new_status: models.ReservationStatus,
    *,
    reason: str,
    actor: Actor = SYSTEM,
    context: dict[str, Any] | None = None,
) -> int:
    delta = attendance_delta(old_status, new_status)
    if delta == 0:
        return 0
    return _apply(db, package, delta, reason=reason, actor=actor, context=context)


__all__ = [
    "attendance_delta",
    "consume",
    "ensure_usable",
    "is_expired",
    "lock_package",
    "reconcile",
    "restore",
    "sync_status",
]
