from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..core.constants import PACKAGE_STATUS_UPDATED, PAYMENT_COMPLETED_REASON
from ..db import models
from ..db.session import atomic
from . import credit_ledger, occupancy
from .audit_service import SYSTEM, Actor, log_action
from .errors import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)


def record_payment(
    db: Session,
    *,
    user_id: int,
    amount: Decimal | float,
    method: models.PaymentMethod = models.PaymentMethod.cash,
    status: models.PaymentStatus = models.PaymentStatus.completed,
    package_id: int | None = None,
    reservation_id: int | None = None,
    description: str | None = None,
    currency: str | None = None,
    actor: Actor = SYSTEM,
) -> models.Payment:
    if Decimal(str(amount)) <= 0:
        raise InvalidRequestError("Amount must be greater than zero")
    with atomic(db):
        if db.get(models.User, user_id) is None:
            raise NotFoundError("Student not found")
        if package_id is not None:
            package = db.get(models.Package, package_id)
            if package is None:
                raise NotFoundError("Package not found")
            if package.user_id != user_id:
                raise InvalidRequestError("Package does not belong to this student")
        if reservation_id is not None and db.get(models.Reservation, reservation_id) is None:
            raise NotFoundError("Reservation not found")
        payment = models.Payment(
            user_id=user_id,
            package_id=package_id,
            reservation_id=reservation_id,
            amount=amount,
            currency=(currency or get_settings().payment_currency).upper(),
            method=method,
            status=models.PaymentStatus.pending,
            description=description,
        )
        db.add(payment)
        db.flush()
        _apply_status(db, payment, status, actor=actor)
    logger.info(
        "Payment recorded",
        extra={"payment_id": payment.id, "user_id": user_id, "status": payment.status.value},
    )
    return payment


def _apply_status(
    db: Session,
    payment: models.Payment,
    status: models.PaymentStatus,
    *,
    actor: Actor,
) -> None:
    if payment.status == status:
        return
    payment.status = status
    if status != models.PaymentStatus.completed:
        return
    payment.paid_at = occupancy.utc_now()
    if payment.package_id is None:
        return
    package = credit_ledger.lock_package(db, payment.package_id)
    if package.status != models.PackageStatus.pending_payment:
        return
    package.status = models.PackageStatus.active
    log_action(
        db,
        action=PACKAGE_STATUS_UPDATED,
        actor=actor,
        table_name="packages",
        record_id=package.id,
        old_values={"status": models.PackageStatus.pending_payment.value},
        new_values={
            "status": package.status.value,
            "reason": PAYMENT_COMPLETED_REASON,
            "payment_id": payment.id,
        },
    )
    # credits may have been spent while the package waited for payment
    credit_ledger.sync_status(db, package, actor=actor, trigger=PAYMENT_COMPLETED_REASON)


def update_payment_status(
    db: Session,
    payment_id: int,
    status: models.PaymentStatus,
    *,
    actor: Actor = SYSTEM,
) -> models.Payment:
    with atomic(db):
        payment = db.get(models.Payment, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        _apply_status(db, payment, status, actor=actor)
    return payment


def list_payments(
    db: Session,
    *,
    user_id: int | None = None,
    status: models.PaymentStatus | None = None,
) -> list[models.Payment]:
    stmt = select(models.Payment).options(selectinload(models.Payment.user))
    if user_id:
        stmt = stmt.where(models.Payment.user_id == user_id)
    if status:
        stmt = stmt.where(models.Payment.status == status)
    return list(db.scalars(stmt.order_by(models.Payment.created_at.desc(), models.Payment.id.desc())))


__all__ = ["list_payments", "record_payment", "update_payment_status"]
