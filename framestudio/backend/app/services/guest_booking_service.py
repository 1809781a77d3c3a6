"""Booking without an account.

Guests are matched to students by e-mail. Unknown addresses get a student
account waiting for activation and, while the studio extends credit before
payment, a single-class package that is paid later.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..core import security
from ..core.constants import GUEST_PACKAGE_NAME, RESERVATION_CREATED_REASON
from ..db import models
from ..db.session import atomic
from . import credit_ledger, occupancy
from .audit_service import actor_for
from .errors import ConflictError, InvalidRequestError, NotFoundError
from .package_service import build_package

logger = logging.getLogger(__name__)

BOOKABLE_STATUSES = (models.ClassStatus.scheduled, models.ClassStatus.full)


@dataclass(slots=True)
class GuestBooking:
    reservation: models.Reservation
    user: models.User
    is_new_user: bool
    package: models.Package | None = None
    payment: models.Payment | None = None


def find_user_by_email(db: Session, email: str) -> models.User | None:
    return db.execute(
        select(models.User).where(func.lower(models.User.email) == email.strip().lower())
    ).scalar_one_or_none()


def _create_pending_user(
    db: Session, *, email: str, first_name: str, last_name: str, phone: str | None
) -> models.User:
    settings = get_settings()
    user = models.User(
        email=email,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        phone=phone,
        password_hash=security.get_password_hash(secrets.token_urlsafe(16)),
        role=models.UserRole.student,
        status=models.UserStatus.pending_activation,
        activation_token=secrets.token_urlsafe(32),
        activation_token_expires_at=occupancy.utc_now() + timedelta(days=settings.guest_activation_days),
    )
    db.add(user)
    db.flush()
    return user


def book_as_guest(
    db: Session,
    *,
    class_id: int,
    email: str,
    first_name: str,
    last_name: str,
    frame_size: models.FrameSize,
    phone: str | None = None,
    payment_method: models.PaymentMethod = models.PaymentMethod.cash,
) -> GuestBooking:
    settings = get_settings()
    email = email.strip().lower()
    with atomic(db):
        studio_class = occupancy.lock_class(db, class_id)
        if studio_class.status not in BOOKABLE_STATUSES:
            raise InvalidRequestError("Class is not available for booking")
        if occupancy.as_utc(studio_class.starts_at) <= occupancy.utc_now():
            raise InvalidRequestError("Class has already started")
        capacity = occupancy.check_capacity(db, studio_class, frame_size)
        if not capacity.has_capacity:
            raise InvalidRequestError(capacity.message or "Class is full")

        user = find_user_by_email(db, email)
        is_new_user = user is None
        if user is None:
            user = _create_pending_user(
                db, email=email, first_name=first_name, last_name=last_name, phone=phone
            )
        elif occupancy.find_active_reservation(db, class_id, user.id):
            raise ConflictError("You already have a reservation for this class")

        reservation = occupancy.place_reservation(db, studio_class, user_id=user.id, frame_size=frame_size)
        booking = GuestBooking(reservation=reservation, user=user, is_new_user=is_new_user)
        price = studio_class.class_type.default_price if studio_class.class_type else 0
        if is_new_user and settings.allow_pending_payment_credits:
            package = build_package(
                user_id=user.id,
                name=GUEST_PACKAGE_NAME,
                credits=1,
                price=price or 0,
                status=models.PackageStatus.pending_payment,
            )
            db.add(package)
            db.flush()
            reservation.package_id = package.id
            credit_ledger.consume(
                db,
                package,
                reason=RESERVATION_CREATED_REASON,
                actor=actor_for(user),
                context={"reservation_id": reservation.id, "class_id": class_id},
            )
            booking.package = package
        elif price and Decimal(str(price)) > 0:
            payment = models.Payment(
                user_id=user.id,
                reservation_id=reservation.id,
                amount=price,
                currency=settings.payment_currency,
                method=payment_method,
                status=models.PaymentStatus.pending,
                description=f"Class booking #{reservation.uuid}",
            )
            db.add(payment)
            booking.payment = payment
        occupancy.refresh_class_status(db, studio_class)

    logger.info(
        "Guest booking created",
        extra={"reservation_id": reservation.id, "class_id": class_id, "new_user": is_new_user},
    )
    return booking


def get_public_reservation(db: Session, reservation_uuid: str) -> models.Reservation:
    reservation = db.execute(
        select(models.Reservation)
        .where(models.Reservation.uuid == reservation_uuid)
        .options(
            selectinload(models.Reservation.user),
            selectinload(models.Reservation.studio_class).selectinload(models.StudioClass.class_type),
        )
    ).scalar_one_or_none()
    if reservation is None:
        raise NotFoundError("Reservation not found")
    return reservation


__all__ = ["GuestBooking", "book_as_guest", "find_user_by_email", "get_public_reservation"]
