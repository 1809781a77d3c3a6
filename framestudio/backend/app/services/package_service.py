from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..core.constants import PACKAGE_STATUS_UPDATED
from ..db import models
from ..db.session import atomic
from . import credit_ledger, occupancy
from .audit_service import SYSTEM, Actor, log_action
from .errors import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PackageCredits:
    package: models.Package
    remaining_credits: int
    days_until_expiry: int | None
    usable: bool


@dataclass(slots=True)
class CreditSummary:
    user_id: int
    packages: list[PackageCredits] = field(default_factory=list)

    @property
    def total_credits(self) -> int:
        return sum(item.package.total_credits for item in self.packages)

    @property
    def used_credits(self) -> int:
        return sum(item.package.used_credits for item in self.packages)

    @property
    def available_credits(self) -> int:
        return sum(item.remaining_credits for item in self.packages if item.usable)


# package types


def list_package_types(db: Session, *, active_only: bool = False) -> list[models.PackageType]:
    stmt = select(models.PackageType)
    if active_only:
        stmt = stmt.where(models.PackageType.is_active.is_(True))
    return list(db.scalars(stmt.order_by(models.PackageType.credits, models.PackageType.id)))


def create_package_type(db: Session, **fields: Any) -> models.PackageType:
    with atomic(db):
        if fields.get("class_type_id") and db.get(models.ClassType, fields["class_type_id"]) is None:
            raise NotFoundError("Class type not found")
        package_type = models.PackageType(**fields)
        db.add(package_type)
    return package_type


def update_package_type(db: Session, package_type_id: int, **changes: Any) -> models.PackageType:
    with atomic(db):
        package_type = db.get(models.PackageType, package_type_id)
        if package_type is None:
            raise NotFoundError("Package type not found")
        for key, value in changes.items():
            setattr(package_type, key, value)
    return package_type


# packages


def get_package(db: Session, package_id: int) -> models.Package:
    package = db.execute(
        select(models.Package)
        .where(models.Package.id == package_id)
        .options(selectinload(models.Package.user), selectinload(models.Package.package_type))
    ).scalar_one_or_none()
    if package is None:
        raise NotFoundError("Package not found")
    return package


def list_packages(
    db: Session,
    *,
    user_id: int | None = None,
    status: models.PackageStatus | None = None,
) -> list[models.Package]:
    stmt = select(models.Package).options(
        selectinload(models.Package.user), selectinload(models.Package.package_type)
    )
    if user_id:
        stmt = stmt.where(models.Package.user_id == user_id)
    if status:
        stmt = stmt.where(models.Package.status == status)
    return list(db.scalars(stmt.order_by(models.Package.purchased_at.desc(), models.Package.id.desc())))


def build_package(
    *,
    user_id: int,
    name: str,
    credits: int,
    price: Decimal | float,
    validity_days: int | None = None,
    status: models.PackageStatus = models.PackageStatus.active,
    package_type_id: int | None = None,
    purchased_at: datetime | None = None,
    expires_at: datetime | None = None,
) -> models.Package:
    purchased_at = purchased_at or occupancy.utc_now()
    if expires_at is None:
        days = validity_days or get_settings().default_package_validity_days
        expires_at = purchased_at + timedelta(days=days)
    return models.Package(
        user_id=user_id,
        package_type_id=package_type_id,
        name=name,
        total_credits=credits,
        used_credits=0,
        status=status,
        price=price,
        purchased_at=purchased_at,
        expires_at=expires_at,
    )


def create_package(
    db: Session,
    *,
    user_id: int,
    package_type_id: int | None = None,
    name: str | None = None,
    credits: int | None = None,
    price: Decimal | float | None = None,
    validity_days: int | None = None,
    status: models.PackageStatus = models.PackageStatus.active,
    expires_at: datetime | None = None,
    payment_method: models.PaymentMethod | None = None,
    payment_status: models.PaymentStatus = models.PaymentStatus.completed,
    actor: Actor = SYSTEM,
) -> models.Package:
    """Assign a package to a student, optionally recording its payment.

    Values missing from the call are taken from the package type.
    """

    with atomic(db):
        if db.get(models.User, user_id) is None:
            raise NotFoundError("Student not found")
        package_type = None
        if package_type_id is not None:
            package_type = db.get(models.PackageType, package_type_id)
            if package_type is None:
                raise NotFoundError("Package type not found")
        if package_type is None and (name is None or credits is None):
            raise InvalidRequestError("Either a package type or a name and credits are required")
        package = build_package(
            user_id=user_id,
            package_type_id=package_type_id,
            name=name or package_type.name,
            credits=credits if credits is not None else package_type.credits,
            price=price if price is not None else (package_type.price if package_type else 0),
            validity_days=validity_days or (package_type.validity_days if package_type else None),
            status=status,
            expires_at=expires_at,
        )
        db.add(package)
        db.flush()
        if payment_method is not None and package.price and Decimal(str(package.price)) > 0:
            db.add(
                models.Payment(
                    user_id=user_id,
                    package_id=package.id,
                    amount=package.price,
                    currency=get_settings().payment_currency,
                    method=payment_method,
                    status=payment_status,
                    description=f"Package: {package.name}",
                    paid_at=occupancy.utc_now() if payment_status == models.PaymentStatus.completed else None,
                )
            )
    logger.info(
        "Package assigned",
        extra={"package_id": package.id, "user_id": user_id, "credits": package.total_credits, "actor_id": actor.id},
    )
    return package


def update_package(
    db: Session,
    package_id: int,
    *,
    actor: Actor = SYSTEM,
    **changes: Any,
) -> models.Package:
    with atomic(db):
        package = credit_ledger.lock_package(db, package_id)
        total = changes.get("total_credits")
        if total is not None and total < package.used_credits:
            raise InvalidRequestError(
                f"Total credits cannot be lower than used credits ({package.used_credits})"
            )
        old_status = package.status
        for key, value in changes.items():
            setattr(package, key, value)
        if "status" in changes and package.status != old_status:
            log_action(
                db,
                action=PACKAGE_STATUS_UPDATED,
                actor=actor,
                table_name="packages",
                record_id=package.id,
                old_values={"status": old_status.value},
                new_values={"status": package.status.value, "reason": "manual_update"},
            )
        else:
            credit_ledger.sync_status(db, package, actor=actor, trigger="manual_update")
    return package


def student_credits(db: Session, user_id: int, *, now: datetime | None = None) -> CreditSummary:
    now = now or occupancy.utc_now()
    summary = CreditSummary(user_id=user_id)
    for package in list_packages(db, user_id=user_id):
        days_left = None
        if package.expires_at is not None:
            days_left = max(0, (occupancy.as_utc(package.expires_at) - now).days)
        try:
            credit_ledger.ensure_usable(package, now=now)
            usable = True
        except InvalidRequestError:
            usable = False
        summary.packages.append(
            PackageCredits(
                package=package,
                remaining_credits=package.remaining_credits,
                days_until_expiry=days_left,
                usable=usable,
            )
        )
    return summary


__all__ = [
    "CreditSummary",
    "PackageCredits",
    "build_package",
    "create_package",
    "create_package_type",
    "get_package",
    "list_package_types",
    "list_packages",
    "student_credits",
    "update_package",
    "update_package_type",
]
