from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator

from ..models.package import PackageStatus
from ..models.payment import PaymentMethod, PaymentStatus
from .common import lower_choice


class PackageTypeBase(BaseModel):
    name: str
    description: str | None = None
    credits: int = Field(gt=0)
    price: Decimal = Field(ge=0)
    validity_days: int | None = Field(default=None, gt=0)
    class_type_id: int | None = None
    is_active: bool = True


class PackageTypeCreate(PackageTypeBase):
    pass


class PackageTypeUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    credits: int | None = Field(default=None, gt=0)
    price: Decimal | None = Field(default=None, ge=0)
    validity_days: int | None = Field(default=None, gt=0)
    class_type_id: int | None = None
    is_active: bool | None = None


class PackageType(PackageTypeBase):
    id: int

    class Config:
        from_attributes = True


class PackageCreate(BaseModel):
    user_id: int
    package_type_id: int | None = None
    name: str | None = None
    credits: int | None = Field(default=None, gt=0)
    price: Decimal | None = Field(default=None, ge=0)
    validity_days: int | None = Field(default=None, gt=0)
    status: PackageStatus = PackageStatus.active
    expires_at: datetime | None = None
    payment_method: PaymentMethod | None = None
    payment_status: PaymentStatus = PaymentStatus.completed

    @field_validator("status", "payment_method", "payment_status", mode="before")
    @classmethod
    def normalize_choices(cls, value: object) -> object:
        return lower_choice(value)


class PackageUpdate(BaseModel):
    name: str | None = None
    total_credits: int | None = Field(default=None, gt=0)
    status: PackageStatus | None = None
    expires_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        return lower_choice(value)


class Package(BaseModel):
    id: int
    user_id: int
    package_type_id: int | None = None
    name: str
    total_credits: int
    used_credits: int
    remaining_credits: int
    status: PackageStatus
    price: Decimal
    purchased_at: datetime | None = None
    expires_at: datetime | None = None

    class Config:
        from_attributes = True


class PackageCredits(BaseModel):
    package: Package
    remaining_credits: int
    days_until_expiry: int | None = None
    usable: bool

    class Config:
        from_attributes = True


class CreditSummary(BaseModel):
    user_id: int
    total_credits: int
    used_credits: int
    available_credits: int
    packages: list[PackageCredits]

    class Config:
        from_attributes = True
