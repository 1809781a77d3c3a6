from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator

from ..models.payment import PaymentMethod, PaymentStatus
from .common import lower_choice


class PaymentCreate(BaseModel):
    user_id: int
    amount: Decimal = Field(gt=0)
    method: PaymentMethod = PaymentMethod.cash
    status: PaymentStatus = PaymentStatus.completed
    package_id: int | None = None
    reservation_id: int | None = None
    description: str | None = Field(default=None, max_length=255)
    currency: str | None = Field(default=None, min_length=3, max_length=3)

    @field_validator("method", "status", mode="before")
    @classmethod
    def normalize_choices(cls, value: object) -> object:
        return lower_choice(value)


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        return lower_choice(value)


class Payment(BaseModel):
    id: int
    user_id: int
    package_id: int | None = None
    reservation_id: int | None = None
    amount: Decimal
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    description: str | None = None
    paid_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
