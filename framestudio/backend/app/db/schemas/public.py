from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from ..models.payment import PaymentMethod
from ..models.reservation import FrameSize, ReservationStatus
from .common import lower_choice


class GuestBookingCreate(BaseModel):
    class_id: int
    email: str = Field(min_length=3, max_length=255)
    first_name: str = Field(min_length=1, max_length=128)
    last_name: str = Field(min_length=1, max_length=128)
    phone: str | None = Field(default=None, max_length=32)
    frame_size: FrameSize = FrameSize.medium
    payment_method: PaymentMethod = PaymentMethod.cash

    @field_validator("frame_size", "payment_method", mode="before")
    @classmethod
    def normalize_choices(cls, value: object) -> object:
        return lower_choice(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip().lower()
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return value


class GuestBookingResult(BaseModel):
    reservation_uuid: str
    class_id: int
    frame_size: FrameSize
    status: ReservationStatus
    is_new_user: bool
    package_id: int | None = None
    payment_id: int | None = None
    message: str


class PublicReservation(BaseModel):
    uuid: str
    status: ReservationStatus
    frame_size: FrameSize
    class_name: str | None = None
    class_starts_at: datetime | None = None
    user_name: str | None = None

    class Config:
        from_attributes = True
