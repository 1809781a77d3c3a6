from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from ..models.reservation import FrameSize, ReservationStatus
from ..models.studio_class import ClassStatus
from .common import lower_choice


class ReservationCreate(BaseModel):
    class_id: int
    user_id: int | None = None
    package_id: int | None = None
    frame_size: FrameSize = FrameSize.medium
    force_override: bool = False
    notes: str | None = None

    @field_validator("frame_size", mode="before")
    @classmethod
    def normalize_frame_size(cls, value: object) -> object:
        return lower_choice(value)


class ReservationUpdate(BaseModel):
    status: ReservationStatus | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    restore_credits: bool = True
    policy_override: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        return lower_choice(value)


class ReservationCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=255)


class Reservation(BaseModel):
    id: int
    uuid: str
    user_id: int
    user_name: str | None = None
    class_id: int
    class_name: str | None = None
    class_starts_at: datetime | None = None
    package_id: int | None = None
    frame_size: FrameSize
    status: ReservationStatus
    reserved_at: datetime | None = None
    checked_in_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


class FrameDistribution(BaseModel):
    small: int
    medium: int
    large: int
    total: int


class ReservationCreated(BaseModel):
    reservation: Reservation
    class_status: ClassStatus
    booked: int
    capacity: int
    message: str = ""


class WaitlistPosition(BaseModel):
    waitlist_entry_id: int
    position: int
    class_id: int
    message: str


class OverrideRequired(BaseModel):
    detail: str
    requires_override: bool = True
    distribution: FrameDistribution
    booked: int
    capacity: int


class CancellationResult(BaseModel):
    reservation: Reservation
    credit_restored: bool
    promoted_reservation_ids: list[int] = []


class RescheduleRequest(BaseModel):
    new_class_id: int


class RescheduleResult(BaseModel):
    reservation: Reservation
    previous_reservation_id: int
    credit_transferred: bool
    promoted_reservation_ids: list[int] = []
