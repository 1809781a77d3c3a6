from pydantic import BaseModel, Field, field_validator

from ..models.reservation import ReservationStatus
from .common import lower_choice
from .reservation import Reservation
from .studio_class import StudioClass


class AttendanceUpdate(BaseModel):
    reservation_id: int
    status: ReservationStatus
    progress_notes: str | None = Field(default=None, max_length=2000)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        return lower_choice(value)


class AttendanceResult(BaseModel):
    reservation: Reservation
    previous_status: ReservationStatus
    credit_delta: int
    used_credits_before: int | None = None
    used_credits_after: int | None = None

    class Config:
        from_attributes = True


class ClassRoster(BaseModel):
    studio_class: StudioClass
    reservations: list[Reservation]
    summary: dict[str, int]

    class Config:
        from_attributes = True
