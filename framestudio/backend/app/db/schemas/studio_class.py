from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from ..models.reservation import FrameSize
from ..models.studio_class import ClassStatus
from .common import lower_choice


class FrameAvailability(BaseModel):
    frame_size: FrameSize
    capacity: int
    booked: int
    available: int


class ClassBase(BaseModel):
    class_type_id: int
    instructor_id: int | None = None
    starts_at: datetime
    ends_at: datetime | None = None
    capacity: int = Field(default=6, gt=0)
    small_frame_capacity: int | None = Field(default=None, ge=0)
    medium_frame_capacity: int | None = Field(default=None, ge=0)
    large_frame_capacity: int | None = Field(default=None, ge=0)
    notes: str | None = None


class ClassCreate(ClassBase):
    pass


class ClassUpdate(BaseModel):
    class_type_id: int | None = None
    instructor_id: int | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    small_frame_capacity: int | None = Field(default=None, ge=0)
    medium_frame_capacity: int | None = Field(default=None, ge=0)
    large_frame_capacity: int | None = Field(default=None, ge=0)
    status: ClassStatus | None = None
    notes: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        return lower_choice(value)

    @field_validator("status")
    @classmethod
    def reject_cancel(cls, value: ClassStatus | None) -> ClassStatus | None:
        if value == ClassStatus.cancelled:
            raise ValueError("Use the cancel endpoint to cancel a class")
        return value


class CapacityChange(BaseModel):
    capacity: int = Field(gt=0)


class StudioClass(BaseModel):
    id: int
    class_type_id: int
    class_type_name: str | None = None
    instructor_id: int | None = None
    instructor_name: str | None = None
    starts_at: datetime
    ends_at: datetime
    capacity: int
    status: ClassStatus
    notes: str | None = None
    booked: int = 0
    available_spots: int = 0
    frame_availability: list[FrameAvailability] = []

    class Config:
        from_attributes = True


class ClassAvailability(BaseModel):
    class_id: int
    status: ClassStatus
    capacity: int
    booked: int
    available_spots: int
    frames: list[FrameAvailability]


class ClassComplete(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class CompletionResult(BaseModel):
    studio_class: StudioClass
    completed_reservation_ids: list[int] = []
    no_show_reservation_ids: list[int] = []
    not_checked_in_reservation_ids: list[int] = []
