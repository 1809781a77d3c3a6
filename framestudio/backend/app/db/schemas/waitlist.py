from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from ..models.reservation import FrameSize
from .common import lower_choice


class WaitlistCreate(BaseModel):
    class_id: int
    user_id: int
    frame_size: FrameSize = FrameSize.medium
    priority: int | None = Field(default=None, ge=1)

    @field_validator("frame_size", mode="before")
    @classmethod
    def normalize_frame_size(cls, value: object) -> object:
        return lower_choice(value)


class WaitlistMove(BaseModel):
    priority: int = Field(ge=1)


class WaitlistPromote(BaseModel):
    package_id: int | None = None


class WaitlistEntry(BaseModel):
    id: int
    class_id: int
    user_id: int
    user_name: str | None = None
    frame_size: FrameSize
    priority: int
    created_at: datetime | None = None

    class Config:
        from_attributes = True
