from datetime import datetime
from pydantic import BaseModel, field_validator

from ..models.user import UserRole, UserStatus
from .common import lower_choice


class UserBase(BaseModel):
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    role: UserRole = UserRole.student

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value: object) -> object:
        return lower_choice(value)


class UserCreate(UserBase):
    password: str


class UserUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    role: UserRole | None = None
    status: UserStatus | None = None

    @field_validator("role", "status", mode="before")
    @classmethod
    def normalize_choices(cls, value: object) -> object:
        return lower_choice(value)


class User(BaseModel):
    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    role: UserRole
    status: UserStatus
    created_at: datetime | None = None

    class Config:
        from_attributes = True
