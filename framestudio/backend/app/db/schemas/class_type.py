from decimal import Decimal
from pydantic import BaseModel, Field


class ClassTypeBase(BaseModel):
    name: str
    description: str | None = None
    duration_min: int = Field(default=120, gt=0)
    default_price: Decimal = Field(default=Decimal("0"), ge=0)
    is_active: bool = True


class ClassTypeCreate(ClassTypeBase):
    pass


class ClassTypeUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    duration_min: int | None = Field(default=None, gt=0)
    default_price: Decimal | None = Field(default=None, ge=0)
    is_active: bool | None = None


class ClassType(ClassTypeBase):
    id: int

    class Config:
        from_attributes = True
