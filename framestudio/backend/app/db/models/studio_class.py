from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base

DEFAULT_SMALL_FRAME_CAPACITY = 2
DEFAULT_MEDIUM_FRAME_CAPACITY = 3
DEFAULT_LARGE_FRAME_CAPACITY = 1


class ClassStatus(str, PyEnum):
    scheduled = "scheduled"
    full = "full"
    cancelled = "cancelled"
    completed = "completed"


class StudioClass(Base):
    __tablename__ = "classes"
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_class_capacity_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    class_type_id: Mapped[int] = mapped_column(ForeignKey("class_types.id", ondelete="CASCADE"))
    instructor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    small_frame_capacity: Mapped[int] = mapped_column(Integer, default=DEFAULT_SMALL_FRAME_CAPACITY)
    medium_frame_capacity: Mapped[int] = mapped_column(Integer, default=DEFAULT_MEDIUM_FRAME_CAPACITY)
    large_frame_capacity: Mapped[int] = mapped_column(Integer, default=DEFAULT_LARGE_FRAME_CAPACITY)
    status: Mapped[ClassStatus] = mapped_column(Enum(ClassStatus), default=ClassStatus.scheduled)
    notes: Mapped[str | None] = mapped_column(Text)

    class_type = relationship("ClassType", back_populates="classes")
    instructor = relationship("User")
    reservations = relationship("Reservation", back_populates="studio_class")
    # Priorities are renumbered 1..n on every insert/remove/pop of the collection.
    waitlist = relationship(
        "WaitlistEntry",
        back_populates="studio_class",
        order_by="WaitlistEntry.priority",
        collection_class=ordering_list("priority", count_from=1),
        cascade="all, delete-orphan",
    )

    @property
    def class_type_name(self) -> str | None:
        return self.class_type.name if self.class_type else None

    @property
    def instructor_name(self) -> str | None:
        return self.instructor.full_name if self.instructor else None

    @property
    def frame_capacities(self) -> dict[str, int]:
        return {
            "small": _or_default(self.small_frame_capacity, DEFAULT_SMALL_FRAME_CAPACITY),
            "medium": _or_default(self.medium_frame_capacity, DEFAULT_MEDIUM_FRAME_CAPACITY),
            "large": _or_default(self.large_frame_capacity, DEFAULT_LARGE_FRAME_CAPACITY),
        }


def _or_default(value: int | None, default: int) -> int:
    return default if value is None else value
