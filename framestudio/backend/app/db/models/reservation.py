import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class FrameSize(str, PyEnum):
    small = "small"
    medium = "medium"
    large = "large"


class ReservationStatus(str, PyEnum):
    confirmed = "confirmed"
    checked_in = "checked_in"
    completed = "completed"
    no_show = "no_show"
    cancelled = "cancelled"


# Reservations that hold a place in the class.
ACTIVE_RESERVATION_STATUSES = (ReservationStatus.confirmed, ReservationStatus.checked_in)
# Reservations whose credit counts as consumed by attendance.
ATTENDED_STATUSES = (ReservationStatus.checked_in, ReservationStatus.completed)


def _new_uuid() -> str:
    return uuid.uuid4().hex


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("user_id", "class_id", name="uq_reservation_user_class"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(String(32), unique=True, default=_new_uuid)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    class_id: Mapped[int] = mapped_column(ForeignKey("classes.id", ondelete="CASCADE"), index=True)
    package_id: Mapped[int | None] = mapped_column(ForeignKey("packages.id", ondelete="SET NULL"))
    frame_size: Mapped[FrameSize] = mapped_column(Enum(FrameSize), default=FrameSize.medium)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus), default=ReservationStatus.confirmed
    )
    reserved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user = relationship("User")
    studio_class = relationship("StudioClass", back_populates="reservations")
    package = relationship("Package", back_populates="reservations")

    @property
    def user_name(self) -> str | None:
        return self.user.full_name if self.user else None

    @property
    def class_name(self) -> str | None:
        return self.studio_class.class_type_name if self.studio_class else None

    @property
    def class_starts_at(self) -> datetime | None:
        return self.studio_class.starts_at if self.studio_class else None
