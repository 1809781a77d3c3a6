from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class PackageStatus(str, PyEnum):
    active = "active"
    used_up = "used_up"
    expired = "expired"
    pending_payment = "pending_payment"


class PackageType(Base):
    __tablename__ = "package_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    validity_days: Mapped[int | None] = mapped_column(Integer)
    class_type_id: Mapped[int | None] = mapped_column(ForeignKey("class_types.id"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    class_type = relationship("ClassType")
    packages = relationship("Package", back_populates="package_type")


class Package(Base):
    __tablename__ = "packages"
    __table_args__ = (
        CheckConstraint("used_credits >= 0", name="ck_package_used_credits_non_negative"),
        CheckConstraint("used_credits <= total_credits", name="ck_package_used_credits_within_total"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    package_type_id: Mapped[int | None] = mapped_column(ForeignKey("package_types.id"))
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    total_credits: Mapped[int] = mapped_column(Integer, nullable=False)
    used_credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[PackageStatus] = mapped_column(Enum(PackageStatus), default=PackageStatus.active)
    price: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    purchased_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user = relationship("User")
    package_type = relationship("PackageType", back_populates="packages")
    reservations = relationship("Reservation", back_populates="package")
    payments = relationship("Payment", back_populates="package")

    @property
    def remaining_credits(self) -> int:
        return (self.total_credits or 0) - (self.used_credits or 0)
