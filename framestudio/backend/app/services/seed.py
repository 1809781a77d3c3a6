from datetime import datetime, timedelta, timezone
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from ..db.session import SessionLocal
from ..db import models
from ..config import get_settings
from ..core import security
from .admin import ensure_admin_exists


def seed(session: Session) -> None:
    settings = get_settings()
    ensure_admin_exists(session, settings.default_admin_email, settings.default_admin_password)
    instructor = session.execute(
        select(models.User).where(models.User.role == models.UserRole.instructor)
    ).scalars().first()
    if instructor is None:
        instructor = models.User(
            email="instructor@studio.local",
            first_name="Ana",
            last_name="Lopez",
            password_hash=security.get_password_hash("instructor123"),
            role=models.UserRole.instructor,
        )
        session.add(instructor)
        session.flush()
    if session.scalar(select(func.count(models.ClassType.id))) == 0:
        class_type = models.ClassType(
            name="Frame Workshop",
            description="Hands-on framing session",
            duration_min=120,
            default_price=450,
        )
        session.add(class_type)
        session.flush()
        starts_at = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0) + timedelta(days=2)
        session.add(
            models.StudioClass(
                class_type_id=class_type.id,
                instructor_id=instructor.id,
                starts_at=starts_at,
                ends_at=starts_at + timedelta(minutes=class_type.duration_min),
                capacity=6,
            )
        )
    if session.scalar(select(func.count(models.PackageType.id))) == 0:
        session.add_all(
            [
                models.PackageType(name="4 classes", credits=4, price=1600, validity_days=60),
                models.PackageType(name="8 classes", credits=8, price=2900, validity_days=90),
            ]
        )
    session.commit()


if __name__ == "__main__":
    with SessionLocal() as session:
        seed(session)
        print("Seed data created")
