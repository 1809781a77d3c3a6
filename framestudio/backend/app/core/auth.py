from sqlalchemy import func, select
from sqlalchemy.orm import Session
from ..db import models
from . import security


def authenticate_user(db: Session, email: str, password: str) -> models.User | None:
    user = db.execute(
        select(models.User).where(func.lower(models.User.email) == email.strip().lower())
    ).scalar_one_or_none()
    if not user:
        return None
    if user.status == models.UserStatus.inactive:
        return None
    if not security.verify_password(password, user.password_hash):
        return None
    return user
