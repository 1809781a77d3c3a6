from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ...api import deps
from ...core import security
from ...db.session import get_db
from ...db import models, schemas
from ...services import user_service
from ...services.audit_service import actor_for
from ...services.errors import BookingError

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[schemas.User])
def list_users(
    role: models.UserRole | None = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    stmt = select(models.User).order_by(models.User.last_name, models.User.first_name, models.User.id)
    if role:
        stmt = stmt.where(models.User.role == role)
    return list(db.scalars(stmt))


@router.post("", response_model=schemas.User, status_code=201)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    data = payload.model_dump(exclude={"password"})
    data["email"] = data["email"].strip().lower()
    user = models.User(**data, password_hash=security.get_password_hash(payload.password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail="User with this email already exists") from exc
    db.refresh(user)
    return user


@router.get("/search", response_model=list[schemas.User])
def search_users(
    q: str = Query(..., min_length=2, description="Part of the name or email"),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    pattern = f"%{q.strip()}%"
    stmt = (
        select(models.User)
        .where(
            or_(
                models.User.first_name.ilike(pattern),
                models.User.last_name.ilike(pattern),
                models.User.email.ilike(pattern),
            )
        )
        .order_by(models.User.last_name.asc(), models.User.first_name.asc())
        .limit(limit)
    )
    return list(db.scalars(stmt))


@router.get("/{user_id}", response_model=schemas.User)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/{user_id}", response_model=schemas.User)
def update_user(
    user_id: int,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


@router.post("/{user_id}/activate", response_model=schemas.User)
def activate_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        return user_service.activate_user(db, user_id, actor=actor_for(admin))
    except BookingError as exc:
        raise deps.http_error(exc) from exc
