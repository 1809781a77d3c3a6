from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import attendance_service, schedule_service
from ...services.audit_service import actor_for
from ...services.errors import BookingError

router = APIRouter(prefix="/instructor", tags=["instructor"])


def _scope(user: models.User) -> int | None:
    # admins may manage any class
    return None if user.role == models.UserRole.admin else user.id


@router.get("/classes", response_model=list[schemas.StudioClass])
def my_classes(
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_instructor),
):
    return schedule_service.list_classes(db, instructor_id=_scope(user))


@router.get("/attendance", response_model=schemas.ClassRoster)
def class_roster(
    class_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_instructor),
):
    try:
        return attendance_service.class_roster(db, class_id, instructor_id=_scope(user))
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.post("/attendance", response_model=schemas.AttendanceResult)
def set_attendance(
    payload: schemas.AttendanceUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_instructor),
):
    try:
        return attendance_service.set_attendance(
            db,
            reservation_id=payload.reservation_id,
            status=payload.status,
            progress_notes=payload.progress_notes,
            instructor_id=_scope(user),
            actor=actor_for(user),
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
