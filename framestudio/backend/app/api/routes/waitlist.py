from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import waitlist_service
from ...services.audit_service import actor_for
from ...services.errors import BookingError
from .reservations import notify_confirmed

router = APIRouter(prefix="/waitlist", tags=["waitlist"])


@router.get("", response_model=list[schemas.WaitlistEntry])
def list_waitlist(
    class_id: int | None = None,
    user_id: int | None = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    return waitlist_service.list_entries(db, class_id=class_id, user_id=user_id)


@router.post("", response_model=schemas.WaitlistEntry, status_code=status.HTTP_201_CREATED)
def add_to_waitlist(
    payload: schemas.WaitlistCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    try:
        return waitlist_service.add_entry(
            db,
            class_id=payload.class_id,
            user_id=payload.user_id,
            frame_size=payload.frame_size,
            priority=payload.priority,
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.patch("/{entry_id}", response_model=schemas.WaitlistEntry)
def move_waitlist_entry(
    entry_id: int,
    payload: schemas.WaitlistMove,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    try:
        return waitlist_service.move_entry(db, entry_id, payload.priority)
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.delete("/{entry_id}")
def remove_waitlist_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    try:
        waitlist_service.remove_entry(db, entry_id, requester=user)
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    return {"status": "deleted"}


@router.post("/{entry_id}/promote", response_model=schemas.Reservation, status_code=status.HTTP_201_CREATED)
def promote_waitlist_entry(
    entry_id: int,
    background_tasks: BackgroundTasks,
    payload: schemas.WaitlistPromote | None = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        reservation = waitlist_service.promote_entry(
            db,
            entry_id,
            package_id=payload.package_id if payload else None,
            actor=actor_for(admin),
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    notify_confirmed(background_tasks, [reservation])
    return reservation
