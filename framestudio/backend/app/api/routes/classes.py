from datetime import datetime
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import notification_service, schedule_service
from ...services.audit_service import actor_for
from ...services.errors import BookingError
from .reservations import notify_confirmed

router = APIRouter(prefix="/classes", tags=["classes"])

@router.get("", response_model=list[schemas.StudioClass])
def list_classes(
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    class_type_id: int | None = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_user),
):
    return schedule_service.list_classes(
        db, from_dt=from_dt, to_dt=to_dt, class_type_id=class_type_id
    )

@router.post("", response_model=schemas.StudioClass, status_code=201)
def create_class(
    payload: schemas.ClassCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        return schedule_service.create_class(db, actor=actor_for(admin), **payload.model_dump())
    except BookingError as exc:
        raise deps.http_error(exc) from exc

@router.get("/{class_id}", response_model=schemas.StudioClass)
def get_class(
    class_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_user),
):
    try:
        return schedule_service.get_class(db, class_id)
    except BookingError as exc:
        raise deps.http_error(exc) from exc

@router.patch("/{class_id}", response_model=schemas.StudioClass)
def update_class(
    class_id: int,
    payload: schemas.ClassUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")
    try:
        return schedule_service.update_class(db, class_id, actor=actor_for(admin), **changes)
    except BookingError as exc:
        raise deps.http_error(exc) from exc

@router.patch("/{class_id}/capacity", response_model=schemas.StudioClass)
def change_capacity(
    class_id: int,
    payload: schemas.CapacityChange,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        studio_class, promoted = schedule_service.change_capacity(
            db, class_id, payload.capacity, actor=actor_for(admin)
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    notify_confirmed(background_tasks, promoted)
    return studio_class

@router.post("/{class_id}/cancel", response_model=schemas.StudioClass)
def cancel_class(
    class_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        studio_class, notifications = schedule_service.cancel_class(db, class_id, actor=actor_for(admin))
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    if notifications:
        background_tasks.add_task(notification_service.send_emails, notifications)
    return studio_class

@router.post("/{class_id}/complete", response_model=schemas.CompletionResult)
def complete_class(
    class_id: int,
    payload: schemas.ClassComplete,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        summary = schedule_service.complete_class(
            db, class_id, notes=payload.notes, actor=actor_for(admin)
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    return schemas.CompletionResult(
        studio_class=schemas.StudioClass.model_validate(summary.studio_class),
        completed_reservation_ids=[item.id for item in summary.completed],
        no_show_reservation_ids=[item.id for item in summary.no_show],
        not_checked_in_reservation_ids=[item.id for item in summary.not_checked_in],
    )

@router.get("/{class_id}/availability", response_model=schemas.ClassAvailability)
def class_availability(
    class_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_user),
):
    try:
        return schedule_service.frame_availability(db, class_id)
    except BookingError as exc:
        raise deps.http_error(exc) from exc
