from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import notification_service, reservation_service
from ...services.audit_service import actor_for
from ...services.errors import BookingError

router = APIRouter(prefix="/reservations", tags=["reservations"])


def notify_confirmed(background_tasks: BackgroundTasks, reservations: list[models.Reservation]) -> None:
    notifications = [notification_service.build_booking_confirmation(item) for item in reservations]
    if notifications:
        background_tasks.add_task(notification_service.send_emails, notifications)


def cancellation_result(outcome: reservation_service.CancellationOutcome) -> schemas.CancellationResult:
    return schemas.CancellationResult(
        reservation=schemas.Reservation.model_validate(outcome.reservation),
        credit_restored=outcome.credit_restored,
        promoted_reservation_ids=[item.id for item in outcome.promoted],
    )


@router.get("", response_model=list[schemas.Reservation])
def list_reservations(
    class_id: int | None = None,
    user_id: int | None = None,
    status_filter: models.ReservationStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.require_roles(models.UserRole.admin, models.UserRole.instructor)),
):
    instructor_id = user.id if user.role == models.UserRole.instructor else None
    return reservation_service.list_reservations(
        db,
        class_id=class_id,
        user_id=user_id,
        status=status_filter,
        instructor_id=instructor_id,
    )


@router.post("")
def create_reservation(
    payload: schemas.ReservationCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.require_roles(models.UserRole.admin, models.UserRole.student)),
):
    is_admin = user.role == models.UserRole.admin
    if is_admin:
        if payload.user_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="user_id is required")
        user_id = payload.user_id
    else:
        if payload.user_id not in (None, user.id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Students can only book for themselves")
        user_id = user.id
    try:
        outcome = reservation_service.create_reservation(
            db,
            class_id=payload.class_id,
            user_id=user_id,
            frame_size=payload.frame_size,
            package_id=payload.package_id,
            force_override=payload.force_override,
            is_admin=is_admin,
            notes=payload.notes,
            actor=actor_for(user),
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc

    if outcome.kind == "override_required":
        response.status_code = status.HTTP_409_CONFLICT
        return schemas.OverrideRequired(
            detail=outcome.capacity.message or "Class is at capacity",
            distribution=outcome.capacity.distribution.as_dict(),
            booked=outcome.booked,
            capacity=outcome.class_capacity,
        )
    if outcome.kind == "waitlisted":
        entry = outcome.waitlist_entry
        response.status_code = status.HTTP_202_ACCEPTED
        return schemas.WaitlistPosition(
            waitlist_entry_id=entry.id,
            position=entry.priority,
            class_id=entry.class_id,
            message=f"Class is full. You are number {entry.priority} on the waitlist.",
        )
    response.status_code = status.HTTP_201_CREATED
    notify_confirmed(background_tasks, [outcome.reservation])
    return schemas.ReservationCreated(
        reservation=schemas.Reservation.model_validate(outcome.reservation),
        class_status=outcome.class_status,
        booked=outcome.booked,
        capacity=outcome.class_capacity,
        message=outcome.capacity.message,
    )


@router.get("/{reservation_id}", response_model=schemas.Reservation)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_user),
):
    try:
        reservation = reservation_service.get_reservation(db, reservation_id)
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    if user.role == models.UserRole.student and reservation.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    if user.role == models.UserRole.instructor and reservation.studio_class.instructor_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return reservation


@router.patch("/{reservation_id}", response_model=schemas.CancellationResult)
def update_reservation(
    reservation_id: int,
    payload: schemas.ReservationUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        outcome = reservation_service.update_reservation(
            db,
            reservation_id,
            status=payload.status,
            notes=payload.notes,
            cancellation_reason=payload.cancellation_reason,
            restore_credits=payload.restore_credits,
            policy_override=payload.policy_override,
            actor=actor_for(admin),
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    notify_confirmed(background_tasks, outcome.promoted)
    return cancellation_result(outcome)


@router.delete("/{reservation_id}")
def delete_reservation(
    reservation_id: int,
    background_tasks: BackgroundTasks,
    restore_credits: bool = True,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        outcome = reservation_service.delete_reservation(
            db, reservation_id, restore_credits=restore_credits, actor=actor_for(admin)
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    notify_confirmed(background_tasks, outcome.promoted)
    return {
        "status": "deleted",
        "credit_restored": outcome.credit_restored,
        "promoted_reservation_ids": [item.id for item in outcome.promoted],
    }
