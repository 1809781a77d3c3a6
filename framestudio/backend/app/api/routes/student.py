from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import package_service, reservation_service
from ...services.audit_service import actor_for
from ...services.errors import BookingError
from .reservations import cancellation_result, notify_confirmed

router = APIRouter(prefix="/student", tags=["student"])


@router.get("/reservations", response_model=list[schemas.Reservation])
def my_reservations(
    status: models.ReservationStatus | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_student),
):
    return reservation_service.list_reservations(db, user_id=user.id, status=status)


@router.post("/reservations/{reservation_id}/cancel", response_model=schemas.CancellationResult)
def cancel_my_reservation(
    reservation_id: int,
    payload: schemas.ReservationCancel,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_student),
):
    try:
        outcome = reservation_service.cancel_reservation(
            db,
            reservation_id,
            reason=payload.reason,
            enforce_window=True,
            user_id=user.id,
            actor=actor_for(user),
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    notify_confirmed(background_tasks, outcome.promoted)
    return cancellation_result(outcome)


@router.post("/reservations/{reservation_id}/reschedule", response_model=schemas.RescheduleResult)
def reschedule_my_reservation(
    reservation_id: int,
    payload: schemas.RescheduleRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_student),
):
    try:
        outcome = reservation_service.reschedule_reservation(
            db,
            reservation_id,
            payload.new_class_id,
            user_id=user.id,
            actor=actor_for(user),
        )
        reservation = reservation_service.get_reservation(db, outcome.reservation.id)
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    notify_confirmed(background_tasks, [reservation, *outcome.promoted])
    return schemas.RescheduleResult(
        reservation=schemas.Reservation.model_validate(reservation),
        previous_reservation_id=outcome.previous.id,
        credit_transferred=outcome.credit_transferred,
        promoted_reservation_ids=[item.id for item in outcome.promoted],
    )


@router.get("/credits", response_model=schemas.CreditSummary)
def my_credits(
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_student),
):
    return package_service.student_credits(db, user.id)
