from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import payment_service
from ...services.audit_service import actor_for
from ...services.errors import BookingError

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=list[schemas.Payment])
def list_payments(
    user_id: int | None = None,
    status: models.PaymentStatus | None = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    return payment_service.list_payments(db, user_id=user_id, status=status)


@router.post("", response_model=schemas.Payment, status_code=201)
def create_payment(
    payload: schemas.PaymentCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        return payment_service.record_payment(db, actor=actor_for(admin), **payload.model_dump())
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.patch("/{payment_id}", response_model=schemas.Payment)
def update_payment(
    payment_id: int,
    payload: schemas.PaymentStatusUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        return payment_service.update_payment_status(
            db, payment_id, payload.status, actor=actor_for(admin)
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
