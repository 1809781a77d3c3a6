from datetime import datetime, timezone
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import schemas
from ...services import guest_booking_service, schedule_service
from ...services.errors import BookingError
from .reservations import notify_confirmed

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/classes", response_model=list[schemas.StudioClass])
def upcoming_classes(
    class_type_id: int | None = None,
    db: Session = Depends(get_db),
):
    return schedule_service.list_classes(
        db,
        from_dt=datetime.now(timezone.utc),
        class_type_id=class_type_id,
        bookable_only=True,
    )


@router.post("/book-class", response_model=schemas.GuestBookingResult, status_code=status.HTTP_201_CREATED)
def book_class(
    payload: schemas.GuestBookingCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        booking = guest_booking_service.book_as_guest(
            db,
            class_id=payload.class_id,
            email=payload.email,
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
            frame_size=payload.frame_size,
            payment_method=payload.payment_method,
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
    notify_confirmed(background_tasks, [booking.reservation])
    reservation = booking.reservation
    message = "Reservation confirmed."
    if booking.is_new_user:
        message += " Check your email to activate your account."
    return schemas.GuestBookingResult(
        reservation_uuid=reservation.uuid,
        class_id=reservation.class_id,
        frame_size=reservation.frame_size,
        status=reservation.status,
        is_new_user=booking.is_new_user,
        package_id=booking.package.id if booking.package else None,
        payment_id=booking.payment.id if booking.payment else None,
        message=message,
    )


@router.get("/reservation/{reservation_uuid}", response_model=schemas.PublicReservation)
def public_reservation(reservation_uuid: str, db: Session = Depends(get_db)):
    try:
        return guest_booking_service.get_public_reservation(db, reservation_uuid)
    except BookingError as exc:
        raise deps.http_error(exc) from exc
