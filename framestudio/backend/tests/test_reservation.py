from datetime import timedelta

import pytest

from app.db import models
from app.services import occupancy, reservation_service
from app.services.errors import ConflictError, InvalidRequestError, NotFoundError
from factories import create_class, create_package, create_user


def book(session, user, studio_class, **kwargs):
    kwargs.setdefault("frame_size", models.FrameSize.small)
    return reservation_service.create_reservation(
        session, class_id=studio_class.id, user_id=user.id, **kwargs
    )


def test_small_frame_booking_then_waitlist(db_session):
    studio_class = create_class(db_session, capacity=6, small=1, medium=0, large=0)
    first = create_user(db_session)
    second = create_user(db_session)

    created = book(db_session, first, studio_class)
    assert created.kind == "created"
    assert created.reservation.status == models.ReservationStatus.confirmed

    waitlisted = book(db_session, second, studio_class)
    assert waitlisted.kind == "waitlisted"
    assert waitlisted.reservation is None
    assert waitlisted.waitlist_entry.priority == 1
    assert db_session.query(models.Reservation).count() == 1


def test_second_booking_for_same_class_conflicts(db_session):
    studio_class = create_class(db_session)
    user = create_user(db_session)
    book(db_session, user, studio_class)

    with pytest.raises(ConflictError):
        book(db_session, user, studio_class)
    assert db_session.query(models.Reservation).filter_by(user_id=user.id).count() == 1


def test_waitlisted_student_cannot_book_again(db_session):
    studio_class = create_class(db_session, capacity=1)
    book(db_session, create_user(db_session), studio_class)
    waiting = create_user(db_session)
    book(db_session, waiting, studio_class)

    with pytest.raises(ConflictError, match="waitlist"):
        book(db_session, waiting, studio_class)


def test_class_status_follows_bookings(db_session):
    studio_class = create_class(db_session, capacity=2)

    outcome = book(db_session, create_user(db_session), studio_class)
    assert outcome.class_status == models.ClassStatus.scheduled

    outcome = book(db_session, create_user(db_session), studio_class, frame_size=models.FrameSize.medium)
    assert outcome.class_status == models.ClassStatus.full
    assert outcome.booked == 2
    db_session.refresh(studio_class)
    assert studio_class.status == models.ClassStatus.full


def test_admin_needs_override_past_capacity(db_session):
    studio_class = create_class(db_session, capacity=1)
    book(db_session, create_user(db_session), studio_class)
    extra = create_user(db_session)

    warning = book(db_session, extra, studio_class, is_admin=True)
    assert warning.kind == "override_required"
    assert warning.booked == 1
    assert warning.class_capacity == 1
    assert db_session.query(models.WaitlistEntry).count() == 0

    forced = book(db_session, extra, studio_class, is_admin=True, force_override=True)
    assert forced.kind == "created"
    assert db_session.query(models.Reservation).count() == 2


def test_booking_with_package_consumes_credit(db_session):
    studio_class = create_class(db_session)
    user = create_user(db_session)
    package = create_package(db_session, user, total=1)

    outcome = book(db_session, user, studio_class, package_id=package.id)

    assert outcome.reservation.package_id == package.id
    db_session.refresh(package)
    assert package.used_credits == 1
    assert package.status == models.PackageStatus.used_up


def test_unusable_package_rejects_without_writing(db_session):
    studio_class = create_class(db_session)
    user = create_user(db_session)
    package = create_package(db_session, user, total=2, used=2)

    with pytest.raises(InvalidRequestError, match="No credits"):
        book(db_session, user, studio_class, package_id=package.id)
    assert db_session.query(models.Reservation).count() == 0


def test_missing_class_or_student(db_session):
    studio_class = create_class(db_session)
    with pytest.raises(NotFoundError):
        reservation_service.create_reservation(
            db_session, class_id=studio_class.id, user_id=999, frame_size=models.FrameSize.small
        )
    with pytest.raises(NotFoundError):
        reservation_service.create_reservation(
            db_session,
            class_id=999,
            user_id=create_user(db_session).id,
            frame_size=models.FrameSize.small,
        )


def test_started_class_is_closed_for_students(db_session):
    studio_class = create_class(db_session, starts_in=timedelta(hours=-1))

    with pytest.raises(InvalidRequestError, match="already started"):
        book(db_session, create_user(db_session), studio_class)


def test_rebooking_reuses_cancelled_reservation(db_session):
    studio_class = create_class(db_session)
    user = create_user(db_session)
    first = book(db_session, user, studio_class).reservation
    reservation_service.cancel_reservation(db_session, first.id)

    again = book(db_session, user, studio_class).reservation

    assert again.id == first.id
    assert again.status == models.ReservationStatus.confirmed
    assert again.cancelled_at is None


def test_admin_update_reactivation_consumes_credit(db_session):
    studio_class = create_class(db_session)
    user = create_user(db_session)
    package = create_package(db_session, user, total=4)
    reservation = book(db_session, user, studio_class, package_id=package.id).reservation
    reservation_service.cancel_reservation(db_session, reservation.id)
    db_session.refresh(package)
    assert package.used_credits == 0

    reservation_service.update_reservation(
        db_session, reservation.id, status=models.ReservationStatus.confirmed, notes=" front row "
    )

    db_session.refresh(package)
    db_session.refresh(reservation)
    assert reservation.status == models.ReservationStatus.confirmed
    assert reservation.notes == "front row"
    assert package.used_credits == 1


def test_reactivating_into_a_full_class_conflicts(db_session):
    studio_class = create_class(db_session, capacity=1)
    owner = create_user(db_session)
    package = create_package(db_session, owner, total=4)
    reservation = book(db_session, owner, studio_class, package_id=package.id).reservation
    reservation_service.cancel_reservation(db_session, reservation.id)
    assert book(db_session, create_user(db_session), studio_class).kind == "created"

    with pytest.raises(ConflictError):
        reservation_service.update_reservation(
            db_session, reservation.id, status=models.ReservationStatus.confirmed
        )

    db_session.refresh(reservation)
    db_session.refresh(package)
    assert reservation.status == models.ReservationStatus.cancelled
    assert package.used_credits == 0
    assert occupancy.count_active(db_session, studio_class.id) == 1


def test_no_show_back_to_confirmed_needs_a_free_frame(db_session):
    studio_class = create_class(db_session, capacity=2, small=1, medium=0, large=0)
    absent = create_user(db_session)
    reservation = book(db_session, absent, studio_class).reservation
    reservation_service.update_reservation(
        db_session, reservation.id, status=models.ReservationStatus.no_show
    )
    assert book(db_session, create_user(db_session), studio_class).kind == "created"

    with pytest.raises(ConflictError):
        reservation_service.update_reservation(
            db_session, reservation.id, status=models.ReservationStatus.confirmed
        )

    db_session.refresh(reservation)
    assert reservation.status == models.ReservationStatus.no_show
    assert occupancy.active_frame_sizes(db_session, studio_class.id) == [models.FrameSize.small]
