import pytest

from app.core.constants import CREDIT_DEDUCTED, CREDIT_RESTORED
from app.db import models
from app.services import attendance_service, occupancy, reservation_service
from app.services.errors import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
)
from factories import create_class, create_package, create_reservation, create_user


@pytest.fixture()
def lesson(db_session):
    instructor = create_user(db_session, role=models.UserRole.instructor)
    studio_class = create_class(db_session, instructor=instructor)
    student = create_user(db_session)
    return instructor, studio_class, student


def test_check_in_and_revert_moves_one_credit(db_session, lesson):
    instructor, studio_class, student = lesson
    package = create_package(db_session, student, total=4, used=2)
    reservation = create_reservation(db_session, student, studio_class, package=package)

    result = attendance_service.set_attendance(
        db_session,
        reservation_id=reservation.id,
        status=models.ReservationStatus.checked_in,
        instructor_id=instructor.id,
    )
    assert result.previous_status == models.ReservationStatus.confirmed
    assert result.credit_delta == 1
    assert (result.used_credits_before, result.used_credits_after) == (2, 3)
    assert result.reservation.checked_in_at is not None

    result = attendance_service.set_attendance(
        db_session,
        reservation_id=reservation.id,
        status=models.ReservationStatus.confirmed,
        instructor_id=instructor.id,
    )
    assert result.credit_delta == -1
    db_session.refresh(package)
    assert package.used_credits == 2

    actions = [
        entry.action
        for entry in db_session.query(models.AuditLog).order_by(models.AuditLog.id)
        if entry.table_name == "packages"
    ]
    assert actions == [CREDIT_DEDUCTED, CREDIT_RESTORED]


def test_last_credit_marks_package_used_up(db_session, lesson):
    _, studio_class, student = lesson
    package = create_package(db_session, student, total=3, used=2)
    reservation = create_reservation(db_session, student, studio_class, package=package)

    attendance_service.set_attendance(
        db_session, reservation_id=reservation.id, status=models.ReservationStatus.completed
    )

    db_session.refresh(package)
    assert package.used_credits == 3
    assert package.status == models.PackageStatus.used_up


def test_moving_between_attended_statuses_keeps_balance(db_session, lesson):
    _, studio_class, student = lesson
    package = create_package(db_session, student, total=4, used=1)
    reservation = create_reservation(db_session, student, studio_class, package=package)

    attendance_service.set_attendance(
        db_session, reservation_id=reservation.id, status=models.ReservationStatus.checked_in
    )
    result = attendance_service.set_attendance(
        db_session,
        reservation_id=reservation.id,
        status=models.ReservationStatus.completed,
        progress_notes="  finished the sketch  ",
    )

    assert result.credit_delta == 0
    assert result.reservation.notes == "finished the sketch"
    db_session.refresh(package)
    assert package.used_credits == 2


def test_no_show_without_package(db_session, lesson):
    _, studio_class, student = lesson
    reservation = create_reservation(db_session, student, studio_class)

    result = attendance_service.set_attendance(
        db_session, reservation_id=reservation.id, status=models.ReservationStatus.no_show
    )

    assert result.reservation.status == models.ReservationStatus.no_show
    assert result.used_credits_after is None


def test_other_instructor_is_denied(db_session, lesson):
    _, studio_class, student = lesson
    stranger = create_user(db_session, role=models.UserRole.instructor)
    reservation = create_reservation(db_session, student, studio_class)

    with pytest.raises(PermissionDeniedError):
        attendance_service.set_attendance(
            db_session,
            reservation_id=reservation.id,
            status=models.ReservationStatus.completed,
            instructor_id=stranger.id,
        )
    db_session.refresh(reservation)
    assert reservation.status == models.ReservationStatus.confirmed


def test_cancelled_reservation_is_rejected(db_session, lesson):
    _, studio_class, student = lesson
    reservation = create_reservation(
        db_session, student, studio_class, status=models.ReservationStatus.cancelled
    )

    with pytest.raises(InvalidRequestError, match="cancelled"):
        attendance_service.set_attendance(
            db_session, reservation_id=reservation.id, status=models.ReservationStatus.completed
        )


def test_cancelled_is_not_an_attendance_status(db_session, lesson):
    _, studio_class, student = lesson
    reservation = create_reservation(db_session, student, studio_class)

    with pytest.raises(InvalidRequestError, match="Invalid attendance status"):
        attendance_service.set_attendance(
            db_session, reservation_id=reservation.id, status=models.ReservationStatus.cancelled
        )


def test_missing_reservation(db_session):
    with pytest.raises(NotFoundError):
        attendance_service.set_attendance(
            db_session, reservation_id=404, status=models.ReservationStatus.completed
        )


def test_roster_summary(db_session, lesson):
    instructor, studio_class, student = lesson
    create_reservation(db_session, student, studio_class, status=models.ReservationStatus.checked_in)
    create_reservation(db_session, create_user(db_session), studio_class)
    create_reservation(
        db_session, create_user(db_session), studio_class, status=models.ReservationStatus.cancelled
    )

    roster = attendance_service.class_roster(db_session, studio_class.id, instructor_id=instructor.id)

    assert len(roster.reservations) == 2
    assert roster.summary["checked_in"] == 1
    assert roster.summary["confirmed"] == 1
    assert roster.summary["total"] == 2

    stranger = create_user(db_session, role=models.UserRole.instructor)
    with pytest.raises(PermissionDeniedError):
        attendance_service.class_roster(db_session, studio_class.id, instructor_id=stranger.id)


def test_no_show_frees_the_place_until_it_is_taken(db_session):
    studio_class = create_class(db_session, capacity=1, small=1, medium=0, large=0)
    first = create_user(db_session)
    second = create_user(db_session)
    reservation = reservation_service.create_reservation(
        db_session, class_id=studio_class.id, user_id=first.id, frame_size=models.FrameSize.small
    ).reservation
    db_session.refresh(studio_class)
    assert studio_class.status == models.ClassStatus.full

    attendance_service.set_attendance(
        db_session, reservation_id=reservation.id, status=models.ReservationStatus.no_show
    )
    db_session.refresh(studio_class)
    assert studio_class.status == models.ClassStatus.scheduled

    taken = reservation_service.create_reservation(
        db_session, class_id=studio_class.id, user_id=second.id, frame_size=models.FrameSize.small
    )
    assert taken.kind == "created"

    with pytest.raises(ConflictError):
        attendance_service.set_attendance(
            db_session, reservation_id=reservation.id, status=models.ReservationStatus.confirmed
        )

    db_session.refresh(reservation)
    db_session.refresh(studio_class)
    assert reservation.status == models.ReservationStatus.no_show
    assert occupancy.active_frame_sizes(db_session, studio_class.id) == [models.FrameSize.small]
    assert studio_class.status == models.ClassStatus.full


def test_no_show_can_come_back_while_there_is_room(db_session, lesson):
    _, studio_class, student = lesson
    reservation = create_reservation(
        db_session, student, studio_class, status=models.ReservationStatus.no_show
    )

    result = attendance_service.set_attendance(
        db_session, reservation_id=reservation.id, status=models.ReservationStatus.checked_in
    )

    assert result.reservation.status == models.ReservationStatus.checked_in
    assert occupancy.count_active(db_session, studio_class.id) == 1
