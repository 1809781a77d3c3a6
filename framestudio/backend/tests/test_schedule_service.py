from datetime import datetime, timedelta, timezone

import pytest

from app.core.constants import CLASS_COMPLETED
from app.db import models
from app.services import reservation_service, schedule_service
from app.services.errors import ConflictError, InvalidRequestError, NotFoundError
from factories import create_class, create_package, create_reservation, create_user


def book(session, user, studio_class, **kwargs):
    return reservation_service.create_reservation(
        session,
        class_id=studio_class.id,
        user_id=user.id,
        frame_size=models.FrameSize.medium,
        **kwargs,
    )


def test_create_class_defaults_end_from_duration(db_session):
    class_type = models.ClassType(name="Portrait", duration_min=90, default_price=500)
    db_session.add(class_type)
    db_session.commit()
    starts_at = datetime.now(timezone.utc) + timedelta(days=3)

    studio_class = schedule_service.create_class(
        db_session, class_type_id=class_type.id, starts_at=starts_at, capacity=4
    )

    assert studio_class.ends_at - studio_class.starts_at == timedelta(minutes=90)
    assert studio_class.available_spots == 4
    assert studio_class.status == models.ClassStatus.scheduled


def test_growing_capacity_promotes_waitlist(db_session):
    studio_class = create_class(db_session, capacity=1)
    book(db_session, create_user(db_session), studio_class)
    waiting = [create_user(db_session) for _ in range(2)]
    for user in waiting:
        assert book(db_session, user, studio_class).kind == "waitlisted"

    updated, promoted = schedule_service.change_capacity(db_session, studio_class.id, 2)

    assert [item.user_id for item in promoted] == [waiting[0].id]
    assert updated.status == models.ClassStatus.full
    remaining = db_session.query(models.WaitlistEntry).all()
    assert [(entry.user_id, entry.priority) for entry in remaining] == [(waiting[1].id, 1)]


def test_capacity_cannot_drop_below_bookings(db_session):
    studio_class = create_class(db_session, capacity=3)
    for _ in range(2):
        book(db_session, create_user(db_session), studio_class)

    with pytest.raises(ConflictError):
        schedule_service.change_capacity(db_session, studio_class.id, 1)

    updated, promoted = schedule_service.change_capacity(db_session, studio_class.id, 2)
    assert promoted == []
    assert updated.status == models.ClassStatus.full


def test_cancel_class_returns_credits_and_clears_waitlist(db_session):
    studio_class = create_class(db_session, capacity=1)
    student = create_user(db_session)
    package = create_package(db_session, student, total=2)
    book(db_session, student, studio_class, package_id=package.id)
    book(db_session, create_user(db_session), studio_class)

    cancelled, notifications = schedule_service.cancel_class(db_session, studio_class.id)

    assert cancelled.status == models.ClassStatus.cancelled
    assert [item.to for item in notifications] == [student.email]
    assert "returned" in notifications[0].text
    db_session.refresh(package)
    assert package.used_credits == 0
    assert db_session.query(models.WaitlistEntry).count() == 0
    statuses = {item.status for item in db_session.query(models.Reservation)}
    assert statuses == {models.ReservationStatus.cancelled}


def test_listing_reports_frame_availability(db_session):
    studio_class = create_class(db_session, capacity=6, small=2, medium=3, large=1)
    book(db_session, create_user(db_session), studio_class)

    [listed] = schedule_service.list_classes(db_session, bookable_only=True)

    assert listed.id == studio_class.id
    assert listed.booked == 1
    assert listed.available_spots == 5
    medium = next(row for row in listed.frame_availability if row["frame_size"] == "medium")
    assert medium == {"frame_size": "medium", "capacity": 3, "booked": 1, "available": 2}


def test_frame_capacity_cannot_drop_below_bookings(db_session):
    studio_class = create_class(db_session, capacity=6, small=2, medium=3, large=1)
    for _ in range(2):
        reservation_service.create_reservation(
            db_session,
            class_id=studio_class.id,
            user_id=create_user(db_session).id,
            frame_size=models.FrameSize.small,
        )

    with pytest.raises(ConflictError, match="small"):
        schedule_service.update_class(db_session, studio_class.id, small_frame_capacity=1)

    db_session.refresh(studio_class)
    assert studio_class.small_frame_capacity == 2

    updated = schedule_service.update_class(db_session, studio_class.id, medium_frame_capacity=1)
    assert updated.medium_frame_capacity == 1


def checked_in_class(session, *students):
    studio_class = create_class(session, starts_in=timedelta(hours=-1))
    reservations = [create_reservation(session, student, studio_class) for student in students]
    return studio_class, reservations


def test_complete_class_closes_checked_in_reservations(db_session):
    present, absent, late = (create_user(db_session) for _ in range(3))
    studio_class, (attended, skipped, unmarked) = checked_in_class(db_session, present, absent, late)
    studio_class.notes = "Bring glass cutters"
    attended.status = models.ReservationStatus.checked_in
    skipped.status = models.ReservationStatus.no_show
    db_session.commit()

    summary = schedule_service.complete_class(db_session, studio_class.id, notes=" all good ")

    assert summary.studio_class.status == models.ClassStatus.completed
    assert [item.id for item in summary.completed] == [attended.id]
    assert [item.id for item in summary.no_show] == [skipped.id]
    assert [item.id for item in summary.not_checked_in] == [unmarked.id]
    db_session.refresh(attended)
    db_session.refresh(unmarked)
    assert attended.status == models.ReservationStatus.completed
    assert unmarked.status == models.ReservationStatus.confirmed
    assert summary.studio_class.notes.startswith("Bring glass cutters\n\n--- Completion notes (")
    assert summary.studio_class.notes.endswith("---\nall good")
    log = db_session.query(models.AuditLog).filter_by(action=CLASS_COMPLETED).one()
    assert log.new_values["completed"] == 1


def test_complete_class_guards(db_session):
    upcoming = create_class(db_session)
    create_reservation(
        db_session, create_user(db_session), upcoming, status=models.ReservationStatus.checked_in
    )
    with pytest.raises(InvalidRequestError, match="not started"):
        schedule_service.complete_class(db_session, upcoming.id)

    nobody_checked_in, _ = checked_in_class(db_session, create_user(db_session))
    with pytest.raises(InvalidRequestError, match="No students are checked in"):
        schedule_service.complete_class(db_session, nobody_checked_in.id)

    cancelled = create_class(db_session, starts_in=timedelta(hours=-1))
    cancelled.status = models.ClassStatus.cancelled
    db_session.commit()
    with pytest.raises(InvalidRequestError, match="cancelled"):
        schedule_service.complete_class(db_session, cancelled.id)

    with pytest.raises(NotFoundError):
        schedule_service.complete_class(db_session, 999)


def test_complete_class_twice_is_rejected(db_session):
    studio_class, (reservation,) = checked_in_class(db_session, create_user(db_session))
    reservation.status = models.ReservationStatus.checked_in
    db_session.commit()
    schedule_service.complete_class(db_session, studio_class.id)

    with pytest.raises(InvalidRequestError, match="already completed"):
        schedule_service.complete_class(db_session, studio_class.id)
