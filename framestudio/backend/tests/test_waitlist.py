import pytest

from app.db import models
from app.services import reservation_service, schedule_service, waitlist_service
from app.services.errors import ConflictError, PermissionDeniedError
from factories import create_class, create_package, create_user


def fill_and_queue(session, waiting=3, capacity=1):
    studio_class = create_class(session, capacity=capacity)
    holders = []
    for _ in range(capacity):
        user = create_user(session)
        holders.append(
            reservation_service.create_reservation(
                session, class_id=studio_class.id, user_id=user.id, frame_size=models.FrameSize.medium
            ).reservation
        )
    queued = []
    for _ in range(waiting):
        user = create_user(session)
        outcome = reservation_service.create_reservation(
            session, class_id=studio_class.id, user_id=user.id, frame_size=models.FrameSize.medium
        )
        queued.append(outcome.waitlist_entry)
    return studio_class, holders, queued


def priorities(session, studio_class):
    entries = waitlist_service.list_entries(session, class_id=studio_class.id)
    return [(entry.user_id, entry.priority) for entry in entries]


def test_tail_insert_gives_contiguous_priorities(db_session):
    studio_class, _, queued = fill_and_queue(db_session, waiting=3)

    assert [entry.priority for entry in queued] == [1, 2, 3]
    assert [p for _, p in priorities(db_session, studio_class)] == [1, 2, 3]


def test_promotion_takes_head_and_compacts(db_session):
    studio_class, holders, queued = fill_and_queue(db_session, waiting=3)
    waiting_users = [entry.user_id for entry in queued]

    outcome = reservation_service.cancel_reservation(db_session, holders[0].id)

    assert outcome.promoted[0].user_id == waiting_users[0]
    assert priorities(db_session, studio_class) == [(waiting_users[1], 1), (waiting_users[2], 2)]


def test_removing_from_the_middle_compacts(db_session):
    studio_class, _, queued = fill_and_queue(db_session, waiting=3)
    admin = create_user(db_session, role=models.UserRole.admin)
    waiting_users = [entry.user_id for entry in queued]

    waitlist_service.remove_entry(db_session, queued[1].id, requester=admin)

    assert priorities(db_session, studio_class) == [(waiting_users[0], 1), (waiting_users[2], 2)]


def test_only_owner_or_admin_may_remove(db_session):
    _, _, queued = fill_and_queue(db_session, waiting=2)
    other_student = db_session.get(models.User, queued[0].user_id)

    with pytest.raises(PermissionDeniedError):
        waitlist_service.remove_entry(db_session, queued[1].id, requester=other_student)

    owner = db_session.get(models.User, queued[1].user_id)
    waitlist_service.remove_entry(db_session, queued[1].id, requester=owner)
    assert db_session.query(models.WaitlistEntry).count() == 1


def test_move_entry_reorders(db_session):
    studio_class, _, queued = fill_and_queue(db_session, waiting=3)
    a, b, c = (entry.user_id for entry in queued)

    waitlist_service.move_entry(db_session, queued[2].id, 1)
    assert priorities(db_session, studio_class) == [(c, 1), (a, 2), (b, 3)]

    waitlist_service.move_entry(db_session, queued[2].id, 99)
    assert priorities(db_session, studio_class) == [(a, 1), (b, 2), (c, 3)]


def test_add_entry_at_priority(db_session):
    studio_class, _, queued = fill_and_queue(db_session, waiting=2)
    newcomer = create_user(db_session)

    waitlist_service.add_entry(
        db_session,
        class_id=studio_class.id,
        user_id=newcomer.id,
        frame_size=models.FrameSize.small,
        priority=1,
    )

    assert priorities(db_session, studio_class) == [
        (newcomer.id, 1),
        (queued[0].user_id, 2),
        (queued[1].user_id, 3),
    ]


def test_promotion_skips_entries_that_do_not_fit(db_session):
    studio_class = create_class(db_session, capacity=6, small=1, medium=1, large=0)
    small_holder = create_user(db_session)
    medium_holder = create_user(db_session)
    small_reservation = reservation_service.create_reservation(
        db_session, class_id=studio_class.id, user_id=small_holder.id, frame_size=models.FrameSize.small
    ).reservation
    reservation_service.create_reservation(
        db_session, class_id=studio_class.id, user_id=medium_holder.id, frame_size=models.FrameSize.medium
    )
    wants_medium = create_user(db_session)
    wants_small = create_user(db_session)
    for user, size in ((wants_medium, models.FrameSize.medium), (wants_small, models.FrameSize.small)):
        outcome = reservation_service.create_reservation(
            db_session, class_id=studio_class.id, user_id=user.id, frame_size=size
        )
        assert outcome.kind == "waitlisted"

    outcome = reservation_service.cancel_reservation(db_session, small_reservation.id)

    assert [item.user_id for item in outcome.promoted] == [wants_small.id]
    assert priorities(db_session, studio_class) == [(wants_medium.id, 1)]


def test_manual_promotion_needs_a_free_place(db_session):
    studio_class, holders, queued = fill_and_queue(db_session, waiting=2)

    with pytest.raises(ConflictError, match="full capacity"):
        waitlist_service.promote_entry(db_session, queued[1].id)

    reservation_service.delete_reservation(db_session, holders[0].id)
    assert priorities(db_session, studio_class) == [(queued[1].user_id, 1)]

    schedule_service.change_capacity(db_session, studio_class.id, 3)
    assert priorities(db_session, studio_class) == []


def test_manual_promotion_consumes_package_credit(db_session):
    studio_class, _, queued = fill_and_queue(db_session, waiting=1)
    student = db_session.get(models.User, queued[0].user_id)
    package = create_package(db_session, student, total=3)
    studio_class.capacity = 2
    db_session.commit()

    reservation = waitlist_service.promote_entry(db_session, queued[0].id, package_id=package.id)

    assert reservation.user_id == student.id
    assert reservation.package_id == package.id
    db_session.refresh(package)
    assert package.used_credits == 1
    assert db_session.query(models.WaitlistEntry).count() == 0
