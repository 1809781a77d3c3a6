from datetime import timedelta

from app.db import models
from factories import create_class, create_package, create_reservation, create_user


def setup_data(session_factory, **class_kwargs):
    with session_factory() as session:
        student = create_user(session)
        other = create_user(session)
        admin = create_user(session, role=models.UserRole.admin)
        studio_class = create_class(session, **class_kwargs)
    return student, other, admin, studio_class


def test_booking_then_waitlist(api_client):
    client, session_factory, current = api_client
    student, other, _, studio_class = setup_data(session_factory, small=1, medium=0, large=0)

    current.user = student
    response = client.post(
        "/api/v1/reservations", json={"class_id": studio_class.id, "frame_size": "SMALL"}
    )
    assert response.status_code == 201
    body = response.json()
    assert body["reservation"]["status"] == "confirmed"
    assert body["reservation"]["frame_size"] == "small"
    assert body["booked"] == 1

    current.user = other
    response = client.post(
        "/api/v1/reservations", json={"class_id": studio_class.id, "frame_size": "small"}
    )
    assert response.status_code == 202
    assert response.json()["position"] == 1


def test_duplicate_booking_conflicts(api_client):
    client, session_factory, current = api_client
    student, _, _, studio_class = setup_data(session_factory)

    current.user = student
    payload = {"class_id": studio_class.id, "frame_size": "medium"}
    assert client.post("/api/v1/reservations", json=payload).status_code == 201
    response = client.post("/api/v1/reservations", json=payload)
    assert response.status_code == 409


def test_admin_gets_override_prompt(api_client):
    client, session_factory, current = api_client
    student, other, admin, studio_class = setup_data(session_factory, capacity=1)

    current.user = admin
    first = client.post(
        "/api/v1/reservations", json={"class_id": studio_class.id, "user_id": student.id}
    )
    assert first.status_code == 201

    response = client.post(
        "/api/v1/reservations", json={"class_id": studio_class.id, "user_id": other.id}
    )
    assert response.status_code == 409
    body = response.json()
    assert body["requires_override"] is True
    assert body["booked"] == 1

    forced = client.post(
        "/api/v1/reservations",
        json={"class_id": studio_class.id, "user_id": other.id, "force_override": True},
    )
    assert forced.status_code == 201
    assert forced.json()["booked"] == 2


def test_student_cannot_book_for_someone_else(api_client):
    client, session_factory, current = api_client
    student, other, _, studio_class = setup_data(session_factory)

    current.user = student
    response = client.post(
        "/api/v1/reservations", json={"class_id": studio_class.id, "user_id": other.id}
    )
    assert response.status_code == 403


def test_missing_class_is_404(api_client):
    client, session_factory, current = api_client
    student, _, _, _ = setup_data(session_factory)

    current.user = student
    response = client.post("/api/v1/reservations", json={"class_id": 9999})
    assert response.status_code == 404


def test_student_cancel_respects_window(api_client):
    client, session_factory, current = api_client
    with session_factory() as session:
        student = create_user(session)
        soon = create_class(session, starts_in=timedelta(hours=3))
        later = create_class(session, starts_in=timedelta(days=3))
        package = create_package(session, student, total=2, used=2)
        near = create_reservation(session, student, soon)
        far = create_reservation(session, student, later, package=package)

    current.user = student
    response = client.post(f"/api/v1/student/reservations/{near.id}/cancel", json={})
    assert response.status_code == 400

    response = client.post(
        f"/api/v1/student/reservations/{far.id}/cancel", json={"reason": "travelling"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["credit_restored"] is True
    assert body["reservation"]["status"] == "cancelled"

    with session_factory() as session:
        refreshed = session.get(models.Package, package.id)
        assert refreshed.used_credits == 1
        assert refreshed.status == models.PackageStatus.active


def test_admin_cancels_through_patch(api_client):
    client, session_factory, current = api_client
    student, other, admin, studio_class = setup_data(session_factory, capacity=1)

    current.user = student
    booked = client.post("/api/v1/reservations", json={"class_id": studio_class.id}).json()
    current.user = other
    assert client.post("/api/v1/reservations", json={"class_id": studio_class.id}).status_code == 202

    current.user = admin
    response = client.patch(
        f"/api/v1/reservations/{booked['reservation']['id']}",
        json={"status": "CANCELLED", "cancellation_reason": "studio closed"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["reservation"]["cancellation_reason"] == "studio closed"
    assert len(body["promoted_reservation_ids"]) == 1

    current.user = student
    response = client.patch(
        f"/api/v1/reservations/{booked['reservation']['id']}", json={"status": "confirmed"}
    )
    assert response.status_code == 403


def test_public_booking_and_lookup(api_client):
    client, session_factory, current = api_client
    with session_factory() as session:
        studio_class = create_class(session)

    response = client.post(
        "/api/v1/public/book-class",
        json={
            "class_id": studio_class.id,
            "email": "guest@example.com",
            "first_name": "Grace",
            "last_name": "Hopper",
            "frame_size": "LARGE",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["is_new_user"] is True
    assert body["frame_size"] == "large"

    lookup = client.get(f"/api/v1/public/reservation/{body['reservation_uuid']}")
    assert lookup.status_code == 200
    assert lookup.json()["status"] == "confirmed"
    assert client.get("/api/v1/public/reservation/not-a-code").status_code == 404


def test_student_reschedules_to_another_class(api_client):
    client, session_factory, current = api_client
    with session_factory() as session:
        student = create_user(session)
        current_class = create_class(session)
        target = create_class(session, capacity=1, starts_in=timedelta(days=4))
        package = create_package(session, student, total=3, used=1)
        reservation = create_reservation(session, student, current_class, package=package)

    current.user = student
    response = client.post(
        f"/api/v1/student/reservations/{reservation.id}/reschedule",
        json={"new_class_id": target.id},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["previous_reservation_id"] == reservation.id
    assert body["credit_transferred"] is True
    assert body["reservation"]["class_id"] == target.id
    assert body["reservation"]["status"] == "confirmed"

    response = client.post(
        f"/api/v1/student/reservations/{body['reservation']['id']}/reschedule",
        json={"new_class_id": current_class.id},
    )
    assert response.status_code == 200

    with session_factory() as session:
        assert session.get(models.Package, package.id).used_credits == 1
        assert session.get(models.StudioClass, target.id).status == models.ClassStatus.scheduled


def test_reschedule_someone_elses_reservation_is_forbidden(api_client):
    client, session_factory, current = api_client
    student, other, _, studio_class = setup_data(session_factory)
    with session_factory() as session:
        target = create_class(session, starts_in=timedelta(days=4))
        reservation = create_reservation(session, student, studio_class)

    current.user = other
    response = client.post(
        f"/api/v1/student/reservations/{reservation.id}/reschedule",
        json={"new_class_id": target.id},
    )
    assert response.status_code == 403
