from app.db import models
from factories import create_class, create_package, create_reservation, create_user


def setup_lesson(session_factory):
    with session_factory() as session:
        instructor = create_user(session, role=models.UserRole.instructor)
        student = create_user(session)
        studio_class = create_class(session, instructor=instructor)
        package = create_package(session, student, total=4, used=2)
        reservation = create_reservation(session, student, studio_class, package=package)
    return instructor, student, studio_class, package, reservation


def test_instructor_marks_attendance(api_client):
    client, session_factory, current = api_client
    instructor, _, studio_class, package, reservation = setup_lesson(session_factory)

    current.user = instructor
    response = client.post(
        "/api/v1/instructor/attendance",
        json={"reservation_id": reservation.id, "status": "CHECKED_IN"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["credit_delta"] == 1
    assert body["used_credits_after"] == 3
    assert body["reservation"]["status"] == "checked_in"

    response = client.post(
        "/api/v1/instructor/attendance",
        json={"reservation_id": reservation.id, "status": "confirmed"},
    )
    assert response.json()["used_credits_after"] == 2

    roster = client.get("/api/v1/instructor/attendance", params={"class_id": studio_class.id})
    assert roster.status_code == 200
    assert roster.json()["summary"]["confirmed"] == 1

    with session_factory() as session:
        assert session.get(models.Package, package.id).used_credits == 2


def test_other_instructor_gets_403(api_client):
    client, session_factory, current = api_client
    _, _, _, _, reservation = setup_lesson(session_factory)
    with session_factory() as session:
        stranger = create_user(session, role=models.UserRole.instructor)

    current.user = stranger
    response = client.post(
        "/api/v1/instructor/attendance",
        json={"reservation_id": reservation.id, "status": "completed"},
    )
    assert response.status_code == 403


def test_students_cannot_mark_attendance(api_client):
    client, session_factory, current = api_client
    _, student, _, _, reservation = setup_lesson(session_factory)

    current.user = student
    response = client.post(
        "/api/v1/instructor/attendance",
        json={"reservation_id": reservation.id, "status": "completed"},
    )
    assert response.status_code == 403


def test_cancelled_status_is_rejected(api_client):
    client, session_factory, current = api_client
    instructor, _, _, _, reservation = setup_lesson(session_factory)

    current.user = instructor
    response = client.post(
        "/api/v1/instructor/attendance",
        json={"reservation_id": reservation.id, "status": "cancelled"},
    )
    assert response.status_code == 400
