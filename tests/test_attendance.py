import pytest

from school_service.domain.entities import Role


@pytest.mark.parametrize("query", [
    "",
    "?studentId=s3",
    "?studentId=s2",
    "?present=true",
    "?present=false",
    "?date=2024-01-01",
    "?classId={c2}",
    "?lessonId={l2}",
])
def test_parent_sees_only_own_child(client, school, login_as, query):
    headers = login_as("p1", Role.PARENT)
    response = client.get("/api/attendance" + query.format(c2=school.c2.id, l2=school.l2.id), headers=headers)
    assert response.status_code == 200
    assert {item["student_id"] for item in response.json()["items"]} <= {"s1"}


def test_parent_attendance_rows(client, school, login_as):
    response = client.get("/api/attendance", headers=login_as("p1", Role.PARENT))
    body = response.json()
    assert body["total"] == 2
    assert {item["lesson_id"] for item in body["items"]} == {school.l1.id, school.l3.id}


def test_teacher_records_attendance(client, school, login_as):
    response = client.post(
        "/api/attendance",
        json={"student_id": "s2", "lesson_id": school.l1.id, "date": "2024-01-08", "present": True},
        headers=login_as("t1", Role.TEACHER),
    )
    assert response.status_code == 201, response.text
    assert response.json()["date"] == "2024-01-08"


def test_attendance_twice_same_day_conflicts(client, school, login_as):
    response = client.post(
        "/api/attendance",
        json={"student_id": "s1", "lesson_id": school.l1.id, "date": "2024-01-01"},
        headers=login_as("t1", Role.TEACHER),
    )
    assert response.status_code == 409


def test_teacher_cannot_record_foreign_lesson(client, school, login_as):
    response = client.post(
        "/api/attendance",
        json={"student_id": "s3", "lesson_id": school.l2.id, "date": "2024-01-08"},
        headers=login_as("t1", Role.TEACHER),
    )
    assert response.status_code == 403


def test_student_not_in_lesson_class(client, school, login_as):
    response = client.post(
        "/api/attendance",
        json={"student_id": "s3", "lesson_id": school.l1.id, "date": "2024-01-08"},
        headers=login_as("t1", Role.TEACHER),
    )
    assert response.status_code == 400


def test_parent_cannot_write(client, school, login_as):
    response = client.post(
        "/api/attendance",
        json={"student_id": "s1", "lesson_id": school.l1.id, "date": "2024-01-08"},
        headers=login_as("p1", Role.PARENT),
    )
    assert response.status_code == 403


def test_update_attendance(client, school, login_as):
    row_id = school.attendance[1].id
    response = client.put(f"/api/attendance/{row_id}", json={"present": True}, headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 200
    assert response.json()["present"] is True
