from school_service.domain.entities import Role
from school_service.infrastructure.models import Lesson


def lesson_payload(school, **overrides):
    payload = {
        "name": "Extra math",
        "day": "wednesday",
        "start_time": "2024-01-03T09:00:00Z",
        "end_time": "2024-01-03T10:00:00Z",
        "subject_id": school.math.id,
        "class_id": school.c1.id,
    }
    payload.update(overrides)
    return payload


def test_teacher_creates_lesson_for_self(client, school, login_as):
    response = client.post("/api/lessons", json=lesson_payload(school), headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 201, response.text
    assert response.json()["teacher_id"] == "t1"
    assert response.json()["day"] == "WEDNESDAY"


def test_teacher_cannot_schedule_for_colleague(client, school, login_as):
    response = client.post("/api/lessons", json=lesson_payload(school, teacher_id="t2"),
                           headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 403


def test_admin_must_name_teacher(client, school, login_as):
    response = client.post("/api/lessons", json=lesson_payload(school), headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "teacher_id"


def test_time_conflict_for_class(client, school, login_as):
    # l1: MONDAY 9-10 в классе c1
    payload = lesson_payload(school, day="MONDAY", teacher_id="t2",
                             start_time="2024-01-01T09:30:00Z", end_time="2024-01-01T10:30:00Z")
    response = client.post("/api/lessons", json=payload, headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 400
    assert "conflict" in response.json()["message"].lower()


def test_adjacent_lessons_do_not_conflict(client, school, login_as):
    payload = lesson_payload(school, day="MONDAY", start_time="2024-01-01T10:00:00Z", end_time="2024-01-01T11:00:00Z")
    response = client.post("/api/lessons", json=payload, headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 201, response.text


def test_end_before_start(client, school, login_as):
    payload = lesson_payload(school, start_time="2024-01-03T10:00:00Z", end_time="2024-01-03T09:00:00Z")
    response = client.post("/api/lessons", json=payload, headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 400


def test_student_cannot_create_lesson(client, school, login_as):
    response = client.post("/api/lessons", json=lesson_payload(school), headers=login_as("s1", Role.STUDENT))
    assert response.status_code == 403
    assert response.json()["error"] == "AuthorizationError"


def test_update_into_conflict(client, school, login_as):
    # переносим l3 (t2, c1) на понедельник 9:00, где у c1 уже l1
    response = client.put(f"/api/lessons/{school.l3.id}", json={"day": "MONDAY",
                                                               "start_time": "2024-01-01T09:00:00Z",
                                                               "end_time": "2024-01-01T10:00:00Z"},
                          headers=login_as("t2", Role.TEACHER))
    assert response.status_code == 400


def test_teacher_cannot_touch_foreign_lesson(client, school, login_as):
    headers = login_as("t1", Role.TEACHER)
    assert client.put(f"/api/lessons/{school.l2.id}", json={"name": "Mine"}, headers=headers).status_code == 404
    assert client.delete(f"/api/lessons/{school.l2.id}", headers=headers).status_code == 404


def test_list_filters_by_day(client, school, login_as):
    response = client.get("/api/lessons?day=tuesday", headers=login_as("s1", Role.STUDENT))
    assert response.status_code == 200
    assert [item["id"] for item in response.json()["items"]] == [school.l3.id]


def test_parent_sees_children_lessons(client, school, login_as):
    response = client.get("/api/lessons", headers=login_as("p2", Role.PARENT))
    assert {item["id"] for item in response.json()["items"]} == {school.l1.id, school.l2.id, school.l3.id}


def test_delete_lesson_cascades(client, school, login_as, db):
    lesson_id = school.l1.id
    response = client.delete(f"/api/lessons/{lesson_id}", headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 204
    db.expire_all()
    assert db.get(Lesson, lesson_id) is None
