from school_service.domain.entities import Role
from school_service.infrastructure.models import Class, Grade, Student


def new_student(**overrides):
    payload = {"id": "s9", "username": "s9", "password": "secret123", "name": "Sky", "surname": "Eve"}
    payload.update(overrides)
    return payload


def test_admin_creates_student(client, school, login_as, db):
    response = client.post("/api/students", json=new_student(class_id=school.c2.id, parent_id="p1", sex="female"),
                           headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["id"] == "s9"
    assert data["sex"] == "FEMALE"
    assert "password" not in data and "password_hash" not in data
    assert db.get(Student, "s9").password_hash.startswith("$bcrypt-sha256$")


def test_duplicate_username_conflicts(client, school, login_as):
    response = client.post("/api/students", json=new_student(id="s10", username="s1"),
                           headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 409


def test_teacher_enrolls_only_into_own_classes(client, school, login_as):
    headers = login_as("t1", Role.TEACHER)
    assert client.post("/api/students", json=new_student(class_id=school.c2.id), headers=headers).status_code == 403
    assert client.post("/api/students", json=new_student(class_id=school.c1.id), headers=headers).status_code == 201


def test_missing_fields_are_reported(client, school, login_as):
    response = client.post("/api/students", json={"username": "x"}, headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["errors"]}
    assert {"password", "name", "surname"} <= fields


def test_student_list_search(client, school, login_as):
    response = client.get("/api/students?search=dale", headers=login_as("a1", Role.ADMIN))
    assert {item["id"] for item in response.json()["items"]} == {"s2", "s3"}


def test_teacher_lists_students_of_taught_classes(client, school, login_as):
    response = client.get("/api/students", headers=login_as("t1", Role.TEACHER))
    assert {item["id"] for item in response.json()["items"]} == {"s1", "s2"}
    response = client.get(f"/api/students?classId={school.c2.id}", headers=login_as("t1", Role.TEACHER))
    assert response.json()["items"] == []


def test_parent_cannot_read_other_child(client, school, login_as):
    headers = login_as("p1", Role.PARENT)
    assert client.get("/api/students/s1", headers=headers).status_code == 200
    assert client.get("/api/students/s2", headers=headers).status_code == 404


def test_update_student_password(client, school, login_as, db):
    response = client.put("/api/students/s2", json={"phone": "555", "password": "newsecret"},
                          headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 200
    assert response.json()["phone"] == "555"
    db.expire_all()
    assert db.get(Student, "s2").password_hash != "!"


def test_teacher_cannot_reset_student_password(client, school, login_as, db):
    response = client.put("/api/students/s1", json={"password": "hijacked"},
                          headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 403
    db.expire_all()
    assert db.get(Student, "s1").password_hash == "!"


def test_teacher_cannot_relink_parent(client, school, login_as, db):
    headers = login_as("t1", Role.TEACHER)
    response = client.put("/api/students/s1", json={"parent_id": "p2"}, headers=headers)
    assert response.status_code == 403
    assert client.post("/api/students", json=new_student(class_id=school.c1.id, parent_id="p1"),
                       headers=headers).status_code == 403
    db.expire_all()
    assert db.get(Student, "s1").parent_id == "p1"


def test_only_admin_removes_student_from_class(client, school, login_as, db):
    response = client.put("/api/students/s1", json={"class_id": None}, headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 403
    response = client.put("/api/students/s1", json={"class_id": None}, headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 200
    db.expire_all()
    assert db.get(Student, "s1").class_id is None


def test_teacher_updates_student_contact(client, school, login_as):
    response = client.put("/api/students/s1", json={"phone": "777"}, headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 200
    assert response.json()["phone"] == "777"


def test_delete_student(client, school, login_as, db):
    assert client.delete("/api/students/s3", headers=login_as("a1", Role.ADMIN)).status_code == 204
    db.expire_all()
    assert db.get(Student, "s3") is None


def test_teacher_with_subjects(client, school, login_as):
    payload = {"id": "t9", "username": "t9", "password": "secret123", "name": "Ted", "surname": "Fox",
               "subject_ids": [school.english.id]}
    response = client.post("/api/teachers", json=payload, headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 201, response.text
    assert [s["name"] for s in response.json()["subjects"]] == ["English"]


def test_teacher_unknown_subject(client, school, login_as):
    payload = {"username": "t9", "password": "secret123", "name": "Ted", "surname": "Fox", "subject_ids": [999]}
    response = client.post("/api/teachers", json=payload, headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 400


def test_parent_sees_children_teachers(client, school, login_as):
    response = client.get("/api/teachers", headers=login_as("p1", Role.PARENT))
    assert {item["id"] for item in response.json()["items"]} == {"t1", "t2"}


def test_teacher_with_lessons_cannot_be_deleted(client, school, login_as):
    response = client.delete("/api/teachers/t1", headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 400


def test_parents_visible_to_teacher(client, school, login_as):
    response = client.get("/api/parents", headers=login_as("t1", Role.TEACHER))
    assert {item["id"] for item in response.json()["items"]} == {"p1", "p2"}


def test_create_parent(client, school, login_as):
    payload = {"username": "p9", "password": "secret123", "name": "Pia", "surname": "Gray", "email": "pia@example.com"}
    response = client.post("/api/parents", json=payload, headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 201
    assert response.json()["email"] == "pia@example.com"


def test_create_class_with_grade(client, school, login_as, db):
    response = client.post("/api/classes", json={"name": "2A", "grade_level": 2, "supervisor_id": "t1"},
                           headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 201, response.text
    assert response.json()["supervisor_id"] == "t1"
    assert db.query(Grade).filter(Grade.level == 2).count() == 1


def test_teacher_cannot_change_supervisor(client, school, login_as):
    response = client.put(f"/api/classes/{school.c1.id}", json={"supervisor_id": "t1"},
                          headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 403


def test_teacher_updates_own_class(client, school, login_as, db):
    class_id = school.c1.id
    response = client.put(f"/api/classes/{class_id}", json={"capacity": 25}, headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 200
    db.expire_all()
    assert db.get(Class, class_id).capacity == 25


def test_capacity_below_enrollment(client, school, login_as):
    response = client.put(f"/api/classes/{school.c1.id}", json={"capacity": 1}, headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 400


def test_subjects_are_visible_to_everyone(client, school, login_as):
    for user_id, role in (("s1", Role.STUDENT), ("p2", Role.PARENT), ("t1", Role.TEACHER)):
        body = client.get("/api/subjects", headers=login_as(user_id, role)).json()
        assert body["total"] == 2


def test_subject_filter_by_teacher(client, school, login_as):
    body = client.get("/api/subjects?teacherId=t1", headers=login_as("a1", Role.ADMIN)).json()
    assert [item["name"] for item in body["items"]] == ["Math"]


def test_subject_in_use_cannot_be_deleted(client, school, login_as):
    response = client.delete(f"/api/subjects/{school.math.id}", headers=login_as("a1", Role.ADMIN))
    assert response.status_code == 400
