from school_service.domain.entities import Role


def test_inbox_and_sent(client, school, login_as):
    body = client.get("/api/messages", headers=login_as("t1", Role.TEACHER)).json()
    assert body["total"] == 2
    assert {item["content"] for item in body["items"]} == {"Sam did well", "Thanks"}


def test_admin_does_not_see_others_messages(client, school, login_as):
    body = client.get("/api/messages", headers=login_as("a1", Role.ADMIN)).json()
    assert [item["content"] for item in body["items"]] == ["Staff meeting"]


def test_unread_flow(client, school, login_as):
    teacher = login_as("t1", Role.TEACHER)
    assert client.get("/api/messages/unread-count", headers=teacher).json() == {"count": 1}

    unread = client.get("/api/messages?unread_only=true", headers=teacher).json()["items"]
    assert len(unread) == 1
    message_id = unread[0]["id"]

    response = client.put(f"/api/messages/{message_id}/read", headers=teacher)
    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert client.get("/api/messages/unread-count", headers=teacher).json() == {"count": 0}


def test_only_recipient_marks_read(client, school, login_as):
    sent_by_t1 = next(m for m in school.messages if m.sender_id == "t1").id
    response = client.put(f"/api/messages/{sent_by_t1}/read", headers=login_as("t1", Role.TEACHER))
    assert response.status_code == 403


def test_send_message(client, school, login_as):
    parent = login_as("p2", Role.PARENT)
    response = client.post("/api/messages", json={"recipient_id": "t2", "recipient_role": "teacher",
                                                  "subject": "Sick note", "content": "Sid is ill today"},
                           headers=parent)
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["sender_id"] == "p2"
    assert data["sender_role"] == "PARENT"
    assert data["is_read"] is False
    assert client.get("/api/messages/unread-count", headers=login_as("t2", Role.TEACHER)).json() == {"count": 2}


def test_send_to_unknown_recipient(client, school, login_as):
    response = client.post("/api/messages", json={"recipient_id": "t2", "recipient_role": "PARENT",
                                                  "content": "Hello"},
                           headers=login_as("p1", Role.PARENT))
    assert response.status_code == 404


def test_cannot_delete_foreign_message(client, school, login_as):
    foreign = next(m for m in school.messages if m.sender_id == "a1").id
    assert client.delete(f"/api/messages/{foreign}", headers=login_as("p1", Role.PARENT)).status_code == 404
    assert client.delete(f"/api/messages/{foreign}", headers=login_as("t2", Role.TEACHER)).status_code == 204
