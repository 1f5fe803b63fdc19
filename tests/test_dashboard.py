from unittest.mock import patch

from fastapi.testclient import TestClient

from school_service.domain.entities import Role
from school_service.main import app


def test_admin_stats(client, school, login_as):
    body = client.get("/api/dashboard/stats", headers=login_as("a1", Role.ADMIN)).json()
    assert body["role"] == "ADMIN"
    assert body["students"] == 3
    assert body["teachers"] == 2
    assert body["lessons"] == 3
    assert body["results"] == 5
    assert body["attendance_rate"] == 75.0
    assert body["average_score"] == 75.0


def test_parent_stats_are_scoped(client, school, login_as):
    body = client.get("/api/dashboard/stats", headers=login_as("p1", Role.PARENT)).json()
    assert body["role"] == "PARENT"
    assert body["students"] == 1
    assert body["results"] == 3
    assert body["classes"] == 1
    assert body["attendance_rate"] == 100.0
    assert body["average_score"] == 81.7


def test_teacher_stats_are_scoped(client, school, login_as):
    body = client.get("/api/dashboard/stats", headers=login_as("t1", Role.TEACHER)).json()
    assert body["lessons"] == 1
    assert body["exams"] == 1
    assert body["assignments"] == 1
    assert body["results"] == 3
    assert body["attendance_rate"] == 50.0


def test_stats_require_session(client, school):
    assert client.get("/api/dashboard/stats").status_code == 401


def test_unexpected_error_is_generic(client, school, login_as):
    headers = login_as("a1", Role.ADMIN)
    failing = TestClient(app, raise_server_exceptions=False)
    with patch("school_service.interfaces.http.routers.dashboard._count", side_effect=RuntimeError("db exploded")):
        response = failing.get("/api/dashboard/stats", headers=headers)
    assert response.status_code == 500
    assert response.json() == {"error": "InternalError", "message": "Internal server error", "status": 500}
