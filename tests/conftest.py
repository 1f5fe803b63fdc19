import os
import sys
from datetime import date, datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from school_service.domain.entities import Role
from school_service.infrastructure.db import get_db
from school_service.infrastructure.models import (
    Admin,
    Assignment,
    Attendance,
    Base,
    Class,
    Exam,
    Grade,
    Lesson,
    Message,
    Parent,
    Result,
    Student,
    Subject,
    Teacher,
    UserSession,
)
from school_service.infrastructure.rate_limit import limiter
from school_service.infrastructure.security import create_session_token, new_session_id

# Тестовая БД в памяти, одно соединение на все сессии
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

import school_service.infrastructure.db
import school_service.main
school_service.infrastructure.db.engine = test_engine
school_service.infrastructure.db.SessionLocal = TestingSessionLocal
school_service.main.engine = test_engine

from school_service.main import app

# Отключаем rate limiting в тестах
limiter.enabled = False

NO_HASH = "!"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def fake_redis():
    """Redis недоступен в тестах: каждый запрос к кэшу идёт в мок."""
    client = MagicMock()
    client.get.return_value = None
    client.scan_iter.return_value = iter([])
    with patch("school_service.infrastructure.cache.get_redis", return_value=client):
        yield client


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


def at(day: int, hour: int) -> datetime:
    return datetime(2024, 1, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def school(db):
    """Небольшая школа: два класса, два учителя, два родителя, три ученика.

    t1 teaches l1 (c1). t2 teaches l2 (c2) and l3 (c1).
    p1 -> s1 (c1); p2 -> s2 (c1), s3 (c2).
    """
    admin = Admin(id="a1", username="admin", password_hash=NO_HASH, name="Ada", surname="Admin")
    t1 = Teacher(id="t1", username="t1", password_hash=NO_HASH, name="Tom", surname="Able")
    t2 = Teacher(id="t2", username="t2", password_hash=NO_HASH, name="Tina", surname="Baker")
    p1 = Parent(id="p1", username="p1", password_hash=NO_HASH, name="Paul", surname="Cole")
    p2 = Parent(id="p2", username="p2", password_hash=NO_HASH, name="Pam", surname="Dale")
    grade = Grade(level=1)
    c1 = Class(name="1A", capacity=30, grade=grade)
    c2 = Class(name="1B", capacity=30, grade=grade)
    s1 = Student(id="s1", username="s1", password_hash=NO_HASH, name="Sam", surname="Cole", class_=c1, parent=p1)
    s2 = Student(id="s2", username="s2", password_hash=NO_HASH, name="Sue", surname="Dale", class_=c1, parent=p2)
    s3 = Student(id="s3", username="s3", password_hash=NO_HASH, name="Sid", surname="Dale", class_=c2, parent=p2)
    math = Subject(name="Math", teachers=[t1, t2])
    english = Subject(name="English", teachers=[t2])
    db.add_all([admin, t1, t2, p1, p2, grade, c1, c2, s1, s2, s3, math, english])
    db.flush()

    l1 = Lesson(name="Math 1A", day="MONDAY", start_time=at(1, 9), end_time=at(1, 10),
                subject=math, class_=c1, teacher=t1)
    l2 = Lesson(name="Math 1B", day="MONDAY", start_time=at(1, 9), end_time=at(1, 10),
                subject=math, class_=c2, teacher=t2)
    l3 = Lesson(name="English 1A", day="TUESDAY", start_time=at(2, 9), end_time=at(2, 10),
                subject=english, class_=c1, teacher=t2)
    db.add_all([l1, l2, l3])
    db.flush()

    e1 = Exam(title="Math test 1A", start_time=at(8, 9), end_time=at(8, 10), lesson=l1)
    e2 = Exam(title="English test 1A", start_time=at(9, 9), end_time=at(9, 10), lesson=l3)
    e3 = Exam(title="Math test 1B", start_time=at(8, 9), end_time=at(8, 10), lesson=l2)
    hw = Assignment(title="Fractions", start_date=at(1, 9), due_date=at(5, 9), lesson=l1)
    db.add_all([e1, e2, e3, hw])
    db.flush()

    results = [
        Result(score=80, student=s1, exam=e1),
        Result(score=60, student=s2, exam=e1),
        Result(score=90, student=s1, exam=e2),
        Result(score=70, student=s3, exam=e3),
        Result(score=75, student=s1, assignment=hw),
    ]
    attendance = [
        Attendance(date=date(2024, 1, 1), present=True, student=s1, lesson=l1),
        Attendance(date=date(2024, 1, 1), present=False, student=s2, lesson=l1),
        Attendance(date=date(2024, 1, 1), present=True, student=s3, lesson=l2),
        Attendance(date=date(2024, 1, 2), present=True, student=s1, lesson=l3),
    ]
    messages = [
        Message(sender_id="t1", sender_role="TEACHER", recipient_id="p1", recipient_role="PARENT",
                subject="Homework", content="Sam did well"),
        Message(sender_id="p1", sender_role="PARENT", recipient_id="t1", recipient_role="TEACHER",
                content="Thanks"),
        Message(sender_id="a1", sender_role="ADMIN", recipient_id="t2", recipient_role="TEACHER",
                content="Staff meeting"),
    ]
    db.add_all(results + attendance + messages)
    db.commit()

    return SimpleNamespace(
        admin=admin, t1=t1, t2=t2, p1=p1, p2=p2, c1=c1, c2=c2, s1=s1, s2=s2, s3=s3,
        math=math, english=english, l1=l1, l2=l2, l3=l3, e1=e1, e2=e2, e3=e3, hw=hw,
        results=results, attendance=attendance, messages=messages,
    )


@pytest.fixture
def login_as(db):
    """Открывает серверную сессию и возвращает заголовок Bearer для неё."""
    def _login(user_id: str, role: Role) -> dict:
        session_id = new_session_id()
        token, expires_at = create_session_token(user_id, role, session_id)
        db.add(UserSession(id=session_id, user_id=user_id, role=role.value, expires_at=expires_at))
        db.commit()
        return {"Authorization": f"Bearer {token}"}

    return _login
