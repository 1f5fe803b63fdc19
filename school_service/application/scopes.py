"""Role scopes: which rows of each entity a principal may read.

``build_scope`` returns a single SQLAlchemy boolean clause that is placed in
the WHERE of both the page query and its count query. Every clause is built
from correlated ``EXISTS``/``IN`` subqueries, never joins, so the count of a
scoped query is never inflated by fan-out.

Admins see everything. Each other role has one rule per entity. A role
without a rule, including a value that is not a ``Role`` at all, gets the
caller-only clause of the entity, and ``false()`` where the entity has no
rows owned by a single user.
"""
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import and_, false, or_, select, true
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from ..domain.entities import Principal, Role
from ..domain.errors import NotFoundError
from ..infrastructure.models import (
    Assignment,
    Attendance,
    Class,
    Exam,
    Lesson,
    Message,
    Parent,
    Result,
    Student,
    Subject,
    Teacher,
)

Rule = Callable[[str], ColumnElement[bool]]


def _own_class_ids(student_id: str):
    return select(Student.class_id).where(Student.id == student_id, Student.class_id.is_not(None))


def _children_class_ids(parent_id: str):
    return select(Student.class_id).where(Student.parent_id == parent_id, Student.class_id.is_not(None))


def _taught_class_ids(teacher_id: str):
    return select(Lesson.class_id).where(Lesson.teacher_id == teacher_id)


def _teacher_classes(teacher_id: str) -> ColumnElement[bool]:
    return or_(
        Class.supervisor_id == teacher_id,
        Class.id.in_(_taught_class_ids(teacher_id)),
    )


def _teacher_students(teacher_id: str) -> ColumnElement[bool]:
    return Student.class_.has(_teacher_classes(teacher_id))


def _lesson_rule(role: Role) -> Rule:
    return {
        Role.TEACHER: lambda uid: Lesson.teacher_id == uid,
        Role.STUDENT: lambda uid: Lesson.class_id.in_(_own_class_ids(uid)),
        Role.PARENT: lambda uid: Lesson.class_id.in_(_children_class_ids(uid)),
    }[role]


def _via_lesson(model) -> dict[Role, Rule]:
    return {
        role: (lambda uid, rule=_lesson_rule(role): model.lesson.has(rule(uid)))
        for role in (Role.TEACHER, Role.STUDENT, Role.PARENT)
    }


def _own_message(uid: str, role: Role) -> ColumnElement[bool]:
    return or_(
        and_(Message.sender_id == uid, Message.sender_role == role.value),
        and_(Message.recipient_id == uid, Message.recipient_role == role.value),
    )


@dataclass(frozen=True)
class EntityScope:
    model: type
    rules: dict[Role, Rule]
    caller_only: Rule | None = None
    # сообщения приватны даже для админа
    admin_unrestricted: bool = True
    order_by: tuple = field(default_factory=tuple)


SCOPES: dict[str, EntityScope] = {
    "lessons": EntityScope(
        model=Lesson,
        rules={role: _lesson_rule(role) for role in (Role.TEACHER, Role.STUDENT, Role.PARENT)},
        order_by=(Lesson.day, Lesson.start_time, Lesson.id),
    ),
    "exams": EntityScope(
        model=Exam,
        rules=_via_lesson(Exam),
        order_by=(Exam.start_time.desc(), Exam.id),
    ),
    "assignments": EntityScope(
        model=Assignment,
        rules=_via_lesson(Assignment),
        order_by=(Assignment.due_date.desc(), Assignment.id),
    ),
    "results": EntityScope(
        model=Result,
        rules={
            Role.TEACHER: lambda uid: or_(
                Result.exam.has(Exam.lesson.has(Lesson.teacher_id == uid)),
                Result.assignment.has(Assignment.lesson.has(Lesson.teacher_id == uid)),
            ),
            Role.STUDENT: lambda uid: Result.student_id == uid,
            Role.PARENT: lambda uid: Result.student.has(Student.parent_id == uid),
        },
        caller_only=lambda uid: Result.student_id == uid,
        order_by=(Result.id,),
    ),
    "attendance": EntityScope(
        model=Attendance,
        rules={
            Role.TEACHER: lambda uid: Attendance.lesson.has(Lesson.teacher_id == uid),
            Role.STUDENT: lambda uid: Attendance.student_id == uid,
            Role.PARENT: lambda uid: Attendance.student.has(Student.parent_id == uid),
        },
        caller_only=lambda uid: Attendance.student_id == uid,
        order_by=(Attendance.date.desc(), Attendance.id),
    ),
    "students": EntityScope(
        model=Student,
        rules={
            Role.TEACHER: _teacher_students,
            Role.STUDENT: lambda uid: Student.id == uid,
            Role.PARENT: lambda uid: Student.parent_id == uid,
        },
        caller_only=lambda uid: Student.id == uid,
        order_by=(Student.surname, Student.name, Student.id),
    ),
    "classes": EntityScope(
        model=Class,
        rules={
            Role.TEACHER: _teacher_classes,
            Role.STUDENT: lambda uid: Class.id.in_(_own_class_ids(uid)),
            Role.PARENT: lambda uid: Class.id.in_(_children_class_ids(uid)),
        },
        order_by=(Class.name, Class.id),
    ),
    "teachers": EntityScope(
        model=Teacher,
        rules={
            Role.TEACHER: lambda uid: Teacher.id == uid,
            Role.STUDENT: lambda uid: Teacher.lessons.any(Lesson.class_id.in_(_own_class_ids(uid))),
            Role.PARENT: lambda uid: Teacher.lessons.any(Lesson.class_id.in_(_children_class_ids(uid))),
        },
        caller_only=lambda uid: Teacher.id == uid,
        order_by=(Teacher.surname, Teacher.name, Teacher.id),
    ),
    "parents": EntityScope(
        model=Parent,
        rules={
            Role.TEACHER: lambda uid: Parent.students.any(_teacher_students(uid)),
            Role.STUDENT: lambda uid: Parent.students.any(Student.id == uid),
            Role.PARENT: lambda uid: Parent.id == uid,
        },
        caller_only=lambda uid: Parent.id == uid,
        order_by=(Parent.surname, Parent.name, Parent.id),
    ),
    "subjects": EntityScope(
        model=Subject,
        rules={role: (lambda uid: true()) for role in (Role.TEACHER, Role.STUDENT, Role.PARENT)},
        order_by=(Subject.name, Subject.id),
    ),
    "messages": EntityScope(
        model=Message,
        rules={role: (lambda uid, role=role: _own_message(uid, role)) for role in Role},
        caller_only=lambda uid: or_(Message.sender_id == uid, Message.recipient_id == uid),
        admin_unrestricted=False,
        order_by=(Message.created_at.desc(), Message.id.desc()),
    ),
}


def build_scope(principal: Principal, entity: str) -> ColumnElement[bool]:
    """Returns the WHERE clause restricting ``entity`` rows to what ``principal`` may read."""
    scope = SCOPES.get(entity)
    if scope is None:
        raise ValueError(f"Unknown entity: {entity}")

    role = Role.parse(principal.role)
    if role is Role.ADMIN and scope.admin_unrestricted:
        return true()
    rule = scope.rules.get(role) if role is not None else None
    if rule is None:
        # неизвестная роль: только собственные записи
        return scope.caller_only(principal.id) if scope.caller_only else false()
    return rule(principal.id)


def scoped_select(principal: Principal, entity: str, *filters: ColumnElement[bool]):
    """SELECT of the entity limited to the caller's scope AND every user filter."""
    scope = SCOPES[entity]
    return (
        select(scope.model)
        .where(build_scope(principal, entity), *filters)
        .order_by(*scope.order_by)
    )


def get_visible(db: Session, principal: Principal, entity: str, row_id, resource_name: str | None = None):
    """Loads one row through the caller's scope; rows outside it are reported as missing."""
    scope = SCOPES[entity]
    pk = scope.model.__mapper__.primary_key[0]
    row = db.execute(
        select(scope.model).where(pk == row_id, build_scope(principal, entity))
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError(resource_name or scope.model.__name__.removesuffix("ORM"), row_id)
    return row
