"""User-supplied list filters.

Each function turns query parameters into a list of WHERE clauses. They are
ANDed with the role scope by ``scoped_select``, so they can only narrow what
the caller already may see.
"""
from datetime import date

from sqlalchemy import and_, or_

from ..infrastructure.models import (
    Assignment,
    Attendance,
    Class,
    Exam,
    Lesson,
    Parent,
    Result,
    Student,
    Subject,
    Teacher,
)


def search_clause(search: str | None, *columns):
    if not search or not search.strip():
        return None
    pattern = f"%{search.strip()}%"
    return or_(*(column.ilike(pattern) for column in columns))


def _clauses(*items):
    return [item for item in items if item is not None]


def person_filters(model, search: str | None):
    return _clauses(search_clause(search, model.name, model.surname, model.username, model.email))


def student_filters(search=None, class_id: int | None = None, grade_id: int | None = None,
                    parent_id: str | None = None):
    return person_filters(Student, search) + _clauses(
        Student.class_id == class_id if class_id is not None else None,
        Student.class_.has(Class.grade_id == grade_id) if grade_id is not None else None,
        Student.parent_id == parent_id if parent_id else None,
    )


def teacher_filters(search=None, subject_id: int | None = None, class_id: int | None = None):
    return person_filters(Teacher, search) + _clauses(
        Teacher.subjects.any(Subject.id == subject_id) if subject_id is not None else None,
        Teacher.lessons.any(Lesson.class_id == class_id) if class_id is not None else None,
    )


def parent_filters(search=None, class_id: int | None = None):
    return person_filters(Parent, search) + _clauses(
        Parent.students.any(Student.class_id == class_id) if class_id is not None else None,
    )


def class_filters(search=None, grade_id: int | None = None, supervisor_id: str | None = None):
    return _clauses(
        search_clause(search, Class.name),
        Class.grade_id == grade_id if grade_id is not None else None,
        Class.supervisor_id == supervisor_id if supervisor_id else None,
    )


def subject_filters(search=None, teacher_id: str | None = None):
    return _clauses(
        search_clause(search, Subject.name),
        Subject.teachers.any(Teacher.id == teacher_id) if teacher_id else None,
    )


def lesson_filters(search=None, class_id: int | None = None, teacher_id: str | None = None,
                   subject_id: int | None = None, day: str | None = None):
    return _clauses(
        search_clause(search, Lesson.name),
        Lesson.class_id == class_id if class_id is not None else None,
        Lesson.teacher_id == teacher_id if teacher_id else None,
        Lesson.subject_id == subject_id if subject_id is not None else None,
        Lesson.day == day.upper() if day else None,
    )


def _lesson_match(class_id, teacher_id, subject_id):
    return _clauses(
        Lesson.class_id == class_id if class_id is not None else None,
        Lesson.teacher_id == teacher_id if teacher_id else None,
        Lesson.subject_id == subject_id if subject_id is not None else None,
    )


def assessment_filters(model, search=None, lesson_id: int | None = None, class_id: int | None = None,
                       teacher_id: str | None = None, subject_id: int | None = None):
    """Filters shared by exams and assignments, both owned by a lesson."""
    lesson_criteria = _lesson_match(class_id, teacher_id, subject_id)
    return _clauses(
        search_clause(search, model.title),
        model.lesson_id == lesson_id if lesson_id is not None else None,
        model.lesson.has(and_(*lesson_criteria)) if lesson_criteria else None,
    )


def exam_filters(**params):
    return assessment_filters(Exam, **params)


def assignment_filters(**params):
    return assessment_filters(Assignment, **params)


def result_filters(student_id: str | None = None, exam_id: int | None = None,
                   assignment_id: int | None = None, lesson_id: int | None = None,
                   class_id: int | None = None, subject_id: int | None = None):
    lesson_criteria = _clauses(
        Lesson.id == lesson_id if lesson_id is not None else None,
        Lesson.subject_id == subject_id if subject_id is not None else None,
    )
    return _clauses(
        Result.student_id == student_id if student_id else None,
        Result.exam_id == exam_id if exam_id is not None else None,
        Result.assignment_id == assignment_id if assignment_id is not None else None,
        Result.student.has(Student.class_id == class_id) if class_id is not None else None,
        or_(
            Result.exam.has(Exam.lesson.has(and_(*lesson_criteria))),
            Result.assignment.has(Assignment.lesson.has(and_(*lesson_criteria))),
        ) if lesson_criteria else None,
    )


def attendance_filters(student_id: str | None = None, lesson_id: int | None = None,
                       class_id: int | None = None, on_date: date | None = None,
                       present: bool | None = None):
    return _clauses(
        Attendance.student_id == student_id if student_id else None,
        Attendance.lesson_id == lesson_id if lesson_id is not None else None,
        Attendance.lesson.has(Lesson.class_id == class_id) if class_id is not None else None,
        Attendance.date == on_date if on_date is not None else None,
        Attendance.present == present if present is not None else None,
    )
