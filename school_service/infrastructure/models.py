# school_service/infrastructure/models.py
from __future__ import annotations

import datetime as dt
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


teacher_subjects = Table(
    "teacher_subjects",
    Base.metadata,
    Column("teacher_id", ForeignKey("teachers.id", ondelete="CASCADE"), primary_key=True),
    Column("subject_id", ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
)


class AdminORM(Base):
    __tablename__ = "admins"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="Admin")
    surname: Mapped[str] = mapped_column(String(100), nullable=False, default="User")
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class TeacherORM(Base):
    __tablename__ = "teachers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    blood_type: Mapped[str | None] = mapped_column(String(8), nullable=True)
    sex: Mapped[str | None] = mapped_column(String(8), nullable=True)
    birthday: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    subjects: Mapped[list["SubjectORM"]] = relationship(
        "SubjectORM", secondary=teacher_subjects, back_populates="teachers"
    )
    lessons: Mapped[list["LessonORM"]] = relationship("LessonORM", back_populates="teacher")
    supervised_classes: Mapped[list["ClassORM"]] = relationship("ClassORM", back_populates="supervisor")

    def __repr__(self) -> str:
        return f"TeacherORM(id={self.id!r}, username={self.username!r})"


class ParentORM(Base):
    __tablename__ = "parents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    students: Mapped[list["StudentORM"]] = relationship("StudentORM", back_populates="parent")

    def __repr__(self) -> str:
        return f"ParentORM(id={self.id!r}, username={self.username!r})"


class GradeORM(Base):
    __tablename__ = "grades"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    level: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)

    classes: Mapped[list["ClassORM"]] = relationship("ClassORM", back_populates="grade")


class ClassORM(Base):
    __tablename__ = "classes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    grade_id: Mapped[int | None] = mapped_column(ForeignKey("grades.id"), nullable=True, index=True)
    supervisor_id: Mapped[str | None] = mapped_column(
        ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True, index=True
    )

    grade: Mapped["GradeORM | None"] = relationship("GradeORM", back_populates="classes")
    supervisor: Mapped["TeacherORM | None"] = relationship("TeacherORM", back_populates="supervised_classes")
    students: Mapped[list["StudentORM"]] = relationship("StudentORM", back_populates="class_")
    lessons: Mapped[list["LessonORM"]] = relationship("LessonORM", back_populates="class_")

    def __repr__(self) -> str:
        return f"ClassORM(id={self.id!r}, name={self.name!r})"


class StudentORM(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    blood_type: Mapped[str | None] = mapped_column(String(8), nullable=True)
    sex: Mapped[str | None] = mapped_column(String(8), nullable=True)
    birthday: Mapped[date | None] = mapped_column(Date, nullable=True)
    # не более одного класса и одного родителя
    class_id: Mapped[int | None] = mapped_column(
        ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True
    )
    parent_id: Mapped[str | None] = mapped_column(
        ForeignKey("parents.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    class_: Mapped["ClassORM | None"] = relationship("ClassORM", back_populates="students")
    parent: Mapped["ParentORM | None"] = relationship("ParentORM", back_populates="students")
    results: Mapped[list["ResultORM"]] = relationship(
        "ResultORM", back_populates="student", cascade="all, delete-orphan", passive_deletes=True
    )
    attendances: Mapped[list["AttendanceORM"]] = relationship(
        "AttendanceORM", back_populates="student", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"StudentORM(id={self.id!r}, username={self.username!r})"


class SubjectORM(Base):
    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    teachers: Mapped[list["TeacherORM"]] = relationship(
        "TeacherORM", secondary=teacher_subjects, back_populates="subjects"
    )
    lessons: Mapped[list["LessonORM"]] = relationship("LessonORM", back_populates="subject")


class LessonORM(Base):
    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    day: Mapped[str] = mapped_column(String(16), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id"), nullable=False, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id: Mapped[str] = mapped_column(ForeignKey("teachers.id"), nullable=False, index=True)

    subject: Mapped["SubjectORM"] = relationship("SubjectORM", back_populates="lessons")
    class_: Mapped["ClassORM"] = relationship("ClassORM", back_populates="lessons")
    teacher: Mapped["TeacherORM"] = relationship("TeacherORM", back_populates="lessons")
    exams: Mapped[list["ExamORM"]] = relationship(
        "ExamORM", back_populates="lesson", cascade="all, delete-orphan", passive_deletes=True
    )
    assignments: Mapped[list["AssignmentORM"]] = relationship(
        "AssignmentORM", back_populates="lesson", cascade="all, delete-orphan", passive_deletes=True
    )
    attendances: Mapped[list["AttendanceORM"]] = relationship(
        "AttendanceORM", back_populates="lesson", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"LessonORM(id={self.id!r}, class_id={self.class_id!r}, teacher_id={self.teacher_id!r})"


class ExamORM(Base):
    __tablename__ = "exams"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    lesson_id: Mapped[int] = mapped_column(ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)

    lesson: Mapped["LessonORM"] = relationship("LessonORM", back_populates="exams")
    results: Mapped[list["ResultORM"]] = relationship(
        "ResultORM", back_populates="exam", cascade="all, delete-orphan", passive_deletes=True
    )


class AssignmentORM(Base):
    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    lesson_id: Mapped[int] = mapped_column(ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)

    lesson: Mapped["LessonORM"] = relationship("LessonORM", back_populates="assignments")
    results: Mapped[list["ResultORM"]] = relationship(
        "ResultORM", back_populates="assignment", cascade="all, delete-orphan", passive_deletes=True
    )


class ResultORM(Base):
    __tablename__ = "results"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    exam_id: Mapped[int | None] = mapped_column(
        ForeignKey("exams.id", ondelete="CASCADE"), nullable=True, index=True
    )
    assignment_id: Mapped[int | None] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=True, index=True
    )

    student: Mapped["StudentORM"] = relationship("StudentORM", back_populates="results")
    exam: Mapped["ExamORM | None"] = relationship("ExamORM", back_populates="results")
    assignment: Mapped["AssignmentORM | None"] = relationship("AssignmentORM", back_populates="results")

    __table_args__ = (
        # ровно одно из: экзамен или задание
        CheckConstraint(
            "(exam_id IS NULL) <> (assignment_id IS NULL)",
            name="ck_result_single_assessment",
        ),
        CheckConstraint("score >= 0 AND score <= 100", name="ck_result_score_range"),
        UniqueConstraint("student_id", "exam_id", name="uq_result_student_exam"),
        UniqueConstraint("student_id", "assignment_id", name="uq_result_student_assignment"),
    )


class AttendanceORM(Base):
    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lesson_id: Mapped[int] = mapped_column(ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)

    student: Mapped["StudentORM"] = relationship("StudentORM", back_populates="attendances")
    lesson: Mapped["LessonORM"] = relationship("LessonORM", back_populates="attendances")


class MessageORM(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sender_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sender_role: Mapped[str] = mapped_column(String(16), nullable=False)
    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    recipient_role: Mapped[str] = mapped_column(String(16), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)


class UserSessionORM(Base):
    __tablename__ = "user_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_active: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)


class AuditLogORM(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    entity: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    changes: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


Admin = AdminORM
Teacher = TeacherORM
Parent = ParentORM
Student = StudentORM
Grade = GradeORM
Class = ClassORM
Subject = SubjectORM
Lesson = LessonORM
Exam = ExamORM
Assignment = AssignmentORM
Result = ResultORM
Attendance = AttendanceORM
Message = MessageORM
UserSession = UserSessionORM
AuditLog = AuditLogORM

__all__ = [
    "Base",
    "teacher_subjects",
    "Admin",
    "Teacher",
    "Parent",
    "Student",
    "Grade",
    "Class",
    "Subject",
    "Lesson",
    "Exam",
    "Assignment",
    "Result",
    "Attendance",
    "Message",
    "UserSession",
    "AuditLog",
]
