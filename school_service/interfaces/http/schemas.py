import datetime as dt
from datetime import date, datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from ...domain.entities import Role

T = TypeVar("T")

Sex = Literal["MALE", "FEMALE"]
Day = Literal["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"]


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def build(cls, page, schema):
        return cls(
            items=[schema.model_validate(row) for row in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
        )


def _upper(value):
    return value.strip().upper() if isinstance(value, str) else value


# --- Auth

class LoginReq(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role: Role | None = None

    @field_validator("role", mode="before")
    @classmethod
    def upper_role(cls, value):
        return _upper(value)


class UserResp(BaseModel):
    id: str
    username: str
    role: Role
    name: str
    surname: str
    email: str | None = None
    class Config: from_attributes = True


class LoginResp(BaseModel):
    user: UserResp
    expires_at: datetime


# --- People

class PersonBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    surname: str = Field(min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None


class PersonUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    surname: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    password: str | None = Field(default=None, min_length=6)


class StudentCreate(PersonBase):
    id: str | None = Field(default=None, max_length=64)
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=6)
    blood_type: str | None = None
    sex: Sex | None = None
    birthday: date | None = None
    class_id: int | None = None
    parent_id: str | None = None

    @field_validator("sex", mode="before")
    @classmethod
    def upper_sex(cls, value):
        return _upper(value)


class StudentUpdate(PersonUpdate):
    blood_type: str | None = None
    sex: Sex | None = None
    birthday: date | None = None
    class_id: int | None = None
    parent_id: str | None = None

    @field_validator("sex", mode="before")
    @classmethod
    def upper_sex(cls, value):
        return _upper(value)


class StudentOut(BaseModel):
    id: str
    username: str
    name: str
    surname: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    blood_type: str | None = None
    sex: str | None = None
    birthday: date | None = None
    class_id: int | None = None
    parent_id: str | None = None
    class Config: from_attributes = True


class TeacherCreate(PersonBase):
    id: str | None = Field(default=None, max_length=64)
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=6)
    blood_type: str | None = None
    sex: Sex | None = None
    birthday: date | None = None
    subject_ids: list[int] = []

    @field_validator("sex", mode="before")
    @classmethod
    def upper_sex(cls, value):
        return _upper(value)


class TeacherUpdate(PersonUpdate):
    blood_type: str | None = None
    sex: Sex | None = None
    birthday: date | None = None
    subject_ids: list[int] | None = None

    @field_validator("sex", mode="before")
    @classmethod
    def upper_sex(cls, value):
        return _upper(value)


class SubjectOut(BaseModel):
    id: int
    name: str
    class Config: from_attributes = True


class TeacherOut(BaseModel):
    id: str
    username: str
    name: str
    surname: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    blood_type: str | None = None
    sex: str | None = None
    birthday: date | None = None
    subjects: list[SubjectOut] = []
    class Config: from_attributes = True


class ParentCreate(PersonBase):
    id: str | None = Field(default=None, max_length=64)
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=6)


class ParentUpdate(PersonUpdate):
    pass


class ParentOut(BaseModel):
    id: str
    username: str
    name: str
    surname: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    class Config: from_attributes = True


# --- Classes & subjects

class ClassCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    capacity: int = Field(default=30, ge=1)
    grade_level: int | None = Field(default=None, ge=1)
    supervisor_id: str | None = None


class ClassUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    capacity: int | None = Field(default=None, ge=1)
    grade_level: int | None = Field(default=None, ge=1)
    supervisor_id: str | None = None


class ClassOut(BaseModel):
    id: int
    name: str
    capacity: int
    grade_id: int | None = None
    supervisor_id: str | None = None
    class Config: from_attributes = True


class SubjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    teacher_ids: list[str] = []


class SubjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    teacher_ids: list[str] | None = None


# --- Lessons & assessments

class LessonCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    day: Day
    start_time: datetime
    end_time: datetime
    subject_id: int
    class_id: int
    teacher_id: str | None = None

    @field_validator("day", mode="before")
    @classmethod
    def upper_day(cls, value):
        return _upper(value)

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class LessonUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    day: Day | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    subject_id: int | None = None
    class_id: int | None = None
    teacher_id: str | None = None

    @field_validator("day", mode="before")
    @classmethod
    def upper_day(cls, value):
        return _upper(value)


class LessonOut(BaseModel):
    id: int
    name: str
    day: str
    start_time: datetime
    end_time: datetime
    subject_id: int
    class_id: int
    teacher_id: str
    class Config: from_attributes = True


class ExamCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    start_time: datetime
    end_time: datetime
    lesson_id: int

    @model_validator(mode="after")
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ExamUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    start_time: datetime | None = None
    end_time: datetime | None = None
    lesson_id: int | None = None


class ExamOut(BaseModel):
    id: int
    title: str
    start_time: datetime
    end_time: datetime
    lesson_id: int
    class Config: from_attributes = True


class AssignmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    start_date: datetime
    due_date: datetime
    lesson_id: int

    @model_validator(mode="after")
    def check_dates(self):
        if self.due_date <= self.start_date:
            raise ValueError("due_date must be after start_date")
        return self


class AssignmentUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    start_date: datetime | None = None
    due_date: datetime | None = None
    lesson_id: int | None = None


class AssignmentOut(BaseModel):
    id: int
    title: str
    start_date: datetime
    due_date: datetime
    lesson_id: int
    class Config: from_attributes = True


class ResultCreate(BaseModel):
    score: int = Field(ge=0, le=100)
    student_id: str
    exam_id: int | None = None
    assignment_id: int | None = None

    @model_validator(mode="after")
    def single_assessment(self):
        if (self.exam_id is None) == (self.assignment_id is None):
            raise ValueError("exactly one of exam_id or assignment_id is required")
        return self


class ResultUpdate(BaseModel):
    score: int = Field(ge=0, le=100)


class ResultOut(BaseModel):
    id: int
    score: int
    student_id: str
    exam_id: int | None = None
    assignment_id: int | None = None
    class Config: from_attributes = True


class AttendanceCreate(BaseModel):
    student_id: str
    lesson_id: int
    date: dt.date
    present: bool = True


class AttendanceUpdate(BaseModel):
    date: dt.date | None = None
    present: bool | None = None


class AttendanceOut(BaseModel):
    id: int
    student_id: str
    lesson_id: int
    date: dt.date
    present: bool
    class Config: from_attributes = True


# --- Messages

class MessageCreate(BaseModel):
    recipient_id: str = Field(min_length=1)
    recipient_role: Role
    subject: str | None = Field(default=None, max_length=255)
    content: str = Field(min_length=1)

    @field_validator("recipient_role", mode="before")
    @classmethod
    def upper_role(cls, value):
        return _upper(value)


class MessageOut(BaseModel):
    id: int
    sender_id: str
    sender_role: str
    recipient_id: str
    recipient_role: str
    subject: str | None = None
    content: str
    is_read: bool
    created_at: datetime
    class Config: from_attributes = True


class UnreadCount(BaseModel):
    count: int


# --- Dashboard

class DashboardStats(BaseModel):
    role: Role
    students: int
    teachers: int
    parents: int
    classes: int
    lessons: int
    exams: int
    assignments: int
    results: int
    attendance_rate: float | None = None
    average_score: float | None = None
