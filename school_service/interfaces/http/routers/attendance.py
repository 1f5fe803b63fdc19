import datetime as dt

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ....application.filters import attendance_filters
from ....application.ownership import ensure_teaches, get_or_404
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....domain.entities import Principal
from ....domain.errors import ConflictError, ValidationError
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.db import get_db
from ....infrastructure.models import Attendance, Lesson, Student
from ....infrastructure.repositories import log_audit
from ..authz import require_permission
from ..schemas import AttendanceCreate, AttendanceOut, AttendanceUpdate, Page

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


@router.get("", response_model=Page[AttendanceOut])
def list_attendance(
    principal: Principal = Depends(require_permission("attendance", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    student_id: str | None = Query(None, alias="studentId"),
    lesson_id: int | None = Query(None, alias="lessonId"),
    class_id: int | None = Query(None, alias="classId"),
    on_date: dt.date | None = Query(None, alias="date"),
    present: bool | None = None,
):
    filters = attendance_filters(student_id, lesson_id, class_id, on_date, present)
    stmt = scoped_select(principal, "attendance", *filters)
    return Page[AttendanceOut].build(paginate(db, stmt, page, limit), AttendanceOut)


@router.get("/{attendance_id}", response_model=AttendanceOut)
def get_attendance(
    attendance_id: int,
    principal: Principal = Depends(require_permission("attendance", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "attendance", attendance_id, "Attendance")


@router.post("", response_model=AttendanceOut, status_code=status.HTTP_201_CREATED)
def create_attendance(
    payload: AttendanceCreate,
    principal: Principal = Depends(require_permission("attendance", CREATE)),
    db: Session = Depends(get_db),
):
    lesson = get_or_404(db, Lesson, payload.lesson_id, "Lesson")
    ensure_teaches(principal, lesson)
    student = get_or_404(db, Student, payload.student_id, "Student")
    if student.class_id != lesson.class_id:
        raise ValidationError("Student is not enrolled in the class for this lesson", field="student_id")
    duplicate = select(Attendance.id).where(
        Attendance.student_id == payload.student_id,
        Attendance.lesson_id == payload.lesson_id,
        Attendance.date == payload.date,
    )
    if db.execute(duplicate).first() is not None:
        raise ConflictError("Attendance already recorded for this student, lesson and date")

    row = Attendance(**payload.model_dump())
    db.add(row)
    db.flush()
    log_audit(db, principal, "CREATE", "Attendance", row.id, payload.model_dump(mode="json"))
    db.commit(); db.refresh(row)
    return row


@router.put("/{attendance_id}", response_model=AttendanceOut)
def update_attendance(
    attendance_id: int,
    payload: AttendanceUpdate,
    principal: Principal = Depends(require_permission("attendance", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "attendance", attendance_id, "Attendance")
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(row, field, value)
    log_audit(db, principal, "UPDATE", "Attendance", row.id, payload.model_dump(mode="json", exclude_unset=True))
    db.commit(); db.refresh(row)
    return row


@router.delete("/{attendance_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_attendance(
    attendance_id: int,
    principal: Principal = Depends(require_permission("attendance", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "attendance", attendance_id, "Attendance")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Attendance", attendance_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
