from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ....application.filters import exam_filters
from ....application.ownership import ensure_teaches, get_or_404
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....domain.entities import Principal
from ....domain.errors import ValidationError
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.db import get_db
from ....infrastructure.models import Exam, Lesson
from ....infrastructure.repositories import log_audit
from ....infrastructure.security import as_utc
from ..authz import require_permission
from ..schemas import ExamCreate, ExamOut, ExamUpdate, Page

router = APIRouter(prefix="/api/exams", tags=["exams"])


@router.get("", response_model=Page[ExamOut])
def list_exams(
    principal: Principal = Depends(require_permission("exams", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: str | None = None,
    lesson_id: int | None = Query(None, alias="lessonId"),
    class_id: int | None = Query(None, alias="classId"),
    teacher_id: str | None = Query(None, alias="teacherId"),
    subject_id: int | None = Query(None, alias="subjectId"),
):
    filters = exam_filters(search=search, lesson_id=lesson_id, class_id=class_id,
                           teacher_id=teacher_id, subject_id=subject_id)
    stmt = scoped_select(principal, "exams", *filters)
    return Page[ExamOut].build(paginate(db, stmt, page, limit), ExamOut)


@router.get("/{exam_id}", response_model=ExamOut)
def get_exam(
    exam_id: int,
    principal: Principal = Depends(require_permission("exams", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "exams", exam_id, "Exam")


@router.post("", response_model=ExamOut, status_code=status.HTTP_201_CREATED)
def create_exam(
    payload: ExamCreate,
    principal: Principal = Depends(require_permission("exams", CREATE)),
    db: Session = Depends(get_db),
):
    lesson = get_or_404(db, Lesson, payload.lesson_id, "Lesson")
    ensure_teaches(principal, lesson)
    row = Exam(**payload.model_dump())
    db.add(row)
    db.flush()
    log_audit(db, principal, "CREATE", "Exam", row.id, payload.model_dump(mode="json"))
    db.commit(); db.refresh(row)
    return row


@router.put("/{exam_id}", response_model=ExamOut)
def update_exam(
    exam_id: int,
    payload: ExamUpdate,
    principal: Principal = Depends(require_permission("exams", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "exams", exam_id, "Exam")
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "lesson_id" in changes:
        ensure_teaches(principal, get_or_404(db, Lesson, changes["lesson_id"], "Lesson"))
    start = as_utc(changes.get("start_time", row.start_time))
    end = as_utc(changes.get("end_time", row.end_time))
    if end <= start:
        raise ValidationError("end_time must be after start_time", field="end_time")

    for field, value in changes.items():
        setattr(row, field, value)
    log_audit(db, principal, "UPDATE", "Exam", row.id, payload.model_dump(mode="json", exclude_unset=True))
    db.commit(); db.refresh(row)
    return row


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_exam(
    exam_id: int,
    principal: Principal = Depends(require_permission("exams", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "exams", exam_id, "Exam")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Exam", exam_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
