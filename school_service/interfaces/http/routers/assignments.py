from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ....application.filters import assignment_filters
from ....application.ownership import ensure_teaches, get_or_404
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....domain.entities import Principal
from ....domain.errors import ValidationError
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.db import get_db
from ....infrastructure.models import Assignment, Lesson
from ....infrastructure.repositories import log_audit
from ....infrastructure.security import as_utc
from ..authz import require_permission
from ..schemas import AssignmentCreate, AssignmentOut, AssignmentUpdate, Page

router = APIRouter(prefix="/api/assignments", tags=["assignments"])


@router.get("", response_model=Page[AssignmentOut])
def list_assignments(
    principal: Principal = Depends(require_permission("assignments", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: str | None = None,
    lesson_id: int | None = Query(None, alias="lessonId"),
    class_id: int | None = Query(None, alias="classId"),
    teacher_id: str | None = Query(None, alias="teacherId"),
    subject_id: int | None = Query(None, alias="subjectId"),
):
    filters = assignment_filters(search=search, lesson_id=lesson_id, class_id=class_id,
                                 teacher_id=teacher_id, subject_id=subject_id)
    stmt = scoped_select(principal, "assignments", *filters)
    return Page[AssignmentOut].build(paginate(db, stmt, page, limit), AssignmentOut)


@router.get("/{assignment_id}", response_model=AssignmentOut)
def get_assignment(
    assignment_id: int,
    principal: Principal = Depends(require_permission("assignments", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "assignments", assignment_id, "Assignment")


@router.post("", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreate,
    principal: Principal = Depends(require_permission("assignments", CREATE)),
    db: Session = Depends(get_db),
):
    lesson = get_or_404(db, Lesson, payload.lesson_id, "Lesson")
    ensure_teaches(principal, lesson)
    row = Assignment(**payload.model_dump())
    db.add(row)
    db.flush()
    log_audit(db, principal, "CREATE", "Assignment", row.id, payload.model_dump(mode="json"))
    db.commit(); db.refresh(row)
    return row


@router.put("/{assignment_id}", response_model=AssignmentOut)
def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdate,
    principal: Principal = Depends(require_permission("assignments", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "assignments", assignment_id, "Assignment")
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "lesson_id" in changes:
        ensure_teaches(principal, get_or_404(db, Lesson, changes["lesson_id"], "Lesson"))
    if as_utc(changes.get("due_date", row.due_date)) <= as_utc(changes.get("start_date", row.start_date)):
        raise ValidationError("due_date must be after start_date", field="due_date")

    for field, value in changes.items():
        setattr(row, field, value)
    log_audit(db, principal, "UPDATE", "Assignment", row.id, payload.model_dump(mode="json", exclude_unset=True))
    db.commit(); db.refresh(row)
    return row


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: int,
    principal: Principal = Depends(require_permission("assignments", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "assignments", assignment_id, "Assignment")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Assignment", assignment_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
