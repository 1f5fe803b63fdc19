import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ....application.filters import teacher_filters
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....domain.entities import Principal
from ....domain.errors import ValidationError
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.cache import invalidate
from ....infrastructure.db import get_db
from ....infrastructure.models import Subject, Teacher
from ....infrastructure.repositories import log_audit
from ....infrastructure.security import PasswordHasher
from ..authz import require_permission
from ..schemas import Page, TeacherCreate, TeacherOut, TeacherUpdate

router = APIRouter(prefix="/api/teachers", tags=["teachers"])


def _load_subjects(db: Session, subject_ids: list[int]) -> list:
    if not subject_ids:
        return []
    subjects = db.execute(select(Subject).where(Subject.id.in_(subject_ids))).scalars().all()
    missing = set(subject_ids) - {s.id for s in subjects}
    if missing:
        raise ValidationError(f"Unknown subjects: {sorted(missing)}", field="subject_ids")
    return list(subjects)


@router.get("", response_model=Page[TeacherOut])
def list_teachers(
    principal: Principal = Depends(require_permission("teachers", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: str | None = None,
    subject_id: int | None = Query(None, alias="subjectId"),
    class_id: int | None = Query(None, alias="classId"),
):
    stmt = scoped_select(principal, "teachers", *teacher_filters(search, subject_id, class_id))
    return Page[TeacherOut].build(paginate(db, stmt, page, limit), TeacherOut)


@router.get("/{teacher_id}", response_model=TeacherOut)
def get_teacher(
    teacher_id: str,
    principal: Principal = Depends(require_permission("teachers", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "teachers", teacher_id, "Teacher")


@router.post("", response_model=TeacherOut, status_code=status.HTTP_201_CREATED)
def create_teacher(
    payload: TeacherCreate,
    principal: Principal = Depends(require_permission("teachers", CREATE)),
    db: Session = Depends(get_db),
):
    subjects = _load_subjects(db, payload.subject_ids)
    data = payload.model_dump(exclude={"password", "id", "subject_ids"})
    row = Teacher(id=payload.id or uuid.uuid4().hex, password_hash=PasswordHasher().hash(payload.password), **data)
    row.subjects = subjects
    db.add(row)
    log_audit(db, principal, "CREATE", "Teacher", row.id, payload.model_dump(mode="json", exclude={"password"}))
    db.commit(); db.refresh(row)
    invalidate("subjects")
    return row


@router.put("/{teacher_id}", response_model=TeacherOut)
def update_teacher(
    teacher_id: str,
    payload: TeacherUpdate,
    principal: Principal = Depends(require_permission("teachers", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "teachers", teacher_id, "Teacher")
    changes = payload.model_dump(exclude_unset=True)
    password = changes.pop("password", None)
    subject_ids = changes.pop("subject_ids", None)
    for field, value in changes.items():
        setattr(row, field, value)
    if password:
        row.password_hash = PasswordHasher().hash(password)
    if subject_ids is not None:
        row.subjects = _load_subjects(db, subject_ids)
    log_audit(db, principal, "UPDATE", "Teacher", row.id,
              payload.model_dump(mode="json", exclude_unset=True, exclude={"password"}))
    db.commit(); db.refresh(row)
    # список предметов в кэше хранит учителей
    invalidate("subjects")
    return row


@router.delete("/{teacher_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_teacher(
    teacher_id: str,
    principal: Principal = Depends(require_permission("teachers", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "teachers", teacher_id, "Teacher")
    # уроки ссылаются на учителя без каскада
    if row.lessons:
        raise ValidationError("Teacher still has lessons assigned", field="teacher_id")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Teacher", teacher_id)
    db.commit()
    invalidate("subjects")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
