from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ....application.filters import subject_filters
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....domain.entities import Principal
from ....domain.errors import ValidationError
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.cache import get_cache, invalidate, list_key, set_cache
from ....infrastructure.db import get_db
from ....infrastructure.metrics import cache_hits_total, cache_misses_total
from ....infrastructure.models import Subject, Teacher
from ....infrastructure.repositories import log_audit
from ..authz import require_permission
from ..schemas import Page, SubjectCreate, SubjectOut, SubjectUpdate

router = APIRouter(prefix="/api/subjects", tags=["subjects"])


def _load_teachers(db: Session, teacher_ids: list[str]) -> list:
    if not teacher_ids:
        return []
    teachers = db.execute(select(Teacher).where(Teacher.id.in_(teacher_ids))).scalars().all()
    missing = set(teacher_ids) - {t.id for t in teachers}
    if missing:
        raise ValidationError(f"Unknown teachers: {sorted(missing)}", field="teacher_ids")
    return list(teachers)


# предметы видны всем ролям одинаково, поэтому ключ не зависит от пользователя
@router.get("", response_model=Page[SubjectOut])
def list_subjects(
    principal: Principal = Depends(require_permission("subjects", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: str | None = None,
    teacher_id: str | None = Query(None, alias="teacherId"),
):
    cache_key = list_key("subjects", page=page, limit=limit, search=search, teacher=teacher_id)
    cached = get_cache(cache_key)
    if cached:
        cache_hits_total.inc()
        return cached

    cache_misses_total.inc()
    stmt = scoped_select(principal, "subjects", *subject_filters(search, teacher_id))
    result = Page[SubjectOut].build(paginate(db, stmt, page, limit), SubjectOut)
    set_cache(cache_key, result.model_dump())
    return result


@router.get("/{subject_id}", response_model=SubjectOut)
def get_subject(
    subject_id: int,
    principal: Principal = Depends(require_permission("subjects", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "subjects", subject_id, "Subject")


@router.post("", response_model=SubjectOut, status_code=status.HTTP_201_CREATED)
def create_subject(
    payload: SubjectCreate,
    principal: Principal = Depends(require_permission("subjects", CREATE)),
    db: Session = Depends(get_db),
):
    row = Subject(name=payload.name)
    row.teachers = _load_teachers(db, payload.teacher_ids)
    db.add(row)
    db.flush()
    log_audit(db, principal, "CREATE", "Subject", row.id, payload.model_dump(mode="json"))
    db.commit(); db.refresh(row)
    invalidate("subjects")
    return row


@router.put("/{subject_id}", response_model=SubjectOut)
def update_subject(
    subject_id: int,
    payload: SubjectUpdate,
    principal: Principal = Depends(require_permission("subjects", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "subjects", subject_id, "Subject")
    if payload.name is not None:
        row.name = payload.name
    if payload.teacher_ids is not None:
        row.teachers = _load_teachers(db, payload.teacher_ids)
    log_audit(db, principal, "UPDATE", "Subject", row.id, payload.model_dump(mode="json", exclude_unset=True))
    db.commit(); db.refresh(row)
    invalidate("subjects")
    return row


@router.delete("/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subject(
    subject_id: int,
    principal: Principal = Depends(require_permission("subjects", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "subjects", subject_id, "Subject")
    if row.lessons:
        raise ValidationError("Subject is still used by lessons", field="subject_id")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Subject", subject_id)
    db.commit()
    invalidate("subjects")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
