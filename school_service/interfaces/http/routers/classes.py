from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ....application.filters import class_filters
from ....application.ownership import get_or_404
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....domain.entities import Principal, Role
from ....domain.errors import AuthorizationError, ValidationError
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.db import get_db
from ....infrastructure.models import Class, Grade, Teacher
from ....infrastructure.repositories import log_audit
from ..authz import require_permission
from ..schemas import ClassCreate, ClassOut, ClassUpdate, Page

router = APIRouter(prefix="/api/classes", tags=["classes"])


def _grade(db: Session, level: int) -> Grade:
    grade = db.execute(select(Grade).where(Grade.level == level)).scalar_one_or_none()
    if grade is None:
        grade = Grade(level=level)
        db.add(grade)
        db.flush()
    return grade


@router.get("", response_model=Page[ClassOut])
def list_classes(
    principal: Principal = Depends(require_permission("classes", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: str | None = None,
    grade_id: int | None = Query(None, alias="gradeId"),
    supervisor_id: str | None = Query(None, alias="supervisorId"),
):
    stmt = scoped_select(principal, "classes", *class_filters(search, grade_id, supervisor_id))
    return Page[ClassOut].build(paginate(db, stmt, page, limit), ClassOut)


@router.get("/{class_id}", response_model=ClassOut)
def get_class(
    class_id: int,
    principal: Principal = Depends(require_permission("classes", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "classes", class_id, "Class")


@router.post("", response_model=ClassOut, status_code=status.HTTP_201_CREATED)
def create_class(
    payload: ClassCreate,
    principal: Principal = Depends(require_permission("classes", CREATE)),
    db: Session = Depends(get_db),
):
    if payload.supervisor_id is not None:
        get_or_404(db, Teacher, payload.supervisor_id, "Teacher")
    row = Class(name=payload.name, capacity=payload.capacity, supervisor_id=payload.supervisor_id)
    if payload.grade_level is not None:
        row.grade = _grade(db, payload.grade_level)
    db.add(row)
    db.flush()
    log_audit(db, principal, "CREATE", "Class", row.id, payload.model_dump(mode="json"))
    db.commit(); db.refresh(row)
    return row


@router.put("/{class_id}", response_model=ClassOut)
def update_class(
    class_id: int,
    payload: ClassUpdate,
    principal: Principal = Depends(require_permission("classes", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "classes", class_id, "Class")
    changes = payload.model_dump(exclude_unset=True)

    if "supervisor_id" in changes:
        # назначать классного руководителя может только админ
        if principal.role is not Role.ADMIN:
            raise AuthorizationError("Only admins can change the class supervisor")
        if changes["supervisor_id"] is not None:
            get_or_404(db, Teacher, changes["supervisor_id"], "Teacher")
        row.supervisor_id = changes.pop("supervisor_id")

    if "grade_level" in changes:
        level = changes.pop("grade_level")
        row.grade = _grade(db, level) if level is not None else None

    if changes.get("capacity") is not None and changes["capacity"] < len(row.students):
        raise ValidationError("Capacity is below the number of enrolled students", field="capacity")

    for field, value in changes.items():
        if value is not None:
            setattr(row, field, value)
    log_audit(db, principal, "UPDATE", "Class", row.id, payload.model_dump(mode="json", exclude_unset=True))
    db.commit(); db.refresh(row)
    return row


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_class(
    class_id: int,
    principal: Principal = Depends(require_permission("classes", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "classes", class_id, "Class")
    if row.lessons:
        raise ValidationError("Class still has lessons scheduled", field="class_id")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Class", class_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
