import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ....application.filters import student_filters
from ....application.ownership import ensure_in_scope, get_or_404
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....domain.entities import Principal, Role
from ....domain.errors import AuthorizationError
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.db import get_db
from ....infrastructure.models import Class, Parent, Student
from ....infrastructure.repositories import log_audit
from ....infrastructure.security import PasswordHasher
from ..authz import require_permission
from ..schemas import Page, StudentCreate, StudentOut, StudentUpdate

router = APIRouter(prefix="/api/students", tags=["students"])


# пароль и привязка к родителю меняются только админом
ADMIN_ONLY_FIELDS = ("password", "parent_id")


def _check_links(db: Session, principal: Principal, changes: dict):
    if principal.role is not Role.ADMIN:
        locked = [name for name in ADMIN_ONLY_FIELDS if name in changes]
        if locked:
            raise AuthorizationError(f"Only admins can change: {', '.join(locked)}")
        if "class_id" in changes and changes["class_id"] is None:
            raise AuthorizationError("Only admins can remove a student from a class")

    class_id = changes.get("class_id")
    if class_id is not None:
        get_or_404(db, Class, class_id, "Class")
        # учитель может записывать только в свои классы
        if principal.role is Role.TEACHER:
            ensure_in_scope(db, principal, "classes", class_id)
    parent_id = changes.get("parent_id")
    if parent_id is not None:
        get_or_404(db, Parent, parent_id, "Parent")


@router.get("", response_model=Page[StudentOut])
def list_students(
    principal: Principal = Depends(require_permission("students", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: str | None = None,
    class_id: int | None = Query(None, alias="classId"),
    grade_id: int | None = Query(None, alias="gradeId"),
    parent_id: str | None = Query(None, alias="parentId"),
):
    stmt = scoped_select(principal, "students", *student_filters(search, class_id, grade_id, parent_id))
    return Page[StudentOut].build(paginate(db, stmt, page, limit), StudentOut)


@router.get("/{student_id}", response_model=StudentOut)
def get_student(
    student_id: str,
    principal: Principal = Depends(require_permission("students", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "students", student_id, "Student")


@router.post("", response_model=StudentOut, status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentCreate,
    principal: Principal = Depends(require_permission("students", CREATE)),
    db: Session = Depends(get_db),
):
    _check_links(db, principal, payload.model_dump(exclude_unset=True, exclude={"password"}))
    data = payload.model_dump(exclude={"password", "id"})
    row = Student(id=payload.id or uuid.uuid4().hex, password_hash=PasswordHasher().hash(payload.password), **data)
    db.add(row)
    log_audit(db, principal, "CREATE", "Student", row.id, payload.model_dump(mode="json", exclude={"password"}))
    db.commit(); db.refresh(row)
    return row


@router.put("/{student_id}", response_model=StudentOut)
def update_student(
    student_id: str,
    payload: StudentUpdate,
    principal: Principal = Depends(require_permission("students", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "students", student_id, "Student")
    changes = payload.model_dump(exclude_unset=True)
    _check_links(db, principal, changes)
    password = changes.pop("password", None)
    for field, value in changes.items():
        setattr(row, field, value)
    if password:
        row.password_hash = PasswordHasher().hash(password)
    log_audit(db, principal, "UPDATE", "Student", row.id,
              payload.model_dump(mode="json", exclude_unset=True, exclude={"password"}))
    db.commit(); db.refresh(row)
    return row


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(
    student_id: str,
    principal: Principal = Depends(require_permission("students", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "students", student_id, "Student")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Student", student_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
