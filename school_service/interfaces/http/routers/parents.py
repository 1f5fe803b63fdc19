import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ....application.filters import parent_filters
from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....domain.entities import Principal
from ....domain.permissions import CREATE, DELETE, READ, UPDATE
from ....infrastructure.db import get_db
from ....infrastructure.models import Parent
from ....infrastructure.repositories import log_audit
from ....infrastructure.security import PasswordHasher
from ..authz import require_permission
from ..schemas import Page, ParentCreate, ParentOut, ParentUpdate

router = APIRouter(prefix="/api/parents", tags=["parents"])


@router.get("", response_model=Page[ParentOut])
def list_parents(
    principal: Principal = Depends(require_permission("parents", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    search: str | None = None,
    class_id: int | None = Query(None, alias="classId"),
):
    stmt = scoped_select(principal, "parents", *parent_filters(search, class_id))
    return Page[ParentOut].build(paginate(db, stmt, page, limit), ParentOut)


@router.get("/{parent_id}", response_model=ParentOut)
def get_parent(
    parent_id: str,
    principal: Principal = Depends(require_permission("parents", READ)),
    db: Session = Depends(get_db),
):
    return get_visible(db, principal, "parents", parent_id, "Parent")


@router.post("", response_model=ParentOut, status_code=status.HTTP_201_CREATED)
def create_parent(
    payload: ParentCreate,
    principal: Principal = Depends(require_permission("parents", CREATE)),
    db: Session = Depends(get_db),
):
    data = payload.model_dump(exclude={"password", "id"})
    row = Parent(id=payload.id or uuid.uuid4().hex, password_hash=PasswordHasher().hash(payload.password), **data)
    db.add(row)
    log_audit(db, principal, "CREATE", "Parent", row.id, payload.model_dump(mode="json", exclude={"password"}))
    db.commit(); db.refresh(row)
    return row


@router.put("/{parent_id}", response_model=ParentOut)
def update_parent(
    parent_id: str,
    payload: ParentUpdate,
    principal: Principal = Depends(require_permission("parents", UPDATE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "parents", parent_id, "Parent")
    changes = payload.model_dump(exclude_unset=True)
    password = changes.pop("password", None)
    for field, value in changes.items():
        setattr(row, field, value)
    if password:
        row.password_hash = PasswordHasher().hash(password)
    log_audit(db, principal, "UPDATE", "Parent", row.id,
              payload.model_dump(mode="json", exclude_unset=True, exclude={"password"}))
    db.commit(); db.refresh(row)
    return row


@router.delete("/{parent_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_parent(
    parent_id: str,
    principal: Principal = Depends(require_permission("parents", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "parents", parent_id, "Parent")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Parent", parent_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
