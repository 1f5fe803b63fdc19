from sqlalchemy.orm import Session

from ..domain.entities import Principal, Role
from ..domain.errors import AuthorizationError, NotFoundError
from .scopes import build_scope, SCOPES


def get_or_404(db: Session, model, row_id, resource: str):
    row = db.get(model, row_id)
    if row is None:
        raise NotFoundError(resource, row_id)
    return row


def ensure_teaches(principal: Principal, lesson) -> None:
    """Teachers may only touch records hanging off lessons they teach."""
    if principal.role is Role.TEACHER and lesson.teacher_id != principal.id:
        raise AuthorizationError("You can only manage records of your own lessons")


def ensure_in_scope(db: Session, principal: Principal, entity: str, row_id) -> None:
    """Raises 403 when an existing row lies outside the caller's read scope."""
    scope = SCOPES[entity]
    pk = scope.model.__mapper__.primary_key[0]
    visible = db.query(pk).filter(pk == row_id, build_scope(principal, entity)).first()
    if visible is None:
        raise AuthorizationError()
