import structlog
from fastapi import Depends, Request
from jose import JWTError
from sqlalchemy.orm import Session

from ...config import settings
from ...domain.entities import Principal, Role
from ...domain.errors import AuthenticationError, AuthorizationError
from ...domain.permissions import has_permission
from ...infrastructure.db import get_db
from ...infrastructure.metrics import auth_failures_total, permission_denied_total
from ...infrastructure.repositories import SessionStore
from ...infrastructure.security import decode_session_token

logger = structlog.get_logger()


def get_session_token(request: Request) -> str:
    """Session cookie first, then an ``Authorization: Bearer`` header."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    auth_failures_total.labels(reason="missing").inc()
    raise AuthenticationError("Not authenticated")


def get_principal(token: str = Depends(get_session_token), db: Session = Depends(get_db)) -> Principal:
    try:
        claims = decode_session_token(token)
    except JWTError:
        auth_failures_total.labels(reason="invalid").inc()
        raise AuthenticationError("Invalid session")

    role = Role.parse(claims.get("role"))
    if role is None:
        auth_failures_total.labels(reason="malformed").inc()
        raise AuthenticationError("Invalid session")

    if not SessionStore(db).touch(claims["jti"], claims["sub"]):
        auth_failures_total.labels(reason="revoked").inc()
        raise AuthenticationError("Session expired")

    return Principal(id=claims["sub"], role=role, username=claims.get("username"), session_id=claims["jti"])


def require_permission(resource: str, action: str):
    """Dependency factory: resolves the caller and runs the permission gate."""
    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if not has_permission(principal.role, resource, action):
            role = getattr(principal.role, "value", str(principal.role))
            permission_denied_total.labels(role=role, resource=resource, action=action).inc()
            logger.info("permission_denied", user_id=principal.id, role=role, resource=resource, action=action)
            raise AuthorizationError()
        return principal

    return dependency
