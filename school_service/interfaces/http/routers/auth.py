import structlog
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from ....config import settings
from ....application.use_cases.authenticate_user import AuthenticateUser
from ....domain.entities import Principal
from ....domain.errors import AuthenticationError
from ....infrastructure.db import get_db
from ....infrastructure.rate_limit import limiter
from ....infrastructure.repositories import SessionStore, UserRepository, log_audit
from ....infrastructure.security import PasswordHasher, create_session_token, new_session_id
from ..authz import get_principal
from ..schemas import LoginReq, LoginResp, UserResp

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/login", response_model=LoginResp)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(
    request: Request,
    response: Response,
    payload: LoginReq,
    db: Session = Depends(get_db),
):
    uc = AuthenticateUser(
        repo=UserRepository(db),
        sessions=SessionStore(db),
        hasher=PasswordHasher(),
        issue_token=create_session_token,
        new_session_id=new_session_id,
    )
    try:
        user, token, expires_at = uc.execute(
            payload.username,
            payload.password,
            expected_role=payload.role,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
    except AuthenticationError:
        logger.info("login_failed", username=payload.username)
        raise

    principal = Principal(id=user.id, role=user.role, username=user.username)
    log_audit(db, principal, "LOGIN", "Session")
    db.commit()

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        expires=expires_at,
    )
    logger.info("login", user_id=user.id, role=user.role.value)
    return LoginResp(user=UserResp.model_validate(user), expires_at=expires_at)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    SessionStore(db).delete(principal.session_id)
    log_audit(db, principal, "LOGOUT", "Session", principal.session_id)
    db.commit()
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response


@router.get("/me", response_model=UserResp)
def me(
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    user = UserRepository(db).get(principal.id, principal.role)
    if user is None:
        raise AuthenticationError("User not found")
    return UserResp.model_validate(user)
