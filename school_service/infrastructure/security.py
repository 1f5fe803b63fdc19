import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError
from passlib.context import CryptContext

from ..config import settings
from ..domain.entities import Role

pwd = CryptContext(
    schemes=["bcrypt_sha256"],
    deprecated="auto",
    bcrypt_sha256__truncate_error=False,
)


class PasswordHasher:
    def hash(self, plain: str) -> str: return pwd.hash(plain)
    def verify(self, plain: str, hashed: str) -> bool: return pwd.verify(plain, hashed)


def as_utc(value: datetime) -> datetime:
    # SQLite отдаёт naive datetime даже для timezone=True
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_session_id() -> str:
    return uuid.uuid4().hex


def create_session_token(
    user_id: str,
    role: Role,
    session_id: str,
    username: str | None = None,
    minutes: int | None = None,
) -> tuple[str, datetime]:
    """Signs a session JWT and returns it together with its expiry."""
    exp = datetime.now(timezone.utc) + timedelta(minutes=minutes or settings.SESSION_TTL_MINUTES)
    payload = {
        "sub": user_id,
        "role": role.value,
        "jti": session_id,
        "username": username,
        "exp": exp,
    }
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, exp


def decode_session_token(token: str) -> dict:
    """Возвращает claims токена или кидает JWTError (включая истёкший срок)."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if not payload.get("sub"):
        raise JWTError("No subject")
    if not payload.get("jti"):
        raise JWTError("No session id")
    return payload
