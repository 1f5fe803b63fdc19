from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Admin, Teacher, Student, Parent, UserSession, AuditLog
from .security import as_utc
from ..domain.entities import AuthUser, Principal, Role
from ..application.use_cases.authenticate_user import IUserRepository, ISessionStore

# порядок поиска пользователя при логине
USER_TABLES = {
    Role.ADMIN: Admin,
    Role.TEACHER: Teacher,
    Role.STUDENT: Student,
    Role.PARENT: Parent,
}


def to_domain(row, role: Role) -> AuthUser:
    return AuthUser(
        id=row.id,
        username=row.username,
        role=role,
        name=row.name,
        surname=row.surname,
        email=row.email,
    )


class UserRepository(IUserRepository):
    def __init__(self, db: Session): self.db = db

    def find_credentials(self, username: str) -> list[tuple[AuthUser, str]]:
        found = []
        for role, model in USER_TABLES.items():
            row = self.db.execute(select(model).where(model.username == username)).scalar_one_or_none()
            if row is not None:
                found.append((to_domain(row, role), row.password_hash))
        return found

    def get(self, user_id: str, role: Role) -> AuthUser | None:
        model = USER_TABLES.get(role)
        if model is None:
            return None
        row = self.db.get(model, user_id)
        return to_domain(row, role) if row else None


class SessionStore(ISessionStore):
    def __init__(self, db: Session): self.db = db

    def create(self, session_id: str, user: AuthUser, expires_at: datetime,
               ip_address: str | None = None, user_agent: str | None = None) -> None:
        self.db.add(UserSession(
            id=session_id,
            user_id=user.id,
            role=user.role.value,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:255] or None,
        ))

    def touch(self, session_id: str, user_id: str) -> bool:
        """Refreshes last_active of a live session; False when it is gone or expired."""
        row = self.db.get(UserSession, session_id)
        now = datetime.now(timezone.utc)
        if row is None or row.user_id != user_id or as_utc(row.expires_at) <= now:
            return False
        row.last_active = now
        self.db.commit()
        return True

    def delete(self, session_id: str) -> None:
        row = self.db.get(UserSession, session_id)
        if row is not None:
            self.db.delete(row)


def log_audit(db: Session, principal: Principal, action: str, entity: str,
              entity_id=None, changes: dict | None = None) -> None:
    """Adds an audit row to the current transaction; the caller commits."""
    db.add(AuditLog(
        user_id=principal.id,
        role=principal.role.value,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        changes=changes,
    ))
