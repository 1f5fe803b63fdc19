from datetime import datetime

from ...domain.entities import AuthUser, Role
from ...domain.errors import AuthenticationError


class IUserRepository:
    def find_credentials(self, username: str) -> list[tuple[AuthUser, str]]: ...
    def get(self, user_id: str, role: Role) -> AuthUser | None: ...


class ISessionStore:
    def create(self, session_id: str, user: AuthUser, expires_at: datetime,
               ip_address: str | None = None, user_agent: str | None = None) -> None: ...
    def touch(self, session_id: str, user_id: str) -> bool: ...
    def delete(self, session_id: str) -> None: ...


class IPasswordHasher:
    def verify(self, plain: str, hashed: str) -> bool: ...


class AuthenticateUser:
    """Checks credentials against every user table and opens a server-side session."""

    def __init__(self, repo: IUserRepository, sessions: ISessionStore, hasher: IPasswordHasher,
                 issue_token, new_session_id):
        self.repo = repo
        self.sessions = sessions
        self.hasher = hasher
        self.issue_token = issue_token
        self.new_session_id = new_session_id

    def execute(self, username: str, password: str, expected_role: Role | None = None,
                ip_address: str | None = None, user_agent: str | None = None) -> tuple[AuthUser, str, datetime]:
        user = None
        for candidate, password_hash in self.repo.find_credentials(username):
            if self.hasher.verify(password, password_hash):
                user = candidate
                break
        if user is None:
            raise AuthenticationError("Invalid credentials")
        if expected_role is not None and user.role != expected_role:
            raise AuthenticationError("Invalid credentials")

        session_id = self.new_session_id()
        token, expires_at = self.issue_token(user.id, user.role, session_id, user.username)
        self.sessions.create(session_id, user, expires_at, ip_address, user_agent)
        return user, token, expires_at
