from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    PARENT = "PARENT"

    @classmethod
    def parse(cls, value) -> "Role | None":
        """Case-insensitive lookup; anything unrecognised yields None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class Principal:
    id: str
    role: Role
    username: str | None = None
    session_id: str | None = None


@dataclass(frozen=True)
class AuthUser:
    id: str
    username: str
    role: Role
    name: str
    surname: str
    email: str | None = None
