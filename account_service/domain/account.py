from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

SYSTEM_ACTOR = "System"


class Role(str, Enum):
    """Two-valued caller role carried in access tokens."""

    USER = "User"
    ADMIN = "Admin"


@dataclass(slots=True)
class Account:
    """Aggregate root for a user identity record and its lifecycle metadata."""

    account_id: str
    login: str
    secret: str
    display_name: str
    gender_code: int
    birth_date: date | None
    is_admin: bool
    created_at: datetime
    created_by: str
    modified_at: datetime
    modified_by: str
    revoked_at: datetime | None = None
    revoked_by: str | None = None

    @property
    def is_active(self) -> bool:
        return self.revoked_at is None

    @property
    def role(self) -> Role:
        return Role.ADMIN if self.is_admin else Role.USER


@dataclass(frozen=True, slots=True)
class Identity:
    """Caller identity established from a validated access token for one request."""

    subject: str | None = None
    role: Role | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.subject is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role is Role.ADMIN


ANONYMOUS = Identity()
