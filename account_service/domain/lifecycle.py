"""Active/Revoked state machine for accounts."""

from __future__ import annotations

from datetime import datetime, timezone

from .account import Account
from .errors import PreconditionFailed
from .policy import Operation

# Restore and delete also act on revoked accounts.
REQUIRES_ACTIVE: frozenset[Operation] = frozenset(
    {Operation.UPDATE_PROFILE, Operation.CHANGE_SECRET, Operation.CHANGE_LOGIN}
)

AUDIT_FIELDS = ("modified_at", "modified_by")
REVOCATION_FIELDS = ("revoked_at", "revoked_by")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_active(account: Account, operation: Operation) -> None:
    if operation in REQUIRES_ACTIVE and not account.is_active:
        raise PreconditionFailed(f"account {account.login} is not active")


def touch(account: Account, actor: str, at: datetime | None = None) -> list[str]:
    """Stamp modification metadata and return the names of the stamped fields."""
    account.modified_at = at or _now()
    account.modified_by = actor
    return list(AUDIT_FIELDS)


def revoke(account: Account, actor: str, at: datetime | None = None) -> list[str]:
    """Active -> Revoked. Re-revoking refreshes the revocation stamp."""
    at = at or _now()
    account.revoked_at = at
    account.revoked_by = actor
    return list(REVOCATION_FIELDS) + touch(account, actor, at)


def restore(account: Account, actor: str, at: datetime | None = None) -> list[str]:
    """Revoked -> Active."""
    account.revoked_at = None
    account.revoked_by = None
    return list(REVOCATION_FIELDS) + touch(account, actor, at)
