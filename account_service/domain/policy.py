"""Authorization decisions for account operations.

The policy only answers "may this caller perform this operation on this target".
Existence and lifecycle preconditions are checked by :class:`AccountService`
before :func:`authorize` runs, so the error a caller sees follows the fixed order
input -> authentication -> existence -> lifecycle -> authorization -> uniqueness.
"""

from __future__ import annotations

from enum import Enum

from .account import Identity
from .errors import Forbidden, Unauthenticated


class Operation(str, Enum):
    CREATE = "create"
    LIST_ACTIVE = "list-active"
    GET_BY_LOGIN = "get-by-login"
    LIST_BY_AGE = "list-by-age"
    GET_SELF = "get-self"
    UPDATE_PROFILE = "update"
    CHANGE_SECRET = "change-password"
    CHANGE_LOGIN = "change-login"
    DELETE = "delete"
    RESTORE = "restore"


ADMIN_ONLY: frozenset[Operation] = frozenset(
    {
        Operation.CREATE,
        Operation.LIST_ACTIVE,
        Operation.GET_BY_LOGIN,
        Operation.LIST_BY_AGE,
        Operation.DELETE,
        Operation.RESTORE,
    }
)

SELF_OR_ADMIN: frozenset[Operation] = frozenset(
    {Operation.UPDATE_PROFILE, Operation.CHANGE_SECRET, Operation.CHANGE_LOGIN}
)


def require_authenticated(caller: Identity) -> None:
    if not caller.is_authenticated:
        raise Unauthenticated()


def is_allowed(caller: Identity, operation: Operation, target_login: str | None = None) -> bool:
    """Return ``True`` when ``caller`` may perform ``operation`` against ``target_login``."""
    if not caller.is_authenticated:
        return False
    if operation in ADMIN_ONLY:
        return caller.is_admin
    if operation in SELF_OR_ADMIN:
        return caller.is_admin or (target_login is not None and caller.subject == target_login)
    if operation is Operation.GET_SELF:
        return True
    return False


def authorize(caller: Identity, operation: Operation, target_login: str | None = None) -> None:
    """Raise :class:`Forbidden` unless the decision table allows the operation."""
    if not is_allowed(caller, operation, target_login):
        raise Forbidden(f"{operation.value} not permitted for {caller.subject}")
