"""Error taxonomy shared by the store, policy, lifecycle, and service layers."""

from __future__ import annotations

from typing import Any


class AccountServiceError(Exception):
    """Base class for failures surfaced directly to API callers."""

    status_code: int = 400
    default_detail: str = "request failed"

    def __init__(self, detail: Any = None) -> None:
        self.detail = detail if detail is not None else self.default_detail
        super().__init__(str(self.detail))


class InvalidInput(AccountServiceError):
    status_code = 400
    default_detail = "invalid input"


class Unauthenticated(AccountServiceError):
    status_code = 401
    default_detail = "authentication required"


class Forbidden(AccountServiceError):
    status_code = 403
    default_detail = "operation not permitted"


class NotFound(AccountServiceError):
    status_code = 404
    default_detail = "account not found"


class PreconditionFailed(AccountServiceError):
    """Target account exists but is not in the lifecycle state the operation needs."""

    status_code = 400
    default_detail = "account is not active"


class Conflict(AccountServiceError):
    status_code = 400
    default_detail = "login is already taken"


class StoreFailure(AccountServiceError):
    status_code = 500
    default_detail = "account store failure"
