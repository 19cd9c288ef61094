"""FastAPI dependencies resolving the service and the caller identity."""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..domain.account import Identity
from ..domain.service import AccountService
from ..security.tokens import resolve_identity

bearer_scheme = HTTPBearer(auto_error=False)


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_caller(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity:
    """Return the caller identity, anonymous when the bearer token is absent or invalid."""
    token = credentials.credentials if credentials else None
    return resolve_identity(token, request.app.state.settings)
