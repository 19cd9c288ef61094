from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from account_service.config import Settings
from account_service.domain.account import Account


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        environment="development",
        store_backend="memory",
        jwt_secret="test-secret-with-more-than-32-characters",
        jwt_issuer="test-issuer",
        jwt_audience="test-audience",
        jwt_ttl_seconds=3600,
        bootstrap_admin_enabled=True,
        bootstrap_admin_login="admin",
        bootstrap_admin_secret="admin123",
    )


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def make_account(
    login: str,
    *,
    is_admin: bool = False,
    secret: str = "pw1",
    birth_date: date | None = None,
    created_at: datetime | None = None,
    revoked: bool = False,
) -> Account:
    created_at = created_at or datetime(2024, 1, 1, tzinfo=timezone.utc)
    return Account(
        account_id=str(uuid.uuid4()),
        login=login,
        secret=secret,
        display_name=login.capitalize(),
        gender_code=0,
        birth_date=birth_date,
        is_admin=is_admin,
        created_at=created_at,
        created_by="System",
        modified_at=created_at,
        modified_by="System",
        revoked_at=created_at if revoked else None,
        revoked_by="admin" if revoked else None,
    )
