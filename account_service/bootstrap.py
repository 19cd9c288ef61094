"""Start-up provisioning of a default administrator account."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone

from .config import Settings
from .domain.account import SYSTEM_ACTOR, Account
from .domain.errors import Conflict
from .repository import AccountStore

logger = logging.getLogger(__name__)


def provision_default_admin(repository: AccountStore, settings: Settings) -> Account | None:
    """Create the configured admin account when the store holds no administrator.

    Idempotent: returns ``None`` without writing when disabled or when any admin
    already exists. Intended for development; production deployments disable it
    with ``BOOTSTRAP_ADMIN_ENABLED=false`` and provision administrators explicitly.
    """
    if not settings.bootstrap_admin_enabled:
        logger.info("default admin provisioning disabled")
        return None
    if repository.has_admin():
        return None

    now = datetime.now(timezone.utc)
    account = Account(
        account_id=str(uuid.uuid4()),
        login=settings.bootstrap_admin_login,
        secret=settings.bootstrap_admin_secret,
        display_name="Admin",
        gender_code=1,
        birth_date=date(1980, 1, 1),
        is_admin=True,
        created_at=now,
        created_by=SYSTEM_ACTOR,
        modified_at=now,
        modified_by=SYSTEM_ACTOR,
    )
    try:
        created = repository.create(account)
    except Conflict:
        logger.error(
            "cannot provision default admin: login %s belongs to a non-admin account",
            settings.bootstrap_admin_login,
        )
        return None
    logger.warning(
        "provisioned default admin account %s; disable BOOTSTRAP_ADMIN_ENABLED outside development",
        created.login,
    )
    return created
