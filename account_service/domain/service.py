"""Account service orchestrating authorization, lifecycle rules, persistence, and token issuance."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from . import lifecycle, policy
from .account import Account, Identity
from .contracts import AccountPatch, CreateAccountInput
from .errors import Conflict, Forbidden, InvalidInput, NotFound, Unauthenticated
from .policy import Operation
from ..config import Settings, get_settings
from ..metrics import ACCOUNT_MUTATIONS, LOGIN_ATTEMPTS
from ..repository import AccountStore
from ..security.tokens import SecretComparator, issue_access_token, plaintext_secrets_match

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenBundle:
    """Encapsulates the access token returned to API consumers."""

    access_token: str
    expires_in: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountService:
    """Account workflows applying the fixed check order before touching the store.

    Every mutating workflow checks, in order: authentication, target existence,
    lifecycle precondition, authorization, uniqueness, and only then commits.
    Input shape is validated by the caller before the service is reached.
    """

    def __init__(
        self,
        repository: AccountStore,
        settings: Settings | None = None,
        *,
        secret_comparator: SecretComparator = plaintext_secrets_match,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Store dependencies used to orchestrate persistence and token issuance."""
        self._repository = repository
        self._settings = settings or get_settings()
        self._secrets_match = secret_comparator
        self._clock = clock

    # -- credential issuance -------------------------------------------------

    def issue_token(self, login: str, secret: str) -> TokenBundle:
        """Exchange a login/secret pair for a signed access token."""
        account = self._repository.find_by_login(login)
        if account is None or not self._secrets_match(account.secret, secret):
            LOGIN_ATTEMPTS.labels(outcome="rejected").inc()
            raise Unauthenticated("invalid login or password")
        if not account.is_active:
            LOGIN_ATTEMPTS.labels(outcome="inactive").inc()
            raise Unauthenticated("invalid login or password")

        token, expires_in = issue_access_token(
            subject=account.login, role=account.role, settings=self._settings
        )
        LOGIN_ATTEMPTS.labels(outcome="issued").inc()
        return TokenBundle(access_token=token, expires_in=expires_in)

    # -- reads -----------------------------------------------------------------

    def list_active(self, caller: Identity) -> list[Account]:
        policy.require_authenticated(caller)
        policy.authorize(caller, Operation.LIST_ACTIVE)
        return self._repository.list_active()

    def get_by_login(self, caller: Identity, login: str) -> Account:
        policy.require_authenticated(caller)
        policy.authorize(caller, Operation.GET_BY_LOGIN, login)
        return self._find(login)

    def get_self(self, caller: Identity) -> Account:
        policy.require_authenticated(caller)
        policy.authorize(caller, Operation.GET_SELF, caller.subject)
        account = self._find(caller.subject)
        if not account.is_active:
            raise Forbidden("account is not active")
        return account

    def list_older_than(self, caller: Identity, years: int) -> list[Account]:
        if years <= 0:
            raise InvalidInput("years must be positive")
        policy.require_authenticated(caller)
        policy.authorize(caller, Operation.LIST_BY_AGE)
        return self._repository.list_by_min_age(years)

    # -- mutations -------------------------------------------------------------

    def create_account(self, caller: Identity, payload: CreateAccountInput) -> Account:
        policy.require_authenticated(caller)
        policy.authorize(caller, Operation.CREATE)
        if self._repository.login_taken(payload.login):
            raise Conflict(f"login {payload.login} is already taken")

        now = self._clock()
        account = Account(
            account_id=str(uuid.uuid4()),
            login=payload.login,
            secret=payload.secret,
            display_name=payload.display_name,
            gender_code=payload.gender_code,
            birth_date=payload.birth_date,
            is_admin=payload.is_admin,
            created_at=now,
            created_by=caller.subject,
            modified_at=now,
            modified_by=caller.subject,
        )
        created = self._repository.create(account)
        self._record(Operation.CREATE, created.login, caller)
        return created

    def update_profile(self, caller: Identity, login: str, patch: AccountPatch) -> Account:
        account = self._load_target(caller, login, Operation.UPDATE_PROFILE)
        fields = patch.apply(account) + lifecycle.touch(account, caller.subject, self._clock())
        updated = self._commit(account, Operation.UPDATE_PROFILE, fields)
        self._record(Operation.UPDATE_PROFILE, login, caller)
        return updated

    def change_secret(self, caller: Identity, login: str, new_secret: str) -> Account:
        account = self._load_target(caller, login, Operation.CHANGE_SECRET)
        account.secret = new_secret
        fields = ["secret"] + lifecycle.touch(account, caller.subject, self._clock())
        updated = self._commit(account, Operation.CHANGE_SECRET, fields)
        self._record(Operation.CHANGE_SECRET, login, caller)
        return updated

    def change_login(self, caller: Identity, login: str, new_login: str) -> Account:
        account = self._load_target(caller, login, Operation.CHANGE_LOGIN)
        if self._repository.login_taken(new_login, exclude_account_id=account.account_id):
            raise Conflict(f"login {new_login} is already taken")
        account.login = new_login
        fields = ["login"] + lifecycle.touch(account, caller.subject, self._clock())
        updated = self._commit(account, Operation.CHANGE_LOGIN, fields)
        logger.info("login changed from %s to %s by %s", login, new_login, caller.subject)
        ACCOUNT_MUTATIONS.labels(operation=Operation.CHANGE_LOGIN.value).inc()
        return updated

    def delete_account(self, caller: Identity, login: str, *, soft: bool = True) -> Account | None:
        """Revoke (soft) or permanently remove (hard) an account.

        Returns the revoked account for a soft delete and ``None`` after a hard delete.
        """
        account = self._load_target(caller, login, Operation.DELETE)
        if soft:
            fields = lifecycle.revoke(account, caller.subject, self._clock())
            result: Account | None = self._commit(account, Operation.DELETE, fields)
        else:
            self._repository.delete(login)
            result = None
        logger.info(
            "account %s %s by %s", login, "revoked" if soft else "deleted", caller.subject
        )
        ACCOUNT_MUTATIONS.labels(operation="revoke" if soft else "delete").inc()
        return result

    def restore_account(self, caller: Identity, login: str) -> Account:
        account = self._load_target(caller, login, Operation.RESTORE)
        fields = lifecycle.restore(account, caller.subject, self._clock())
        restored = self._commit(account, Operation.RESTORE, fields)
        self._record(Operation.RESTORE, login, caller)
        return restored

    # -- helpers ---------------------------------------------------------------

    def _find(self, login: str) -> Account:
        account = self._repository.find_by_login(login)
        if account is None:
            raise NotFound(f"account {login} not found")
        return account

    def _load_target(self, caller: Identity, login: str, operation: Operation) -> Account:
        policy.require_authenticated(caller)
        account = self._find(login)
        lifecycle.ensure_active(account, operation)
        policy.authorize(caller, operation, login)
        return account

    def _commit(self, account: Account, operation: Operation, fields: list[str]) -> Account:
        return self._repository.update(
            account, fields, require_active=operation in lifecycle.REQUIRES_ACTIVE
        )

    def _record(self, operation: Operation, login: str, caller: Identity) -> None:
        logger.info("account %s: %s by %s", login, operation.value, caller.subject)
        ACCOUNT_MUTATIONS.labels(operation=operation.value).inc()
