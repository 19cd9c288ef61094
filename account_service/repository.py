"""Account store backends: Postgres for deployments, in-memory for development and tests."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from threading import Lock
from typing import Iterable, Protocol, Sequence

import psycopg
from psycopg.errors import UniqueViolation
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .config import Settings
from .domain.account import Account
from .domain.errors import Conflict, InvalidInput, NotFound, PreconditionFailed, StoreFailure

logger = logging.getLogger(__name__)

_COLUMNS = """
    account_id, login, secret, display_name, gender_code, birth_date, is_admin,
    created_at, created_by, modified_at, modified_by, revoked_at, revoked_by
"""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    account_id TEXT PRIMARY KEY,
    login TEXT NOT NULL UNIQUE,
    secret TEXT NOT NULL,
    display_name TEXT NOT NULL,
    gender_code SMALLINT NOT NULL CHECK (gender_code BETWEEN 0 AND 2),
    birth_date DATE,
    is_admin BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL,
    created_by TEXT NOT NULL,
    modified_at TIMESTAMPTZ NOT NULL,
    modified_by TEXT NOT NULL,
    revoked_at TIMESTAMPTZ,
    revoked_by TEXT
)
"""


def min_birth_date(years: int, today: date | None = None) -> date:
    """Latest birth date that is at least ``years`` before ``today``.

    Raises
    ------
    InvalidInput
        When ``years`` is not positive.
    """
    if years <= 0:
        raise InvalidInput("years must be positive")
    today = today or datetime.now(timezone.utc).date()
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return today.replace(year=today.year - years, day=28)


UPDATABLE_COLUMNS = (
    "login",
    "secret",
    "display_name",
    "gender_code",
    "birth_date",
    "modified_at",
    "modified_by",
    "revoked_at",
    "revoked_by",
)


def updatable_columns(fields: Iterable[str]) -> list[str]:
    """Validate ``fields`` against the writable columns, in table order.

    Identity and creation columns are never rewritten by an update.
    """
    requested = set(fields)
    unknown = requested.difference(UPDATABLE_COLUMNS)
    if unknown:
        raise ValueError(f"columns cannot be updated: {', '.join(sorted(unknown))}")
    return [name for name in UPDATABLE_COLUMNS if name in requested]


class AccountStore(Protocol):
    """Contract shared by every account store backend."""

    def create(self, account: Account) -> Account: ...

    def find_by_login(self, login: str) -> Account | None: ...

    def login_taken(self, login: str, exclude_account_id: str | None = None) -> bool: ...

    def has_admin(self) -> bool: ...

    def list_active(self) -> list[Account]: ...

    def list_by_min_age(self, years: int) -> list[Account]: ...

    def update(
        self, account: Account, fields: Iterable[str], *, require_active: bool = False
    ) -> Account: ...

    def delete(self, login: str) -> None: ...


class InMemoryAccountRepository:
    """Thread-safe in-process store; uniqueness is checked and written under one lock."""

    def __init__(self, accounts: Sequence[Account] = ()) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = Lock()
        for account in accounts:
            self.create(account)

    def _login_taken(self, login: str, exclude_account_id: str | None) -> bool:
        return any(
            stored.login == login and stored.account_id != exclude_account_id
            for stored in self._accounts.values()
        )

    def create(self, account: Account) -> Account:
        with self._lock:
            if self._login_taken(account.login, None):
                raise Conflict(f"login {account.login} is already taken")
            self._accounts[account.account_id] = replace(account)
            return replace(account)

    def find_by_login(self, login: str) -> Account | None:
        with self._lock:
            for stored in self._accounts.values():
                if stored.login == login:
                    return replace(stored)
        return None

    def login_taken(self, login: str, exclude_account_id: str | None = None) -> bool:
        with self._lock:
            return self._login_taken(login, exclude_account_id)

    def has_admin(self) -> bool:
        with self._lock:
            return any(stored.is_admin for stored in self._accounts.values())

    def list_active(self) -> list[Account]:
        with self._lock:
            active = [replace(stored) for stored in self._accounts.values() if stored.is_active]
        return sorted(active, key=lambda account: account.created_at)

    def list_by_min_age(self, years: int) -> list[Account]:
        cutoff = min_birth_date(years)
        with self._lock:
            matches = [
                replace(stored)
                for stored in self._accounts.values()
                if stored.birth_date is not None and stored.birth_date <= cutoff
            ]
        return sorted(matches, key=lambda account: account.created_at)

    def update(
        self, account: Account, fields: Iterable[str], *, require_active: bool = False
    ) -> Account:
        columns = updatable_columns(fields)
        with self._lock:
            stored = self._accounts.get(account.account_id)
            if stored is None:
                raise NotFound()
            if require_active and not stored.is_active:
                raise PreconditionFailed(f"account {stored.login} is not active")
            if "login" in columns and self._login_taken(account.login, account.account_id):
                raise Conflict(f"login {account.login} is already taken")
            for name in columns:
                setattr(stored, name, getattr(account, name))
            return replace(stored)

    def delete(self, login: str) -> None:
        with self._lock:
            for account_id, stored in self._accounts.items():
                if stored.login == login:
                    del self._accounts[account_id]
                    return
        raise NotFound()


class AccountRepository:
    """Postgres-backed account persistence; the UNIQUE(login) constraint arbitrates races."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
                conn.commit()

    def create(self, account: Account) -> Account:
        """Insert a new account row, translating duplicate logins into :class:`Conflict`."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO accounts ({_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        self._params(account),
                    )
                    row = cur.fetchone()
                    conn.commit()
        except UniqueViolation as exc:
            raise Conflict(f"login {account.login} is already taken") from exc
        return self._map_record(row)

    def find_by_login(self, login: str) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM accounts WHERE login = %s",
                    (login,),
                )
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_record(row)

    def login_taken(self, login: str, exclude_account_id: str | None = None) -> bool:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    SELECT 1 FROM accounts
                    WHERE login = %s AND (%s::text IS NULL OR account_id <> %s)
                    """,
                    (login, exclude_account_id, exclude_account_id),
                )
                return cur.fetchone() is not None

    def has_admin(self) -> bool:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute("SELECT 1 FROM accounts WHERE is_admin LIMIT 1")
                return cur.fetchone() is not None

    def list_active(self) -> list[Account]:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS} FROM accounts
                    WHERE revoked_at IS NULL
                    ORDER BY created_at ASC
                    """
                )
                return [self._map_record(row) for row in cur.fetchall()]

    def list_by_min_age(self, years: int) -> list[Account]:
        cutoff = min_birth_date(years)
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS} FROM accounts
                    WHERE birth_date IS NOT NULL AND birth_date <= %s
                    ORDER BY created_at ASC
                    """,
                    (cutoff,),
                )
                return [self._map_record(row) for row in cur.fetchall()]

    def update(
        self, account: Account, fields: Iterable[str], *, require_active: bool = False
    ) -> Account:
        """Persist only ``fields`` of an already-loaded account.

        With ``require_active`` the row is written only while it is not revoked,
        raising :class:`PreconditionFailed` when a concurrent revoke got there first.
        """
        columns = updatable_columns(fields)
        assignments = ", ".join(f"{name} = %s" for name in columns)
        where_sql = "account_id = %s"
        if require_active:
            where_sql += " AND revoked_at IS NULL"
        params = [getattr(account, name) for name in columns]
        params.append(account.account_id)

        exists = False
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        UPDATE accounts
                        SET {assignments}
                        WHERE {where_sql}
                        RETURNING {_COLUMNS}
                        """,
                        params,
                    )
                    row = cur.fetchone()
                    if row is None:
                        cur.execute(
                            "SELECT 1 FROM accounts WHERE account_id = %s",
                            (account.account_id,),
                        )
                        exists = cur.fetchone() is not None
                    conn.commit()
        except UniqueViolation as exc:
            raise Conflict(f"login {account.login} is already taken") from exc
        except psycopg.Error as exc:
            logger.exception("failed to update account %s", account.login)
            raise StoreFailure(f"failed to update account {account.login}") from exc
        if row is None:
            if exists:
                raise PreconditionFailed(f"account {account.login} is not active")
            raise NotFound()
        return self._map_record(row)

    def delete(self, login: str) -> None:
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM accounts WHERE login = %s", (login,))
                    deleted = cur.rowcount
                    conn.commit()
        except psycopg.Error as exc:
            logger.exception("failed to delete account %s", login)
            raise StoreFailure(f"failed to delete account {login}") from exc
        if not deleted:
            raise NotFound()

    def _params(self, account: Account) -> tuple:
        return (
            account.account_id,
            account.login,
            account.secret,
            account.display_name,
            account.gender_code,
            account.birth_date,
            account.is_admin,
            account.created_at,
            account.created_by,
            account.modified_at,
            account.modified_by,
            account.revoked_at,
            account.revoked_by,
        )

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            login=row[1],
            secret=row[2],
            display_name=row[3],
            gender_code=row[4],
            birth_date=row[5],
            is_admin=row[6],
            created_at=row[7],
            created_by=row[8],
            modified_at=row[9],
            modified_by=row[10],
            revoked_at=row[11],
            revoked_by=row[12],
        )


def build_repository(settings: Settings) -> tuple[AccountStore, ConnectionPool | None]:
    """Instantiate the configured store backend and the pool that must be closed with it."""
    if settings.store_backend == "postgres":
        pool = ConnectionPool(settings.database_url, open=False)
        pool.open()
        repository = AccountRepository(pool)
        repository.ensure_schema()
        logger.info("account store configured for postgres backend")
        return repository, pool

    logger.info("account store using in-memory backend")
    return InMemoryAccountRepository(), None
