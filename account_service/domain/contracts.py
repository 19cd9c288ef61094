"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Final

from .account import Account


class _Unset:
    """Marker for a patch field that was not supplied by the caller."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = _Unset()


@dataclass(slots=True)
class CreateAccountInput:
    """Validated inputs required to create an account."""

    login: str
    secret: str
    display_name: str
    gender_code: int = 0
    birth_date: date | None = None
    is_admin: bool = False


@dataclass(frozen=True, slots=True)
class AccountPatch:
    """Partial profile update where every field is either UNSET or an explicit value.

    ``birth_date=None`` clears the stored birth date; ``birth_date=UNSET`` leaves it alone.
    """

    display_name: str | _Unset = UNSET
    gender_code: int | _Unset = UNSET
    birth_date: date | None | _Unset = UNSET

    def changes(self) -> dict[str, Any]:
        """Return the supplied fields keyed by attribute name."""
        return {
            name: value
            for name in ("display_name", "gender_code", "birth_date")
            if (value := getattr(self, name)) is not UNSET
        }

    def apply(self, account: Account) -> list[str]:
        """Write supplied fields onto ``account`` and return the names that were set."""
        changed = self.changes()
        for name, value in changed.items():
            setattr(account, name, value)
        return sorted(changed)
