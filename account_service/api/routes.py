"""HTTP route definitions for the account service."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..domain.account import Account, Identity, Role
from ..domain.contracts import AccountPatch, CreateAccountInput
from ..domain.service import AccountService
from .dependencies import get_caller, get_service

router = APIRouter(prefix="/accounts", tags=["accounts"])
auth_router = APIRouter(prefix="/auth", tags=["auth"])

ALNUM_PATTERN = r"^[a-zA-Z0-9]+$"


def _letters_only(value: str | None) -> str | None:
    if value is not None and not value.isalpha():
        raise ValueError("display name must contain letters only")
    return value


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON while accepting snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountResponse(CamelModel):
    """Serialised representation of an `Account` aggregate, without its secret."""

    id: str
    login: str
    display_name: str
    gender_code: int
    birth_date: date | None
    is_admin: bool
    is_active: bool
    role: Role
    created_at: datetime
    created_by: str
    modified_at: datetime
    modified_by: str
    revoked_at: datetime | None
    revoked_by: str | None

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            id=account.account_id,
            login=account.login,
            display_name=account.display_name,
            gender_code=account.gender_code,
            birth_date=account.birth_date,
            is_admin=account.is_admin,
            is_active=account.is_active,
            role=account.role,
            created_at=account.created_at,
            created_by=account.created_by,
            modified_at=account.modified_at,
            modified_by=account.modified_by,
            revoked_at=account.revoked_at,
            revoked_by=account.revoked_by,
        )


class AccountSummaryResponse(CamelModel):
    """Profile returned by the admin lookup by login."""

    display_name: str
    gender_code: int
    birth_date: date | None
    is_active: bool
    role: Role


class SelfProfileResponse(CamelModel):
    display_name: str
    gender_code: int
    birth_date: date | None
    login: str
    role: Role


class StatusResponse(CamelModel):
    status: str


class CreateAccountRequest(CamelModel):
    """Payload accepted when creating an account."""

    login: str = Field(..., pattern=ALNUM_PATTERN, max_length=64)
    secret: str = Field(..., pattern=ALNUM_PATTERN, max_length=128)
    display_name: str = Field(..., min_length=1, max_length=100)
    gender_code: int = Field(default=0, ge=0, le=2)
    birth_date: date | None = None
    is_admin: bool = False

    @field_validator("display_name")
    @classmethod
    def check_display_name(cls, value: str) -> str:
        return _letters_only(value)

    def to_input(self) -> CreateAccountInput:
        return CreateAccountInput(
            login=self.login,
            secret=self.secret,
            display_name=self.display_name,
            gender_code=self.gender_code,
            birth_date=self.birth_date,
            is_admin=self.is_admin,
        )


class UpdateAccountRequest(CamelModel):
    """Partial profile update; omitted fields are left untouched."""

    display_name: str | None = Field(default=None, min_length=1, max_length=100)
    gender_code: int | None = Field(default=None, ge=0, le=2)
    birth_date: date | None = None

    @field_validator("display_name")
    @classmethod
    def check_display_name(cls, value: str | None) -> str | None:
        return _letters_only(value)

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "UpdateAccountRequest":
        for name in ("display_name", "gender_code"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self

    def to_patch(self) -> AccountPatch:
        return AccountPatch(**{name: getattr(self, name) for name in self.model_fields_set})


class ChangePasswordRequest(CamelModel):
    new_password: str = Field(..., pattern=ALNUM_PATTERN, max_length=128)


class ChangeLoginRequest(CamelModel):
    new_login: str = Field(..., pattern=ALNUM_PATTERN, max_length=64)


class LoginRequest(CamelModel):
    """Credential pair exchanged for a bearer token."""

    login: str = Field(..., min_length=1)
    secret: str = Field(..., min_length=1)


class TokenResponse(CamelModel):
    """Token issuance response containing the bearer token and metadata."""

    token: str
    token_type: str = "bearer"
    expires_in: int


@router.post("", response_model=AccountResponse)
def create_account(
    payload: CreateAccountRequest,
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    """Create an account; admin only."""
    account = service.create_account(caller, payload.to_input())
    return AccountResponse.from_domain(account)


@router.get("/active", response_model=list[AccountResponse])
def list_active_accounts(
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> list[AccountResponse]:
    """List active accounts ordered by creation time."""
    return [AccountResponse.from_domain(account) for account in service.list_active(caller)]


@router.get("/by-login/{login}", response_model=AccountSummaryResponse)
def get_account_by_login(
    login: str,
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> AccountSummaryResponse:
    account = service.get_by_login(caller, login)
    return AccountSummaryResponse(
        display_name=account.display_name,
        gender_code=account.gender_code,
        birth_date=account.birth_date,
        is_active=account.is_active,
        role=account.role,
    )


@router.get("/self", response_model=SelfProfileResponse)
def get_self(
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> SelfProfileResponse:
    """Return the caller's own profile."""
    account = service.get_self(caller)
    return SelfProfileResponse(
        display_name=account.display_name,
        gender_code=account.gender_code,
        birth_date=account.birth_date,
        login=account.login,
        role=account.role,
    )


@router.get("/older-than/{years}", response_model=list[AccountResponse])
def list_accounts_older_than(
    years: int,
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> list[AccountResponse]:
    """List accounts whose birth date is at least ``years`` ago."""
    accounts = service.list_older_than(caller, years)
    return [AccountResponse.from_domain(account) for account in accounts]


@router.put("/update/{login}", response_model=AccountResponse)
def update_account(
    login: str,
    payload: UpdateAccountRequest,
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    account = service.update_profile(caller, login, payload.to_patch())
    return AccountResponse.from_domain(account)


@router.put("/change-password/{login}", response_model=StatusResponse)
def change_password(
    login: str,
    payload: ChangePasswordRequest,
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> StatusResponse:
    service.change_secret(caller, login, payload.new_password)
    return StatusResponse(status="ok")


@router.put("/change-login/{login}", response_model=AccountResponse)
def change_login(
    login: str,
    payload: ChangeLoginRequest,
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    account = service.change_login(caller, login, payload.new_login)
    return AccountResponse.from_domain(account)


@router.delete("/{login}", response_model=StatusResponse)
def delete_account(
    login: str,
    soft_delete: bool = Query(default=True, alias="softDelete"),
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> StatusResponse:
    """Revoke the account, or remove it permanently when ``softDelete=false``."""
    service.delete_account(caller, login, soft=soft_delete)
    return StatusResponse(status="revoked" if soft_delete else "deleted")


@router.put("/restore/{login}", response_model=AccountResponse)
def restore_account(
    login: str,
    caller: Identity = Depends(get_caller),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    account = service.restore_account(caller, login)
    return AccountResponse.from_domain(account)


@auth_router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
) -> TokenResponse:
    """Issue a signed access token for valid credentials."""
    bundle = service.issue_token(payload.login, payload.secret)
    return TokenResponse(token=bundle.access_token, expires_in=bundle.expires_in)
