from __future__ import annotations

import pytest

from account_service.domain.account import ANONYMOUS, Identity, Role
from account_service.domain.contracts import UNSET, AccountPatch, CreateAccountInput
from account_service.domain.errors import (
    Conflict,
    Forbidden,
    InvalidInput,
    NotFound,
    PreconditionFailed,
    StoreFailure,
    Unauthenticated,
)
from account_service.domain.service import AccountService
from account_service.repository import InMemoryAccountRepository
from account_service.security.tokens import resolve_identity

from conftest import StepClock, make_account

ADMIN = Identity(subject="admin", role=Role.ADMIN)
ALICE = Identity(subject="alice", role=Role.USER)
BOB = Identity(subject="bob", role=Role.USER)


@pytest.fixture
def repository():
    return InMemoryAccountRepository(
        [make_account("admin", is_admin=True), make_account("alice"), make_account("bob")]
    )


@pytest.fixture
def service(repository, settings):
    return AccountService(repository, settings, clock=StepClock())


def test_create_stamps_audit_metadata(service):
    account = service.create_account(
        ADMIN, CreateAccountInput(login="carol", secret="pw", display_name="Carol", gender_code=1)
    )
    assert account.is_active
    assert account.created_by == account.modified_by == "admin"
    assert account.created_at == account.modified_at


@pytest.mark.parametrize(
    "caller, error",
    [(ANONYMOUS, Unauthenticated), (ALICE, Forbidden)],
)
def test_create_requires_admin(service, caller, error):
    with pytest.raises(error):
        service.create_account(caller, CreateAccountInput(login="carol", secret="pw", display_name="Carol"))


def test_create_duplicate_login_conflicts_even_when_revoked(service):
    service.delete_account(ADMIN, "bob")
    with pytest.raises(Conflict):
        service.create_account(ADMIN, CreateAccountInput(login="bob", secret="pw", display_name="Bob"))


def test_update_matrix(service):
    with pytest.raises(Forbidden):
        service.update_profile(ALICE, "bob", AccountPatch(display_name="Eve"))

    updated = service.update_profile(ALICE, "alice", AccountPatch(display_name="Alicia"))
    assert updated.display_name == "Alicia"
    assert updated.modified_by == "alice"

    service.delete_account(ADMIN, "alice")
    with pytest.raises(PreconditionFailed):
        service.update_profile(ALICE, "alice", AccountPatch(display_name="Alicia"))
    with pytest.raises(PreconditionFailed):
        service.update_profile(BOB, "alice", AccountPatch(display_name="Mallory"))


def test_mutation_check_order(service):
    with pytest.raises(Unauthenticated):
        service.change_secret(ANONYMOUS, "ghost", "pw")
    with pytest.raises(NotFound):
        service.change_secret(BOB, "ghost", "pw")
    with pytest.raises(Forbidden):
        service.change_login(BOB, "alice", "bob")
    with pytest.raises(Conflict):
        service.change_login(ADMIN, "alice", "bob")


def test_patch_leaves_unset_fields_untouched(service, repository):
    before = repository.find_by_login("alice")
    service.update_profile(ADMIN, "alice", AccountPatch(gender_code=2))
    after = repository.find_by_login("alice")
    assert after.gender_code == 2
    assert after.display_name == before.display_name
    assert AccountPatch().changes() == {}
    assert AccountPatch(birth_date=None).changes() == {"birth_date": None}
    assert AccountPatch().display_name is UNSET


def test_change_login_to_own_login_is_allowed(service):
    account = service.change_login(ALICE, "alice", "alice")
    assert account.login == "alice"
    assert account.modified_by == "alice"


def test_revoke_then_restore_updates_audit_fields(service, repository):
    revoked = service.delete_account(ADMIN, "alice", soft=True)
    assert not revoked.is_active
    assert revoked.revoked_by == "admin"
    assert revoked.modified_at == revoked.revoked_at

    restored = service.restore_account(ADMIN, "alice")
    assert restored.is_active
    assert restored.revoked_at is None
    assert restored.revoked_by is None
    assert restored.modified_at > revoked.modified_at
    assert repository.find_by_login("alice").is_active


def test_restore_requires_admin(service):
    service.delete_account(ADMIN, "alice")
    with pytest.raises(Forbidden):
        service.restore_account(ALICE, "alice")


def test_hard_delete_removes_record(service, repository):
    assert service.delete_account(ADMIN, "bob", soft=False) is None
    assert repository.find_by_login("bob") is None


def test_hard_delete_store_failure_propagates(service, repository, monkeypatch):
    def broken_delete(login):
        raise StoreFailure("disk on fire")

    monkeypatch.setattr(repository, "delete", broken_delete)
    with pytest.raises(StoreFailure):
        service.delete_account(ADMIN, "bob", soft=False)


def test_get_self_is_allowed_for_any_authenticated_role(service):
    assert service.get_self(ADMIN).role is Role.ADMIN
    assert service.get_self(BOB).login == "bob"


class InterleavingRepository(InMemoryAccountRepository):
    """Runs ``before_update`` once, between a service loading a record and writing it."""

    before_update = None

    def update(self, account, fields, *, require_active=False):
        hook, self.before_update = self.before_update, None
        if hook is not None:
            hook()
        return super().update(account, fields, require_active=require_active)


@pytest.fixture
def interleaved(settings):
    repository = InterleavingRepository(
        [make_account("admin", is_admin=True), make_account("alice"), make_account("bob")]
    )
    return AccountService(repository, settings, clock=StepClock()), repository


def test_revoke_during_profile_update_is_not_undone(interleaved):
    service, repository = interleaved
    repository.before_update = lambda: service.delete_account(ADMIN, "alice")

    with pytest.raises(PreconditionFailed):
        service.update_profile(ALICE, "alice", AccountPatch(display_name="Alicia"))
    stored = repository.find_by_login("alice")
    assert not stored.is_active
    assert stored.revoked_by == "admin"
    assert stored.display_name == "Alice"


def test_secret_change_during_login_change_is_kept(interleaved):
    service, repository = interleaved
    repository.before_update = lambda: service.change_secret(ADMIN, "alice", "pw2")

    renamed = service.change_login(ALICE, "alice", "alice2")
    assert renamed.login == "alice2"
    assert renamed.secret == "pw2"
    assert repository.find_by_login("alice2").secret == "pw2"
    service.issue_token("alice2", "pw2")


def test_get_self_rejects_revoked_caller(service):
    assert service.get_self(ALICE).login == "alice"
    service.delete_account(ADMIN, "alice")
    with pytest.raises(Forbidden):
        service.get_self(ALICE)
    with pytest.raises(Unauthenticated):
        service.get_self(ANONYMOUS)


def test_list_older_than_validates_years_first(service):
    with pytest.raises(InvalidInput):
        service.list_older_than(ANONYMOUS, 0)
    with pytest.raises(Unauthenticated):
        service.list_older_than(ANONYMOUS, 5)
    with pytest.raises(Forbidden):
        service.list_older_than(ALICE, 5)


def test_issue_token_round_trips_identity(service, settings):
    bundle = service.issue_token("alice", "pw1")
    assert bundle.expires_in == settings.jwt_ttl_seconds
    assert resolve_identity(bundle.access_token, settings) == ALICE

    admin_bundle = service.issue_token("admin", "pw1")
    assert resolve_identity(admin_bundle.access_token, settings) == ADMIN


@pytest.mark.parametrize("login, secret", [("alice", "wrong"), ("ghost", "pw1")])
def test_issue_token_rejects_bad_credentials(service, login, secret):
    with pytest.raises(Unauthenticated):
        service.issue_token(login, secret)


def test_issue_token_rejects_revoked_account(service):
    service.delete_account(ADMIN, "alice")
    with pytest.raises(Unauthenticated):
        service.issue_token("alice", "pw1")


def test_secret_comparator_is_pluggable(repository, settings):
    seen = []

    def comparator(stored: str, presented: str) -> bool:
        seen.append((stored, presented))
        return presented == stored.upper()

    service = AccountService(repository, settings, secret_comparator=comparator)
    service.issue_token("alice", "PW1")
    assert seen == [("pw1", "PW1")]
