from __future__ import annotations

import time
from dataclasses import replace

import jwt
import pytest

from account_service.domain.account import ANONYMOUS, Identity, Role
from account_service.security.tokens import (
    decode_access_token,
    issue_access_token,
    plaintext_secrets_match,
    resolve_identity,
)


@pytest.mark.parametrize("role", list(Role))
def test_issued_token_round_trips_subject_and_role(settings, role):
    token, expires_in = issue_access_token(subject="alice", role=role, settings=settings)
    assert expires_in == 3600

    claims = decode_access_token(token, settings)
    assert claims["exp"] - claims["iat"] == 3600
    assert resolve_identity(token, settings) == Identity(subject="alice", role=role)


def _forge(settings, **overrides):
    now = int(time.time())
    payload = {
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "sub": "alice",
        "role": "User",
        "iat": now,
        "exp": now + 60,
    }
    payload.update(overrides)
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


@pytest.mark.parametrize(
    "overrides",
    [
        {"iss": "someone-else"},
        {"aud": "other-audience"},
        {"exp": int(time.time()) - 120},
        {"role": "Superuser"},
    ],
)
def test_tokens_failing_validation_resolve_to_anonymous(settings, overrides):
    assert resolve_identity(_forge(settings, **overrides), settings) is ANONYMOUS


def test_token_signed_with_other_key_is_anonymous(settings):
    token, _ = issue_access_token(
        subject="alice",
        role=Role.ADMIN,
        settings=replace(settings, jwt_secret="another-secret-with-more-than-32-chars"),
    )
    assert resolve_identity(token, settings) is ANONYMOUS
    with pytest.raises(jwt.PyJWTError):
        decode_access_token(token, settings)


@pytest.mark.parametrize("token", [None, "", "garbage"])
def test_missing_or_malformed_token_is_anonymous(settings, token):
    identity = resolve_identity(token, settings)
    assert identity is ANONYMOUS
    assert not identity.is_authenticated


def test_plaintext_comparator():
    assert plaintext_secrets_match("pw1", "pw1")
    assert not plaintext_secrets_match("pw1", "pw2")
