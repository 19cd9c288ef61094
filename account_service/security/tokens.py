"""Utilities for issuing and validating application JWTs."""

from __future__ import annotations

import hmac
import logging
import time
from typing import Any, Callable

import jwt

from ..config import Settings, get_settings
from ..domain.account import ANONYMOUS, Identity, Role

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

SecretComparator = Callable[[str, str], bool]


def plaintext_secrets_match(stored: str, presented: str) -> bool:
    """Compare a stored secret with the presented one in constant time.

    Secrets are stored as supplied; swap this comparator for a hashing verifier
    once stored secrets are migrated.
    """
    return hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))


def issue_access_token(
    *, subject: str, role: Role, settings: Settings | None = None
) -> tuple[str, int]:
    """Create a signed JWT representing an authenticated account.

    Parameters
    ----------
    subject:
        Account login to embed in the token `sub` claim.
    role:
        Caller role recorded in the `role` claim.
    settings:
        Configuration providing the signing key, issuer, audience and TTL;
        defaults to the process settings.

    Returns
    -------
    tuple[str, int]
        A tuple containing the encoded JWT string and its TTL (in seconds).
    """

    settings = settings or get_settings()
    now = int(time.time())
    expires_in = settings.jwt_ttl_seconds
    payload: dict[str, Any] = {
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "sub": subject,
        "role": role.value,
        "iat": now,
        "exp": now + expires_in,
    }

    token = jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)
    return token, expires_in


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """Decode and verify a JWT returning its payload.

    Raises
    ------
    jwt.PyJWTError
        Propagated when the signature, issuer, audience, or expiry check fails.
    """

    settings = settings or get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[ALGORITHM],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
        options={"require": ["exp", "iss", "aud", "sub"]},
    )


def resolve_identity(token: str | None, settings: Settings | None = None) -> Identity:
    """Map an inbound bearer token to a caller identity, anonymous on any failure."""
    if not token:
        return ANONYMOUS
    try:
        claims = decode_access_token(token, settings)
    except jwt.PyJWTError as exc:
        logger.debug("rejecting bearer token: %s", exc)
        return ANONYMOUS
    try:
        role = Role(claims.get("role"))
    except ValueError:
        logger.debug("rejecting bearer token with unknown role %r", claims.get("role"))
        return ANONYMOUS
    return Identity(subject=claims["sub"], role=role)
