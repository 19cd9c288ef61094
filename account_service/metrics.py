"""Prometheus instruments for account workflows."""

from __future__ import annotations

from prometheus_client import Counter

ACCOUNT_MUTATIONS = Counter(
    "account_mutations_total",
    "Successful account mutations by operation.",
    ["operation"],
)

LOGIN_ATTEMPTS = Counter(
    "account_login_attempts_total",
    "Credential exchange attempts by outcome.",
    ["outcome"],
)
