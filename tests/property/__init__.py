"""
tests.property package bootstrap.

Registers named Hypothesis profiles and picks one on import:
HYPOTHESIS_PROFILE if set, otherwise "ci" when the CI env var is truthy and
"dev" locally. Also exports the strategies the ledger property tests share.

Usage in tests:
    from tests.property import given, st, owners, amounts

Environment knobs:
- HYPOTHESIS_PROFILE=dev|ci|fast
- CI=true (auto-pick the 'ci' profile if HYPOTHESIS_PROFILE not set)
"""
from __future__ import annotations

import os
from typing import Final

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from tokenledger.encoding import U64_MAX

# ---- profile registry --------------------------------------------------------

# Deadlines off: SQLite-backed examples can be slow on shared CI machines.
settings.register_profile(
    "dev",
    settings(
        max_examples=100,
        deadline=None,
        suppress_health_check=(HealthCheck.too_slow, HealthCheck.function_scoped_fixture),
    ),
)

settings.register_profile(
    "ci",
    settings(
        max_examples=250,
        deadline=None,
        suppress_health_check=(HealthCheck.too_slow, HealthCheck.function_scoped_fixture),
        derandomize=True,
    ),
)

settings.register_profile(
    "fast",
    settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=(HealthCheck.too_slow, HealthCheck.function_scoped_fixture),
    ),
)


def _env_truthy(name: str) -> bool:
    v = os.getenv(name)
    return (v or "").lower() not in ("", "0", "false", "no", "off")


_active: Final[str] = os.getenv("HYPOTHESIS_PROFILE") or (
    "ci" if _env_truthy("CI") else "dev"
)
settings.load_profile(_active)

# ---- shared strategies -------------------------------------------------------

OWNER_POOL = ("alice", "bob", "carol", "dave", 'quote"owner', "ünïcode")

owners = st.sampled_from(OWNER_POOL)
supplies = st.integers(min_value=1, max_value=U64_MAX)
amounts = st.integers(min_value=1, max_value=U64_MAX)

# (from, to, amount) triples; amounts are biased small so many transfers succeed.
transfers = st.tuples(
    owners,
    owners,
    st.one_of(st.integers(min_value=1, max_value=2_000), amounts),
)


def active_profile() -> str:
    return _active


__all__ = [
    "st",
    "given",
    "owners",
    "supplies",
    "amounts",
    "transfers",
    "active_profile",
]
