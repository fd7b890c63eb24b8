"""
Shared pytest fixtures:
- Deterministic in-memory store (pinned clock and transaction ids)
- SQLite store in a per-test temp directory
- `kv`: parametrized over both backends for contract tests
- `flaky_kv`: a store without `batch()` that fails selected puts
- Ledgers wired to a recording event sink
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from tokenledger import logging as llog
from tokenledger.db import MemoryKV, open_sqlite_kv
from tokenledger.ledger import MemoryEventSink, TokenLedger

from tests.support import FlakyKV, fixed_clock


@pytest.fixture(autouse=True)
def _clean_log_context() -> Iterator[None]:
    llog.clear_context()
    yield
    llog.clear_context()


@pytest.fixture
def memory_kv() -> MemoryKV:
    return MemoryKV(clock=fixed_clock())


@pytest.fixture
def sqlite_kv(tmp_path: Path):
    kv = open_sqlite_kv(tmp_path / "ledger.db")
    yield kv
    kv.close()


@pytest.fixture(params=["memory", "sqlite"])
def kv(request: pytest.FixtureRequest, tmp_path: Path):
    """Both reference backends; contract tests run once per backend."""
    if request.param == "memory":
        yield MemoryKV(clock=fixed_clock())
        return
    store = open_sqlite_kv(tmp_path / "contract.db")
    yield store
    store.close()


@pytest.fixture
def flaky_kv() -> FlakyKV:
    return FlakyKV()


@pytest.fixture
def events() -> MemoryEventSink:
    return MemoryEventSink()


@pytest.fixture
def ledger(memory_kv: MemoryKV, events: MemoryEventSink) -> TokenLedger:
    return TokenLedger(memory_kv, events=events)


@pytest.fixture
def funded(ledger: TokenLedger) -> TokenLedger:
    """Ledger initialized with TOK/1000 held by alice."""
    env = ledger.dispatch("initialize", ["TOK", "1000", "desc", "alice"])
    assert env.code == 0
    return ledger
