"""
Test doubles shared by unit and property tests:
- `fixed_clock`: deterministic commit clock for MemoryKV
- `FlakyKV`: a store without `batch()` that can be told to fail specific puts
"""
from __future__ import annotations

import datetime as dt
import itertools
from typing import Iterator, Optional, Set, Tuple

from tokenledger.db import MemoryKV
from tokenledger.db.kv import owner_key

T0 = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)


def fixed_clock(start: dt.datetime = T0, step_s: int = 1):
    """Clock that advances `step_s` seconds per commit."""
    ticks = itertools.count()

    def now() -> dt.datetime:
        return start + dt.timedelta(seconds=step_s * next(ticks))

    return now


class FlakyKV:
    """
    MemoryKV wrapper without `batch()`, so ledger updates take the write-intent
    path. Puts to keys in `fail_keys` raise OSError until `heal()`.
    """

    def __init__(self) -> None:
        self.inner = MemoryKV(clock=fixed_clock())
        self.fail_keys: Set[bytes] = set()
        self.puts = 0

    def fail_on(self, *owners: str) -> None:
        self.fail_keys.update(owner_key(o) for o in owners)

    def heal(self) -> None:
        self.fail_keys.clear()

    def get(self, key: bytes) -> Optional[bytes]:
        return self.inner.get(key)

    def put(self, key: bytes, value: bytes) -> None:
        if key in self.fail_keys:
            raise OSError("simulated write failure")
        self.puts += 1
        self.inner.put(key, value)

    def delete(self, key: bytes) -> None:
        self.inner.delete(key)

    def get_history(self, key: bytes):
        return self.inner.get_history(key)

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        return self.inner.iter_prefix(prefix)
