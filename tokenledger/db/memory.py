from __future__ import annotations

"""
In-memory versioned KV
======================

A deterministic, pure-Python implementation of `VersionedKV` used by tests,
simulations and `memory://` URIs.

- Every `put`/`delete` outside a batch commits as its own transaction.
- `batch()` stages writes and commits them under a *single* transaction id, so
  all keys touched by the batch share one version (atomic multi-key write).
- History is kept per key, oldest → newest, with tombstones for deletes.
- Transaction ids and timestamps come from injectable factories so tests can
  pin them.

The store counts open history iterators (`open_iterators`) which makes cursor
leaks observable in tests.
"""

import datetime as _dt
import itertools
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .kv import Batch, KeyModification


def _utc_now() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


class MemoryHistoryIterator:
    """Iterator over a snapshot of one key's versions."""

    __slots__ = ("_owner", "_items", "_pos", "_closed")

    def __init__(self, owner: "MemoryKV", items: List[KeyModification]) -> None:
        self._owner = owner
        self._items = items
        self._pos = 0
        self._closed = False
        owner.open_iterators += 1

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "MemoryHistoryIterator":
        return self

    def __next__(self) -> KeyModification:
        if self._closed:
            raise StopIteration
        if self._pos >= len(self._items):
            self.close()
            raise StopIteration
        item = self._items[self._pos]
        self._pos += 1
        return item

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._owner.open_iterators -= 1

    def __enter__(self) -> "MemoryHistoryIterator":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


class MemoryBatch(Batch):
    __slots__ = ("_kv", "_ops", "_open")

    def __init__(self, kv: "MemoryKV") -> None:
        self._kv = kv
        self._ops: List[Tuple[bytes, Optional[bytes]]] = []
        self._open = False

    def __enter__(self) -> "MemoryBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((bytes(key), bytes(value)))

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((bytes(key), None))

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        try:
            if exc_type is None and self._ops:
                self._kv._commit(self._ops)
        finally:
            self._ops = []
            self._open = False
        return None


class MemoryKV:
    """
    Dict-backed versioned KV.

    Parameters
    ----------
    clock : callable, optional
        Returns the commit time (aware datetime). Defaults to UTC now.
    tx_ids : callable, optional
        Returns the next transaction id. Defaults to "tx-00000001", ...
    """

    def __init__(
        self,
        *,
        clock: Optional[Callable[[], _dt.datetime]] = None,
        tx_ids: Optional[Callable[[], str]] = None,
    ) -> None:
        self._current: Dict[bytes, bytes] = {}
        self._history: Dict[bytes, List[KeyModification]] = {}
        self._clock = clock or _utc_now
        counter = itertools.count(1)
        self._tx_ids = tx_ids or (lambda: f"tx-{next(counter):08d}")
        self.open_iterators = 0

    # --- reads ---

    def get(self, key: bytes) -> Optional[bytes]:
        return self._current.get(bytes(key))

    def has(self, key: bytes) -> bool:
        return bytes(key) in self._current

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        for k in sorted(k for k in self._current if k.startswith(prefix)):
            yield k, self._current[k]

    def get_history(self, key: bytes) -> MemoryHistoryIterator:
        return MemoryHistoryIterator(self, list(self._history.get(bytes(key), ())))

    # --- writes ---

    def put(self, key: bytes, value: bytes) -> None:
        self._commit([(bytes(key), bytes(value))])

    def delete(self, key: bytes) -> None:
        if bytes(key) in self._current:
            self._commit([(bytes(key), None)])

    def batch(self) -> MemoryBatch:
        return MemoryBatch(self)

    def close(self) -> None:
        pass

    # --- internals ---

    def _commit(self, ops: List[Tuple[bytes, Optional[bytes]]]) -> str:
        tx_id = self._tx_ids()
        ts = self._clock().isoformat()
        # Last write per key wins inside one transaction.
        final: Dict[bytes, Optional[bytes]] = {}
        for k, v in ops:
            final[k] = v
        for k, v in final.items():
            if v is None:
                if k not in self._current:
                    continue
                self._current.pop(k)
            else:
                self._current[k] = v
            self._history.setdefault(k, []).append(
                KeyModification(tx_id=tx_id, timestamp=ts, value=v, is_delete=v is None)
            )
        return tx_id


__all__ = ["MemoryKV", "MemoryBatch", "MemoryHistoryIterator"]
