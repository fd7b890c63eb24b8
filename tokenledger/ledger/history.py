"""
Balance history: replay the store's per-key versions for one owner.

`HistoryReader.get_history()` returns a `HistoryCursor`, a lazy forward-only
iterator over `HistoryEntry` values in the store's native order. The cursor
owns the store's history iterator and closes it on every exit path:

    with reader.get_history("alice") as cur:
        for entry in cur:
            if entry.value is None:
                break          # tombstone; the store iterator is still closed

`collect()` drains a cursor into the `getHistoryByKey` payload.
"""

from __future__ import annotations

from typing import Any, List, Optional

import msgspec

from ..db.kv import KeyModification, owner_key
from ..encoding.codec import decode_balance
from ..errors import ErrorCode, LedgerError, StateError, ValidationError


class HistoryEntry(msgspec.Struct, frozen=True):
    """One version of a balance record; `value` is None for a tombstone."""

    txn: str
    timestamp: str
    value: Optional[int]


class HistoryPage(msgspec.Struct, frozen=True):
    counter: int
    txns: List[HistoryEntry]


class HistoryCursor:
    def __init__(self, owner_id: str, it: Any) -> None:
        self.owner_id = owner_id
        self._it = it
        self._closed = False
        self.count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "HistoryCursor":
        return self

    def __next__(self) -> HistoryEntry:
        if self._closed:
            raise StopIteration
        try:
            mod: KeyModification = next(self._it)
        except StopIteration:
            self.close()
            raise
        except Exception as e:
            self.close()
            raise StateError(
                "failed to read history",
                code=ErrorCode.HISTORY_READ,
                data={"owner": self.owner_id},
            ) from e
        try:
            entry = self._entry(mod)
        except LedgerError:
            self.close()
            raise
        self.count += 1
        return entry

    def _entry(self, mod: KeyModification) -> HistoryEntry:
        if mod.is_delete or mod.value is None:
            value = None
        else:
            value = decode_balance(mod.value, owner=self.owner_id)
        return HistoryEntry(txn=mod.tx_id, timestamp=mod.timestamp, value=value)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._it.close()

    def __enter__(self) -> "HistoryCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


class HistoryReader:
    def __init__(self, store: Any) -> None:
        self._store = store

    def get_history(self, owner_id: str) -> HistoryCursor:
        if not owner_id:
            raise ValidationError("owner id must be non-empty", code=ErrorCode.EMPTY_OWNER)
        try:
            it = self._store.get_history(owner_key(owner_id))
        except Exception as e:
            raise StateError(
                "failed to open history",
                code=ErrorCode.HISTORY_OPEN,
                data={"owner": owner_id},
            ) from e
        return HistoryCursor(owner_id, it)

    def collect(self, owner_id: str) -> HistoryPage:
        with self.get_history(owner_id) as cur:
            txns = list(cur)
        return HistoryPage(counter=len(txns), txns=txns)


__all__ = ["HistoryEntry", "HistoryPage", "HistoryCursor", "HistoryReader"]
