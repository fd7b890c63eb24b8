from __future__ import annotations

"""
Versioned KV interface & ledger key layout
==========================================

The ledger keeps all of its state inside an externally supplied, versioned
key-value store. This module defines the backend-agnostic surface the core
consumes plus the canonical keys it writes:

- META    (b"token")          : the single token metadata record
- OWNER   (b"owner." + id)    : one balance record per owner identity
- INTENT  (b"~intent")        : pending multi-key write intent (journal)

Required store surface
----------------------
    get(key) -> bytes | None
    put(key, value) -> None
    delete(key) -> None
    get_history(key) -> HistoryIterator of KeyModification

Optional capabilities (detected with `supports_batch` / `supports_prefix`):
    batch() -> Batch           atomic multi-key write (context manager)
    iter_prefix(prefix)        (key, value) pairs in lexicographic order

History iterators
-----------------
`get_history` returns an iterator that owns a backend cursor. Callers must
exhaust it or call `close()`; iterators are also context managers:

>>> with kv.get_history(owner_key("alice")) as it:
...     for mod in it:
...         print(mod.tx_id, mod.value)

Backends (memory, sqlite) implement this interface. This file contains no I/O.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Protocol, Tuple, runtime_checkable

# ---------------------------------------------------------------------------
# Key layout
# ---------------------------------------------------------------------------

META_KEY = b"token"
OWNER_PREFIX = b"owner."
INTENT_KEY = b"~intent"


def owner_key(owner_id: str) -> bytes:
    """Balance key for an owner identity (identity is opaque UTF-8)."""
    return OWNER_PREFIX + owner_id.encode("utf-8")


def owner_from_key(key: bytes) -> str:
    if not key.startswith(OWNER_PREFIX):
        raise ValueError(f"not a balance key: {key!r}")
    return key[len(OWNER_PREFIX) :].decode("utf-8")


# ---------------------------------------------------------------------------
# History records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyModification:
    """
    One past version of a key.

    `value` is None iff `is_delete` (the key was deleted at this version).
    `timestamp` is an RFC 3339 UTC string as reported by the store.
    """

    tx_id: str
    timestamp: str
    value: Optional[bytes]
    is_delete: bool = False


@runtime_checkable
class HistoryIterator(Protocol):
    """Forward-only iterator over a key's versions; owns a backend cursor."""

    def __iter__(self) -> Iterator[KeyModification]: ...
    def __next__(self) -> KeyModification: ...
    def close(self) -> None: ...
    def __enter__(self) -> "HistoryIterator": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


# ---------------------------------------------------------------------------
# KV protocols & Batch
# ---------------------------------------------------------------------------


@runtime_checkable
class Batch(Protocol):
    """
    A write-batch context manager. The backend applies every staged write
    atomically when the context exits without exception and discards them
    otherwise.
    """

    def put(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def __enter__(self) -> "Batch": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class VersionedKV(Protocol):
    """Minimal store surface consumed by the ledger core."""

    def get(self, key: bytes) -> Optional[bytes]:
        """Fetch the current value or None if missing/deleted."""
        ...

    def put(self, key: bytes, value: bytes) -> None:
        """Persist (key, value) as a new version. Overwrites if exists."""
        ...

    def delete(self, key: bytes) -> None:
        """Record a tombstone version for key (idempotent if missing)."""
        ...

    def get_history(self, key: bytes) -> HistoryIterator:
        """Open a history iterator for key in the backend's native order."""
        ...


def supports_batch(kv: object) -> bool:
    return callable(getattr(kv, "batch", None))


def supports_prefix(kv: object) -> bool:
    return callable(getattr(kv, "iter_prefix", None))


def iter_prefixed(kv: object, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
    """Portable helper that defers to kv.iter_prefix."""
    return kv.iter_prefix(prefix)  # type: ignore[attr-defined]


__all__ = [
    "META_KEY",
    "OWNER_PREFIX",
    "INTENT_KEY",
    "owner_key",
    "owner_from_key",
    "KeyModification",
    "HistoryIterator",
    "Batch",
    "VersionedKV",
    "supports_batch",
    "supports_prefix",
    "iter_prefixed",
]
