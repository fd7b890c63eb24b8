from __future__ import annotations

"""
tokenledger.db
==============

Thin facade for the versioned key–value backends the ledger runs on.

URIs
----
- "sqlite:///path/to/tokenledger.db" → SQLite file
- "sqlite:///:memory:"               → in-memory SQLite
- "memory://"                        → pure-Python MemoryKV (tests, simulations)
- Bare path ending in ".db"          → SQLite file

The typed interface lives in tokenledger.db.kv; this module only selects a
backend and re-exports the common names.
"""

from typing import Tuple, Union

from .kv import (
    INTENT_KEY,
    META_KEY,
    OWNER_PREFIX,
    Batch,
    HistoryIterator,
    KeyModification,
    VersionedKV,
    owner_from_key,
    owner_key,
    supports_batch,
    supports_prefix,
)
from .memory import MemoryKV
from .sqlite import SQLiteKV, open_sqlite_kv


def _parse_uri(uri: str) -> Tuple[str, str]:
    u = uri.strip()
    if u.startswith("sqlite:///"):
        return ("sqlite", u[len("sqlite:///") :])
    if u.startswith("memory://"):
        return ("memory", "")
    if u.endswith(".db"):
        return ("sqlite", u)
    raise ValueError(f"Unsupported DB URI: {uri!r}")


def open_kv(uri: str, create: bool = True) -> Union[MemoryKV, SQLiteKV]:
    """
    Open a versioned KV by URI. See module docstring for supported forms.

    Raises:
        ValueError for unsupported URIs.
        FileNotFoundError when create=False and the SQLite file is missing.
    """
    backend, spec = _parse_uri(uri)
    if backend == "memory":
        return MemoryKV()
    return open_sqlite_kv(spec or ":memory:", create=create)


__all__ = [
    "VersionedKV",
    "Batch",
    "HistoryIterator",
    "KeyModification",
    "MemoryKV",
    "SQLiteKV",
    "META_KEY",
    "OWNER_PREFIX",
    "INTENT_KEY",
    "owner_key",
    "owner_from_key",
    "supports_batch",
    "supports_prefix",
    "open_kv",
    "open_sqlite_kv",
]
