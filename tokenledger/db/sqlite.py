from __future__ import annotations

"""
SQLite-backed versioned KV
==========================

A small embedded store implementing `VersionedKV` (plus `batch()` and
`iter_prefix()`) on top of the stdlib `sqlite3` module.

Schema
------
- kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)          current values
- history(seq, k, tx_id, ts, v, is_delete)          every version, append-only

Every write appends a history row stamped with its transaction id. A batch
runs inside one `BEGIN IMMEDIATE` transaction and stamps all of its rows with
the same id, so multi-key updates are atomic and share a version.

History iterators hold a dedicated cursor that is closed on exhaustion, on
`close()`, or when the iterator is used as a context manager.

Threading:
- `check_same_thread=False` for multi-threaded access; callers serialize
  writers (sqlite enforces connection-level writer exclusivity).
"""

import datetime as _dt
import os
import sqlite3
import uuid
from typing import Iterator, List, Optional, Tuple, Union

from .kv import Batch, KeyModification

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "temp_store": "MEMORY",
    "foreign_keys": "OFF",
}


def _apply_pragmas(conn: sqlite3.Connection, pragmas: Optional[dict] = None) -> None:
    p = dict(DEFAULT_PRAGMAS)
    if pragmas:
        p.update(pragmas)
    cur = conn.cursor()
    for name, value in p.items():
        cur.execute(f"PRAGMA {name}={value}")
    cur.close()


def _migrate(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            k BLOB PRIMARY KEY,
            v BLOB NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS history (
            seq       INTEGER PRIMARY KEY AUTOINCREMENT,
            k         BLOB NOT NULL,
            tx_id     TEXT NOT NULL,
            ts        TEXT NOT NULL,
            v         BLOB,
            is_delete INTEGER NOT NULL DEFAULT 0
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS history_k_seq ON history(k, seq)")


def _prefix_hi(prefix: bytes) -> Optional[bytes]:
    """
    Smallest byte string strictly greater than every key starting with
    `prefix`, or None when no such bound exists (prefix is all 0xFF).
    """
    if not prefix:
        return None
    p = bytearray(prefix)
    for i in range(len(p) - 1, -1, -1):
        if p[i] != 0xFF:
            p[i] += 1
            del p[i + 1 :]
            return bytes(p)
    return None


def _new_tx() -> Tuple[str, str]:
    return uuid.uuid4().hex, _dt.datetime.now(_dt.timezone.utc).isoformat()


def _write(
    conn: sqlite3.Connection, key: bytes, value: Optional[bytes], tx_id: str, ts: str
) -> None:
    if value is None:
        cur = conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))
        if cur.rowcount == 0:
            return
    else:
        conn.execute(
            "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v",
            (memoryview(key), memoryview(value)),
        )
    conn.execute(
        "INSERT INTO history(k, tx_id, ts, v, is_delete) VALUES(?, ?, ?, ?, ?)",
        (
            memoryview(key),
            tx_id,
            ts,
            memoryview(value) if value is not None else None,
            1 if value is None else 0,
        ),
    )


class SQLiteHistoryIterator:
    __slots__ = ("_cur", "_closed")

    def __init__(self, cur: sqlite3.Cursor) -> None:
        self._cur = cur
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "SQLiteHistoryIterator":
        return self

    def __next__(self) -> KeyModification:
        if self._closed:
            raise StopIteration
        row = self._cur.fetchone()
        if row is None:
            self.close()
            raise StopIteration
        tx_id, ts, v, is_delete = row
        return KeyModification(
            tx_id=str(tx_id),
            timestamp=str(ts),
            value=bytes(v) if v is not None else None,
            is_delete=bool(is_delete),
        )

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._cur.close()

    def __enter__(self) -> "SQLiteHistoryIterator":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


class SQLiteBatch(Batch):
    __slots__ = ("_conn", "_open", "_tx")

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._open = False
        self._tx: Tuple[str, str] = ("", "")

    def __enter__(self) -> "SQLiteBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        # BEGIN IMMEDIATE prevents writer starvation, still allows concurrent readers
        self._conn.execute("BEGIN IMMEDIATE")
        self._open = True
        self._tx = _new_tx()
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        _write(self._conn, bytes(key), bytes(value), *self._tx)

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        _write(self._conn, bytes(key), None, *self._tx)

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        try:
            if self._open:
                self._conn.execute("COMMIT" if exc_type is None else "ROLLBACK")
        finally:
            self._open = False
        return None


def _open_connection(
    path: Union[str, "os.PathLike[str]"],
    *,
    pragmas: Optional[dict] = None,
    create: bool = True,
) -> sqlite3.Connection:
    path_str = str(path)
    if path_str != ":memory:":
        if not create and not os.path.exists(path_str):
            raise FileNotFoundError(f"SQLite KV not found at {path_str}")
        parent = os.path.dirname(os.path.abspath(path_str))
        if create:
            os.makedirs(parent, exist_ok=True)

    conn = sqlite3.connect(
        path_str,
        isolation_level=None,      # autocommit; we explicitly BEGIN for writes
        check_same_thread=False,   # allow multi-threaded use; caller synchronizes
    )
    _apply_pragmas(conn, pragmas)
    _migrate(conn)
    return conn


class SQLiteKV:
    """
    SQLite-backed versioned KV. Use `open_sqlite_kv(path)` to construct.
    """

    __slots__ = ("_conn",)

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # --- reads ---

    def get(self, key: bytes) -> Optional[bytes]:
        cur = self._conn.execute("SELECT v FROM kv WHERE k = ?", (memoryview(key),))
        row = cur.fetchone()
        cur.close()
        return bytes(row[0]) if row is not None else None

    def has(self, key: bytes) -> bool:
        cur = self._conn.execute("SELECT 1 FROM kv WHERE k = ? LIMIT 1", (memoryview(key),))
        row = cur.fetchone()
        cur.close()
        return row is not None

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        hi = _prefix_hi(prefix)
        if hi is not None:
            sql = "SELECT k, v FROM kv WHERE k >= ? AND k < ? ORDER BY k"
            args: tuple = (memoryview(prefix), memoryview(hi))
        else:
            sql = "SELECT k, v FROM kv WHERE substr(k,1,?) = ? ORDER BY k"
            args = (len(prefix), memoryview(prefix))
        cur = self._conn.execute(sql, args)
        try:
            for k, v in cur:
                yield bytes(k), bytes(v)
        finally:
            cur.close()

    def get_history(self, key: bytes) -> SQLiteHistoryIterator:
        cur = self._conn.execute(
            "SELECT tx_id, ts, v, is_delete FROM history WHERE k = ? ORDER BY seq",
            (memoryview(key),),
        )
        return SQLiteHistoryIterator(cur)

    # --- writes ---

    def put(self, key: bytes, value: bytes) -> None:
        self._single([(bytes(key), bytes(value))])

    def delete(self, key: bytes) -> None:
        self._single([(bytes(key), None)])

    def batch(self) -> SQLiteBatch:
        return SQLiteBatch(self._conn)

    def close(self) -> None:
        self._conn.close()

    def _single(self, ops: List[Tuple[bytes, Optional[bytes]]]) -> None:
        tx_id, ts = _new_tx()
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            for k, v in ops:
                _write(self._conn, k, v, tx_id, ts)
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")


def open_sqlite_kv(
    path: Union[str, "os.PathLike[str]"],
    *,
    pragmas: Optional[dict] = None,
    create: bool = True,
) -> SQLiteKV:
    """
    Open (or create) a SQLite KV at `path` (":memory:" for an ephemeral DB).
    `create=False` raises FileNotFoundError if the DB file does not exist.
    """
    return SQLiteKV(_open_connection(path, pragmas=pragmas, create=create))


__all__ = [
    "SQLiteKV",
    "SQLiteBatch",
    "SQLiteHistoryIterator",
    "open_sqlite_kv",
]
