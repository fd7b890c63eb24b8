"""
tokenledger.ledger.journal - staged writes for one logical ledger update.

Initialize (metadata + creator balance) and transfer (debit + credit) each
touch two keys. The journal stages those writes, serves reads from the staged
set first, and applies them together:

- If the store exposes `batch()`, every staged write lands in one atomic
  batch (one transaction id, all-or-nothing).
- Otherwise a `WriteIntent` listing the writes is persisted under `~intent`
  before the first write and deleted after the last. A failure in between
  leaves the intent behind, which makes the partial update detectable and
  lets `recover()` complete it.

While an intent is pending, further flushes are refused with `StateError`;
reads are unaffected.

Intended usage
--------------
    j = WriteJournal(store, op="transfer")
    j.put(owner_key("alice"), b"700")
    j.put(owner_key("bob"), b"300")
    j.flush(default_code=ErrorCode.TRANSFER_WRITE)

Journals are single-use and hold no state across invocations, so a rejected
commit can be retried from scratch.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..db.kv import INTENT_KEY, supports_batch
from ..encoding.codec import IntentWrite, WriteIntent, decode_intent, encode_intent
from ..errors import ErrorCode, LedgerError, StateError
from ..logging import get_logger

log = get_logger(__name__)


class WriteJournal:
    """
    Ordered set of staged writes over a store.

    Parameters
    ----------
    store : VersionedKV
        The injected store handle.
    op : str
        Operation name recorded in a write intent (diagnostics only).
    """

    def __init__(self, store: Any, *, op: str) -> None:
        self._store = store
        self._op = op
        self._staged: Dict[bytes, bytes] = {}
        self._flushed = False

    # --- staging ---

    def get(self, key: bytes) -> Optional[bytes]:
        """Staged value if present, else the store's current value."""
        if key in self._staged:
            return self._staged[key]
        return self._store.get(key)

    def put(self, key: bytes, value: bytes) -> None:
        if self._flushed:
            raise RuntimeError("journal already flushed")
        # Re-staging a key keeps its first position; the last value wins.
        self._staged[bytes(key)] = bytes(value)

    def staged(self) -> List[Tuple[bytes, bytes]]:
        return list(self._staged.items())

    def __len__(self) -> int:
        return len(self._staged)

    # --- apply ---

    def flush(
        self,
        *,
        default_code: int,
        code_for: Optional[Mapping[bytes, int]] = None,
    ) -> None:
        """
        Apply the staged writes.

        Store failures surface as `StateError`; the code is looked up in
        `code_for` by the key whose write failed, falling back to
        `default_code` (also used for batch and intent failures).
        """
        if self._flushed:
            raise RuntimeError("journal already flushed")
        self._flushed = True
        if not self._staged:
            return

        codes = dict(code_for or {})
        self._refuse_if_pending(default_code)

        if supports_batch(self._store):
            try:
                with self._store.batch() as b:
                    for k, v in self._staged.items():
                        b.put(k, v)
            except LedgerError:
                raise
            except Exception as e:
                raise StateError(
                    "failed to commit ledger update",
                    code=default_code,
                    data={"op": self._op, "keys": len(self._staged)},
                ) from e
            return

        intent = WriteIntent(
            op=self._op,
            writes=[IntentWrite(key=k, value=v) for k, v in self._staged.items()],
        )
        try:
            self._store.put(INTENT_KEY, encode_intent(intent))
        except Exception as e:
            raise StateError(
                "failed to record write intent",
                code=default_code,
                data={"op": self._op},
            ) from e
        log.debug("write intent recorded", extra={"op": self._op, "writes": len(intent.writes)})

        for k, v in self._staged.items():
            try:
                self._store.put(k, v)
            except Exception as e:
                log.error(
                    "ledger update interrupted; write intent left pending",
                    extra={"op": self._op, "key": k},
                )
                raise StateError(
                    "failed to write ledger state",
                    code=codes.get(k, default_code),
                    data={"op": self._op, "key": k, "intent_pending": True},
                ) from e

        try:
            self._store.delete(INTENT_KEY)
        except Exception as e:
            raise StateError(
                "ledger state written but write intent could not be cleared",
                code=default_code,
                data={"op": self._op, "intent_pending": True},
            ) from e

    def _refuse_if_pending(self, code: int) -> None:
        try:
            pending = self._store.get(INTENT_KEY)
        except Exception as e:
            raise StateError("failed to read write intent", code=code) from e
        if pending is not None:
            raise StateError(
                "a previous ledger update is incomplete; run recovery first",
                code=ErrorCode.PENDING_INTENT,
                data={"op": self._op},
            )


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------


def pending_intent(store: Any) -> Optional[WriteIntent]:
    """Return the pending write intent, if any."""
    try:
        raw = store.get(INTENT_KEY)
    except Exception as e:
        raise StateError("failed to read write intent", code=ErrorCode.RECOVERY_WRITE) from e
    return decode_intent(raw) if raw is not None else None


def recover(store: Any) -> Optional[WriteIntent]:
    """
    Complete a pending write intent by re-applying its recorded values and
    clearing it. Idempotent: values are absolute, not deltas. Returns the
    intent that was replayed, or None if nothing was pending.
    """
    intent = pending_intent(store)
    if intent is None:
        return None
    try:
        if supports_batch(store):
            with store.batch() as b:
                for w in intent.writes:
                    b.put(w.key, w.value)
                b.delete(INTENT_KEY)
        else:
            for w in intent.writes:
                store.put(w.key, w.value)
            store.delete(INTENT_KEY)
    except Exception as e:
        raise StateError(
            "failed to replay write intent",
            code=ErrorCode.RECOVERY_WRITE,
            data={"op": intent.op},
        ) from e
    log.warning(
        "replayed pending write intent",
        extra={"op": intent.op, "writes": len(intent.writes)},
    )
    return intent


__all__ = ["WriteJournal", "pending_intent", "recover"]
