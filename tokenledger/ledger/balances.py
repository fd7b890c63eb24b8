"""
Per-owner balances.

Each owner has at most one record under `owner.<id>` holding the balance as
ASCII decimal digits. A missing record reads as zero. Balances are never
negative and never deleted.
"""

from __future__ import annotations

from typing import Any, Iterator, Optional, Tuple

import msgspec

from ..db.kv import OWNER_PREFIX, iter_prefixed, owner_from_key, owner_key, supports_prefix
from ..encoding.codec import decode_balance, encode_balance
from ..errors import ErrorCode, InvariantError, StateError, ValidationError
from .journal import WriteJournal


class BalanceView(msgspec.Struct, frozen=True):
    """`balanceOf` payload."""

    owner: str
    balance: int


class BalanceLedger:
    def __init__(self, store: Any) -> None:
        self._store = store

    def get_balance(self, owner_id: str) -> int:
        if not owner_id:
            raise ValidationError("owner id must be non-empty", code=ErrorCode.EMPTY_OWNER)
        value, _ = self.read_balance(owner_id)
        return value

    def view(self, owner_id: str) -> BalanceView:
        return BalanceView(owner=owner_id, balance=self.get_balance(owner_id))

    # --- primitives used by the transfer engine ---

    def read_balance(
        self, owner_id: str, journal: Optional[WriteJournal] = None
    ) -> Tuple[int, bool]:
        """Return `(balance, exists)`; reads staged writes first when a journal is given."""
        key = owner_key(owner_id)
        try:
            raw = journal.get(key) if journal is not None else self._store.get(key)
        except Exception as e:
            raise StateError(
                "failed to read balance",
                code=ErrorCode.BALANCE_READ,
                data={"owner": owner_id},
            ) from e
        if raw is None:
            return 0, False
        return decode_balance(raw, owner=owner_id), True

    def write_balance(
        self, owner_id: str, amount: int, journal: Optional[WriteJournal] = None
    ) -> None:
        value = encode_balance(amount)
        if journal is not None:
            journal.put(owner_key(owner_id), value)
            return
        try:
            self._store.put(owner_key(owner_id), value)
        except Exception as e:
            raise StateError(
                "failed to write balance",
                code=ErrorCode.TRANSFER_WRITE,
                data={"owner": owner_id},
            ) from e

    # --- whole-ledger views ---

    def iter_balances(self) -> Iterator[Tuple[str, int]]:
        if not supports_prefix(self._store):
            raise StateError(
                "store does not support prefix iteration",
                code=ErrorCode.AUDIT_UNSUPPORTED,
                retryable=False,
            )
        for key, raw in iter_prefixed(self._store, OWNER_PREFIX):
            owner = owner_from_key(key)
            yield owner, decode_balance(raw, owner=owner)

    def audit(self, total_supply: int) -> int:
        """
        Check conservation: the sum of all balances equals `total_supply`.
        Returns the number of balance records inspected.
        """
        total = 0
        count = 0
        for _, balance in self.iter_balances():
            total += balance
            count += 1
        if total != total_supply:
            raise InvariantError(
                "sum of balances does not equal total supply",
                code=ErrorCode.CONSERVATION,
                data={"sum": str(total), "totalSupply": str(total_supply), "records": count},
            )
        return count


__all__ = ["BalanceView", "BalanceLedger"]
