"""
tokenledger.ledger - the ledger state machine over one injected store.

Components (all share the same store handle; none holds state across calls):

  - TokenMetadataStore : initialize / totalSupply / metadata
  - BalanceLedger      : balanceOf, balance primitives, conservation audit
  - TransferEngine     : debit + credit as one logical update, transfer event
  - HistoryReader      : per-owner version history as a closable cursor
  - WriteJournal       : staged multi-key writes (atomic batch or write intent)

`TokenLedger` wires them together and is what the dispatcher and CLI use.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..encoding.codec import WriteIntent
from .balances import BalanceLedger, BalanceView
from .events import EventSink, LogEventSink, MemoryEventSink, NullEventSink, publish
from .history import HistoryCursor, HistoryEntry, HistoryPage, HistoryReader
from .journal import WriteJournal, pending_intent, recover
from .metadata import LedgerState, TokenMetadataStore
from .transfer import TransferEngine

if TYPE_CHECKING:  # pragma: no cover
    from ..dispatch import Dispatcher, Envelope


class TokenLedger:
    """
    One token's ledger over an injected store.

        ledger = TokenLedger(MemoryKV(), events=MemoryEventSink())
        ledger.dispatch("initialize", ["TOK", "1000", "desc", "alice"])
        ledger.dispatch("transfer", ["alice", "bob", "300"])
    """

    def __init__(self, store: Any, events: Optional[EventSink] = None) -> None:
        self.store = store
        self.events: EventSink = events if events is not None else NullEventSink()
        self.metadata = TokenMetadataStore(store)
        self.balances = BalanceLedger(store)
        self.transfers = TransferEngine(store, self.balances, self.events)
        self.history = HistoryReader(store)
        self._dispatcher: Optional["Dispatcher"] = None

    @property
    def dispatcher(self) -> "Dispatcher":
        if self._dispatcher is None:
            from ..dispatch import Dispatcher

            self._dispatcher = Dispatcher(self)
        return self._dispatcher

    def dispatch(self, operation: str, args: Sequence[str]) -> "Envelope":
        return self.dispatcher.dispatch(operation, args)

    def state(self) -> LedgerState:
        return self.metadata.state()

    def pending_intent(self) -> Optional[WriteIntent]:
        return pending_intent(self.store)

    def recover(self) -> Optional[WriteIntent]:
        return recover(self.store)

    def audit(self) -> int:
        """Run the conservation check; returns the number of balance records."""
        return self.balances.audit(self.metadata.get_total_supply())


__all__ = [
    "TokenLedger",
    "TokenMetadataStore",
    "LedgerState",
    "BalanceLedger",
    "BalanceView",
    "TransferEngine",
    "HistoryReader",
    "HistoryCursor",
    "HistoryEntry",
    "HistoryPage",
    "WriteJournal",
    "pending_intent",
    "recover",
    "EventSink",
    "MemoryEventSink",
    "LogEventSink",
    "NullEventSink",
    "publish",
]
