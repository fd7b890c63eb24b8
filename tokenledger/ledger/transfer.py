"""
Transfers: a debit and a credit applied as one logical update.

Checks run in a fixed order and each has its own error code:

    1. parties non-empty, amount a positive uint64   → ValidationError
    2. sender has a positive balance                 → InsufficientBalanceError (703)
    3. sender balance >= amount                      → InsufficientBalanceError (704)
    4. receiver balance + amount fits in uint64      → ValidationError (706)

All reads happen before any write and nothing survives the call, so a
rejected commit can simply be retried. Both writes are staged in a
`WriteJournal`; a self-transfer therefore reads its own staged debit and ends
with the balance it started with.
"""

from __future__ import annotations

from typing import Any

from ..encoding.codec import U64_MAX, TransferEvent, encode_event
from ..errors import ErrorCode, InsufficientBalanceError, ValidationError
from ..logging import get_logger
from .balances import BalanceLedger
from .events import TRANSFER_EVENT, EventSink, NullEventSink, publish
from .journal import WriteJournal

log = get_logger(__name__)


class TransferEngine:
    def __init__(
        self,
        store: Any,
        balances: BalanceLedger | None = None,
        events: EventSink | None = None,
    ) -> None:
        self._store = store
        self._balances = balances if balances is not None else BalanceLedger(store)
        self._events: EventSink = events if events is not None else NullEventSink()

    def transfer(self, sender: str, receiver: str, amount: int) -> TransferEvent:
        if not sender or not receiver:
            raise ValidationError(
                "sender and receiver must be non-empty",
                code=ErrorCode.EMPTY_PARTY,
            )
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(
                "amount must be an integer",
                code=ErrorCode.AMOUNT_NOT_NUMBER,
                data={"amount": str(amount)},
            )
        if amount <= 0:
            raise ValidationError(
                "amount must be positive",
                code=ErrorCode.AMOUNT_NOT_POSITIVE,
                data={"amount": str(amount)},
            )
        if amount > U64_MAX:
            raise ValidationError(
                "amount exceeds 64 bits",
                code=ErrorCode.AMOUNT_OUT_OF_RANGE,
                data={"amount": str(amount)},
            )

        journal = WriteJournal(self._store, op="transfer")

        sender_balance, exists = self._balances.read_balance(sender, journal)
        if not exists or sender_balance == 0:
            raise InsufficientBalanceError(
                "sender has zero balance",
                code=ErrorCode.ZERO_BALANCE,
                data={"owner": sender},
            )
        if sender_balance < amount:
            raise InsufficientBalanceError(
                "insufficient funds",
                code=ErrorCode.INSUFFICIENT_FUNDS,
                data={"owner": sender, "balance": sender_balance, "amount": amount},
            )

        self._balances.write_balance(sender, sender_balance - amount, journal)

        receiver_balance, _ = self._balances.read_balance(receiver, journal)
        if receiver_balance > U64_MAX - amount:
            raise ValidationError(
                "credit would overflow receiver balance",
                code=ErrorCode.CREDIT_OVERFLOW,
                data={"owner": receiver},
            )
        self._balances.write_balance(receiver, receiver_balance + amount, journal)

        journal.flush(default_code=ErrorCode.TRANSFER_WRITE)

        event = TransferEvent(from_=sender, to=receiver, amount=amount)
        publish(self._events, TRANSFER_EVENT, encode_event(event))
        log.info(
            "transfer applied",
            extra={"from": sender, "to": receiver, "amount": amount},
        )
        return event


__all__ = ["TransferEngine"]
