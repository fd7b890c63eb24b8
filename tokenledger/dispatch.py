"""
tokenledger.dispatch - route a named operation to the ledger and wrap the result.

Operations (name → minimum arg count → handler):

  initialize       4  (symbol, totalSupply, description, creator) → metadata object
  totalSupply      0                                               → "<supply>"
  balanceOf        1  (ownerID)                                    → {owner, balance}
  getHistoryByKey  1  (ownerID)                                    → {counter, txns}
  transfer         3  (from, to, amount)                           → "Transfer Successful!!!"

Arguments arrive as strings. Numeric ones are parsed into uint64 here, before
any component runs. Every `LedgerError` becomes a failure envelope
`{"error", "code"}`; successes become `{"response", "code": 0}`. Any other
exception is a bug and propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Sequence, Union

import msgspec

from .encoding.codec import U64_MAX
from .errors import (
    ErrorCode,
    LedgerError,
    StateError,
    UnsupportedOperationError,
    ValidationError,
)
from .logging import get_logger, trace_scope
from .ledger.metadata import LedgerState

if TYPE_CHECKING:  # pragma: no cover
    from .ledger import TokenLedger

log = get_logger(__name__)

TRANSFER_OK = "Transfer Successful!!!"


# --------------------------------------------------------------------------------------
# Envelopes
# --------------------------------------------------------------------------------------


class Success(msgspec.Struct, frozen=True):
    response: Any
    code: int = 0

    @property
    def ok(self) -> bool:
        return True


class Failure(msgspec.Struct, frozen=True):
    error: str
    code: int

    @property
    def ok(self) -> bool:
        return False


Envelope = Union[Success, Failure]

_encoder = msgspec.json.Encoder()


def encode_envelope(env: Envelope) -> bytes:
    return _encoder.encode(env)


def failure_from(err: LedgerError) -> Failure:
    return Failure(error=err.message, code=int(err.code))


# --------------------------------------------------------------------------------------
# Argument parsing
# --------------------------------------------------------------------------------------


def parse_uint(
    value: str,
    *,
    name: str = "amount",
    not_number: int = ErrorCode.AMOUNT_NOT_NUMBER,
    not_positive: int = ErrorCode.AMOUNT_NOT_POSITIVE,
    out_of_range: int = ErrorCode.AMOUNT_OUT_OF_RANGE,
) -> int:
    """
    Parse a strictly positive uint64 from its decimal string form.

    Accepts an optional leading '-' only so that negative inputs are reported
    as "not positive" rather than "not a number". No '+', whitespace,
    underscores or non-ASCII digits.
    """
    s = value or ""
    digits = s[1:] if s.startswith("-") else s
    if not digits or not (digits.isascii() and digits.isdigit()):
        raise ValidationError(
            f"{name} must be a decimal integer",
            code=not_number,
            data={name: s[:32]},
        )
    significant = digits.lstrip("0")
    if s.startswith("-") or not significant:
        raise ValidationError(f"{name} must be positive", code=not_positive, data={name: s[:32]})
    # U64_MAX has 20 digits; longer values are rejected before int() sees them.
    if len(significant) > 20 or int(significant) > U64_MAX:
        raise ValidationError(
            f"{name} exceeds 64 bits",
            code=out_of_range,
            data={name: s[:32]},
        )
    return int(significant)


# --------------------------------------------------------------------------------------
# Dispatcher
# --------------------------------------------------------------------------------------


@dataclass(frozen=True)
class Route:
    min_args: int
    arity_code: int
    arity_message: str
    handler: Callable[[Sequence[str]], Any]


class Dispatcher:
    def __init__(self, ledger: "TokenLedger") -> None:
        self._ledger = ledger
        self._routes: Dict[str, Route] = {
            "initialize": Route(
                4,
                ErrorCode.INIT_ARITY,
                "Incorrect number of arguments. Expecting 4",
                self._initialize,
            ),
            "totalSupply": Route(0, ErrorCode.METADATA_READ, "", self._total_supply),
            "balanceOf": Route(
                1,
                ErrorCode.OWNER_ARITY,
                "Incorrect number of arguments. Expecting name of the owner to query",
                self._balance_of,
            ),
            "getHistoryByKey": Route(
                1,
                ErrorCode.OWNER_ARITY,
                "Incorrect number of arguments. Expecting name of the owner to query",
                self._history,
            ),
            "transfer": Route(
                3,
                ErrorCode.TRANSFER_ARITY,
                "Incorrect number of arguments. Expecting 3",
                self._transfer,
            ),
        }

    @property
    def operations(self) -> Sequence[str]:
        return tuple(self._routes)

    def dispatch(self, operation: str, args: Sequence[str]) -> Envelope:
        with trace_scope(op=operation):
            log.debug("invoke", extra={"argc": len(args)})
            try:
                route = self._routes.get(operation)
                if route is None:
                    raise UnsupportedOperationError(
                        "Invalid Smart Contract function name.",
                        code=ErrorCode.UNSUPPORTED_OPERATION,
                        data={"operation": operation},
                    )
                if len(args) < route.min_args:
                    raise ValidationError(
                        route.arity_message,
                        code=route.arity_code,
                        data={"expected": route.min_args, "got": len(args)},
                    )
                result = route.handler(list(args))
            except LedgerError as e:
                log.info("invoke failed", extra={"code": int(e.code), "error": e.message})
                return failure_from(e)
            return Success(response=result)

    # --- handlers ---

    def _require_initialized(self) -> None:
        if self._ledger.state() is not LedgerState.INITIALIZED:
            raise StateError(
                "token not initialized",
                code=ErrorCode.NOT_INITIALIZED,
                retryable=False,
            )

    def _initialize(self, args: Sequence[str]) -> Any:
        symbol, supply, description, creator = args[:4]
        total = parse_uint(
            supply,
            name="totalSupply",
            not_number=ErrorCode.BAD_TOTAL_SUPPLY,
            not_positive=ErrorCode.BAD_TOTAL_SUPPLY,
            out_of_range=ErrorCode.BAD_TOTAL_SUPPLY,
        )
        return self._ledger.metadata.initialize(symbol, total, description, creator)

    def _total_supply(self, args: Sequence[str]) -> Any:
        return str(self._ledger.metadata.get_total_supply())

    def _balance_of(self, args: Sequence[str]) -> Any:
        self._require_initialized()
        return self._ledger.balances.view(args[0])

    def _history(self, args: Sequence[str]) -> Any:
        self._require_initialized()
        return self._ledger.history.collect(args[0])

    def _transfer(self, args: Sequence[str]) -> Any:
        sender, receiver, amount = args[:3]
        value = parse_uint(amount)
        self._require_initialized()
        self._ledger.transfers.transfer(sender, receiver, value)
        return TRANSFER_OK


__all__ = [
    "Success",
    "Failure",
    "Envelope",
    "encode_envelope",
    "failure_from",
    "parse_uint",
    "Route",
    "Dispatcher",
    "TRANSFER_OK",
]
