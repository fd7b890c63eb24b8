"""
tokenledger.errors
------------------

A small, consistent error system for the token ledger.

Design goals
------------
- One root `LedgerError` with a machine-friendly numeric `code`, a stable
  `kind` tag and optional `data`.
- Concrete subclasses per failure domain (validation, state, balance,
  unsupported operation, decode, invariant, config).
- Numeric codes are assigned per *call site* (see `ErrorCode`) so clients can
  tell "zero balance" from "insufficient funds" without parsing messages.
- Safe JSON representation (`to_dict`) suitable for logs and envelopes.

Hierarchy
---------
LedgerError (base)
 ├─ ValidationError           : malformed/missing arguments, overflow risk
 ├─ StateError                : store read/write failure, lifecycle violations
 ├─ InsufficientBalanceError  : zero balance / insufficient funds
 ├─ UnsupportedOperationError : unknown operation name
 ├─ DecodeError               : stored bytes do not match the record shape
 ├─ InvariantError            : conservation audit failed
 └─ ConfigError               : invalid configuration

This module uses only stdlib to avoid import cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar, Dict, Mapping, Optional


class ErrorCode(IntEnum):
    """
    Envelope codes, one per call site. Codes 1..7 and 700..704 keep the values
    the ledger has always reported to clients; append new codes, never reuse.
    """

    OK = 0

    # Dispatcher
    UNSUPPORTED_OPERATION = 1
    INIT_ARITY = 2

    # initialize
    EMPTY_CREATOR = 3
    INIT_BALANCE_WRITE = 4
    EMPTY_SYMBOL = 8
    BAD_TOTAL_SUPPLY = 9
    ALREADY_INITIALIZED = 10
    INIT_METADATA_WRITE = 11

    # totalSupply / metadata
    METADATA_READ = 5
    NOT_INITIALIZED = 12
    METADATA_DECODE = 13

    # balanceOf / getHistoryByKey
    OWNER_ARITY = 6
    BALANCE_READ = 7
    EMPTY_OWNER = 14
    BALANCE_DECODE = 15
    HISTORY_OPEN = 16
    HISTORY_READ = 17

    # write journal
    PENDING_INTENT = 18
    INTENT_DECODE = 19
    RECOVERY_WRITE = 23

    # audit / config
    CONSERVATION = 20
    AUDIT_UNSUPPORTED = 21
    CONFIG = 22

    # transfer
    TRANSFER_ARITY = 700
    AMOUNT_NOT_NUMBER = 701
    AMOUNT_NOT_POSITIVE = 702
    ZERO_BALANCE = 703
    INSUFFICIENT_FUNDS = 704
    EMPTY_PARTY = 705
    CREDIT_OVERFLOW = 706
    TRANSFER_WRITE = 707
    AMOUNT_OUT_OF_RANGE = 708


@dataclass(eq=False)
class LedgerError(Exception):
    """
    Root error for ledger components.

    Attributes
    ----------
    message: str
        Human hint, surfaced verbatim in the error envelope.
    code: int
        Call-site specific `ErrorCode`; never 0.
    data: dict
        Optional machine data (keys, owner ids, amounts). JSON-serializable.
    retryable: bool
        Whether the same call may succeed later without changing inputs.
    """

    message: str
    code: int = ErrorCode.UNSUPPORTED_OPERATION
    data: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False

    kind: ClassVar[str] = "LEDGER"

    def __post_init__(self) -> None:
        super().__init__(self.message)
        self.data = _jsonmap(self.data)

    def with_context(self, **ctx: Any) -> "LedgerError":
        """Return a *new* error with extra context merged (does not mutate)."""
        d = dict(self.data)
        d.update(_jsonmap(ctx))
        err = type(self)(
            message=self.message, code=self.code, data=d, retryable=self.retryable
        )
        err.__cause__ = self.__cause__
        return err

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "kind": self.kind,
            "code": int(self.code),
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.data:
            out["data"] = dict(self.data)
        if self.__cause__ is not None:
            out["cause"] = {
                "type": type(self.__cause__).__name__,
                "message": str(self.__cause__),
            }
        return out

    def __str__(self) -> str:  # pragma: no cover - human formatting
        return f"[{int(self.code)}] {self.kind}: {self.message}"


@dataclass(eq=False)
class ValidationError(LedgerError):
    kind: ClassVar[str] = "VALIDATION"


@dataclass(eq=False)
class StateError(LedgerError):
    """Store access failed or the ledger is in the wrong lifecycle state."""

    retryable: bool = True

    kind: ClassVar[str] = "STATE"


@dataclass(eq=False)
class InsufficientBalanceError(LedgerError):
    kind: ClassVar[str] = "INSUFFICIENT_BALANCE"


@dataclass(eq=False)
class UnsupportedOperationError(LedgerError):
    kind: ClassVar[str] = "UNSUPPORTED"


@dataclass(eq=False)
class DecodeError(LedgerError):
    kind: ClassVar[str] = "DECODE"


@dataclass(eq=False)
class InvariantError(LedgerError):
    """The committed state violates conservation of supply."""

    kind: ClassVar[str] = "INVARIANT"


@dataclass(eq=False)
class ConfigError(LedgerError):
    code: int = ErrorCode.CONFIG

    kind: ClassVar[str] = "CONFIG"


def error_to_envelope_fields(err: LedgerError) -> Dict[str, Any]:
    """Map a LedgerError onto the `{error, code}` envelope fields."""
    return {"error": err.message, "code": int(err.code)}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _jsonmap(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in (data or {}).items()}


def _coerce_json(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).hex()
    return str(v)


__all__ = [
    "ErrorCode",
    "LedgerError",
    "ValidationError",
    "StateError",
    "InsufficientBalanceError",
    "UnsupportedOperationError",
    "DecodeError",
    "InvariantError",
    "ConfigError",
    "error_to_envelope_fields",
]
