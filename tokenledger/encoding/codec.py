"""
tokenledger.encoding.codec
==========================

Byte representations of everything the ledger persists or publishes.

Records
-------
- TokenMetadata  → JSON object {"symbol", "totalSupply", "description", "creator"}
- balance        → ASCII decimal digits, e.g. b"1000" (no sign, no padding)
- TransferEvent  → JSON object {"from", "to", "amount"}
- WriteIntent    → JSON object {"op", "writes": [{"key", "value"}]}
                   (bytes fields are base64, as msgspec encodes them)

Structured types are `msgspec.Struct`s; decoding validates shape and ranges in
one step and any mismatch surfaces as `tokenledger.errors.DecodeError` with a
call-site code. Encoders never build JSON by string concatenation, so owner
identities containing quotes or control characters round-trip safely.
"""

from __future__ import annotations

from typing import Annotated, List

import msgspec

from ..errors import DecodeError, ErrorCode, ValidationError

U64_MAX = (1 << 64) - 1

NonEmptyStr = Annotated[str, msgspec.Meta(min_length=1)]
# msgspec bounds must fit in int64; the uint64 ceiling is checked after decoding.
Supply = Annotated[int, msgspec.Meta(ge=1)]


class TokenMetadata(msgspec.Struct, frozen=True, rename="camel"):
    """The single, immutable-after-init token record."""

    symbol: NonEmptyStr
    total_supply: Supply
    description: str
    creator: NonEmptyStr


class TransferEvent(msgspec.Struct, frozen=True):
    """Payload of the "transfer" event."""

    from_: str = msgspec.field(name="from")
    to: str
    amount: int


class IntentWrite(msgspec.Struct, frozen=True):
    key: bytes
    value: bytes


class WriteIntent(msgspec.Struct, frozen=True):
    op: str
    writes: List[IntentWrite]


_json_encoder = msgspec.json.Encoder()
_metadata_decoder = msgspec.json.Decoder(TokenMetadata)
_intent_decoder = msgspec.json.Decoder(WriteIntent)


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def encode_metadata(meta: TokenMetadata) -> bytes:
    return _json_encoder.encode(meta)


def decode_metadata(raw: bytes) -> TokenMetadata:
    try:
        meta = _metadata_decoder.decode(raw)
    except msgspec.DecodeError as e:
        raise DecodeError(
            "stored token metadata is malformed",
            code=ErrorCode.METADATA_DECODE,
            data={"reason": str(e)},
        ) from e
    if meta.total_supply > U64_MAX:
        raise DecodeError(
            "stored total supply exceeds 64 bits",
            code=ErrorCode.METADATA_DECODE,
        )
    return meta


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


def encode_balance(amount: int) -> bytes:
    if isinstance(amount, bool) or not isinstance(amount, int) or not 0 <= amount <= U64_MAX:
        raise ValidationError(
            "balance must be an integer in [0, 2**64-1]",
            code=ErrorCode.AMOUNT_OUT_OF_RANGE,
            data={"balance": str(amount)},
        )
    return str(amount).encode("ascii")


def decode_balance(raw: bytes, *, owner: str = "") -> int:
    # bytes.isdigit() is ASCII-only, so signs, whitespace and non-ASCII digits fail.
    if not raw or not raw.isdigit():
        raise DecodeError(
            "stored balance is not a decimal integer",
            code=ErrorCode.BALANCE_DECODE,
            data={"owner": owner, "raw": raw[:32]},
        )
    # U64_MAX has 20 digits; longer values are rejected before int() sees them.
    digits = raw.lstrip(b"0") or b"0"
    if len(digits) > 20 or int(digits) > U64_MAX:
        raise DecodeError(
            "stored balance exceeds 64 bits",
            code=ErrorCode.BALANCE_DECODE,
            data={"owner": owner},
        )
    return int(digits)


# ---------------------------------------------------------------------------
# Events & intents
# ---------------------------------------------------------------------------


def encode_event(event: TransferEvent) -> bytes:
    return _json_encoder.encode(event)


def encode_intent(intent: WriteIntent) -> bytes:
    return _json_encoder.encode(intent)


def decode_intent(raw: bytes) -> WriteIntent:
    try:
        return _intent_decoder.decode(raw)
    except msgspec.DecodeError as e:
        raise DecodeError(
            "stored write intent is malformed",
            code=ErrorCode.INTENT_DECODE,
            data={"reason": str(e)},
        ) from e


def to_builtins(obj: object) -> object:
    """Plain-Python view of a Struct (for rendering and tests)."""
    return msgspec.to_builtins(obj)


__all__ = [
    "U64_MAX",
    "TokenMetadata",
    "TransferEvent",
    "IntentWrite",
    "WriteIntent",
    "encode_metadata",
    "decode_metadata",
    "encode_balance",
    "decode_balance",
    "encode_event",
    "encode_intent",
    "decode_intent",
    "to_builtins",
]
