"""Byte encodings for ledger records, events and write intents."""

from .codec import (
    U64_MAX,
    IntentWrite,
    TokenMetadata,
    TransferEvent,
    WriteIntent,
    decode_balance,
    decode_intent,
    decode_metadata,
    encode_balance,
    encode_event,
    encode_intent,
    encode_metadata,
    to_builtins,
)

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
