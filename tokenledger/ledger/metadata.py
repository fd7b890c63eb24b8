"""
Token metadata: the single record written at initialization.

The record lives under `META_KEY` and is never mutated or deleted once
written. Initialization also credits the creator with the full supply; both
writes go through one `WriteJournal` so they land together.
"""

from __future__ import annotations

import enum
from typing import Any

from ..db.kv import META_KEY, owner_key
from ..encoding.codec import U64_MAX, TokenMetadata, decode_metadata, encode_balance, encode_metadata
from ..errors import ErrorCode, StateError, ValidationError
from ..logging import get_logger
from .journal import WriteJournal

log = get_logger(__name__)


class LedgerState(str, enum.Enum):
    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZED = "INITIALIZED"


class TokenMetadataStore:
    def __init__(self, store: Any) -> None:
        self._store = store

    def _read_raw(self) -> bytes | None:
        try:
            return self._store.get(META_KEY)
        except Exception as e:
            raise StateError("failed to read token metadata", code=ErrorCode.METADATA_READ) from e

    def state(self) -> LedgerState:
        return LedgerState.UNINITIALIZED if self._read_raw() is None else LedgerState.INITIALIZED

    def initialize(
        self, symbol: str, total_supply: int, description: str, creator: str
    ) -> TokenMetadata:
        """
        Create the token: persist the metadata record and a balance record for
        `creator` holding `total_supply`.

        Raises ValidationError for an empty symbol or creator or a supply
        outside [1, 2**64-1], StateError if the ledger is already initialized
        or a write fails.
        """
        if not symbol:
            raise ValidationError("symbol must be non-empty", code=ErrorCode.EMPTY_SYMBOL)
        if isinstance(total_supply, bool) or not isinstance(total_supply, int) or not 0 < total_supply <= U64_MAX:
            raise ValidationError(
                "total supply must be a positive integer",
                code=ErrorCode.BAD_TOTAL_SUPPLY,
                data={"totalSupply": str(total_supply)},
            )
        if not creator:
            raise ValidationError("creator must be non-empty", code=ErrorCode.EMPTY_CREATOR)

        if self._read_raw() is not None:
            raise StateError(
                "token already initialized",
                code=ErrorCode.ALREADY_INITIALIZED,
                retryable=False,
            )

        meta = TokenMetadata(
            symbol=symbol,
            total_supply=total_supply,
            description=description,
            creator=creator,
        )
        creator_key = owner_key(creator)
        journal = WriteJournal(self._store, op="initialize")
        journal.put(META_KEY, encode_metadata(meta))
        journal.put(creator_key, encode_balance(total_supply))
        journal.flush(
            default_code=ErrorCode.INIT_METADATA_WRITE,
            code_for={creator_key: ErrorCode.INIT_BALANCE_WRITE},
        )
        log.info("token initialized", extra={"symbol": symbol, "total_supply": total_supply})
        return meta

    def get_metadata(self) -> TokenMetadata:
        raw = self._read_raw()
        if raw is None:
            raise StateError(
                "token not initialized",
                code=ErrorCode.NOT_INITIALIZED,
                retryable=False,
            )
        return decode_metadata(raw)

    def get_total_supply(self) -> int:
        return self.get_metadata().total_supply


__all__ = ["LedgerState", "TokenMetadataStore"]
