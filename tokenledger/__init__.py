"""
tokenledger - a fungible-token ledger over a versioned key-value store.

The ledger keeps a total-supply record and per-owner balances inside an
injected store and exposes five operations through `TokenLedger.dispatch`:
initialize, totalSupply, balanceOf, transfer and getHistoryByKey.

Only light re-exports live here; import submodules for the rest.
"""

from __future__ import annotations

from .version import __version__
from .errors import ErrorCode, LedgerError
from .ledger import TokenLedger


def get_version() -> str:
    return __version__


__all__ = ["__version__", "get_version", "ErrorCode", "LedgerError", "TokenLedger"]
