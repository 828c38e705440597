from __future__ import annotations

from .base import BaseLedgerAdapter
from .web3_rpc import Web3LedgerAdapter, classify_error

__all__ = [
    "BaseLedgerAdapter",
    "Web3LedgerAdapter",
    "classify_error",
]
