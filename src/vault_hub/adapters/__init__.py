from __future__ import annotations

from .apy_adapters import BaseApySource, StaticApySource
from .ledger_adapters import BaseLedgerAdapter, Web3LedgerAdapter
from .signer_adapters import BaseSigner, ConfirmingSigner, LocalAccountSigner

__all__ = [
    "BaseApySource",
    "BaseLedgerAdapter",
    "BaseSigner",
    "ConfirmingSigner",
    "LocalAccountSigner",
    "StaticApySource",
    "Web3LedgerAdapter",
]
