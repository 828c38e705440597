from __future__ import annotations

from .base import BaseSigner, TransactionHandle, TransactionReceipt, TransactionRequest
from .confirming import ConfirmingSigner
from .local_account import LocalAccountSigner, Web3TransactionHandle

__all__ = [
    "BaseSigner",
    "ConfirmingSigner",
    "LocalAccountSigner",
    "TransactionHandle",
    "TransactionReceipt",
    "TransactionRequest",
    "Web3TransactionHandle",
]
