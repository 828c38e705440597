from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class TransactionRequest:
    """An unsigned contract call to be submitted by a signer."""

    to: str
    data: bytes
    value: int = 0
    label: str = ""


@dataclass(frozen=True)
class TransactionReceipt:
    """Outcome of a mined transaction. ``status`` is 1 on success, 0 on revert."""

    tx_hash: str
    status: int
    block_number: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class TransactionHandle(ABC):
    """Handle on a submitted transaction."""

    @property
    @abstractmethod
    def tx_hash(self) -> str: ...

    @abstractmethod
    async def wait(self, timeout: float) -> TransactionReceipt:
        """Block until the transaction is mined.

        Raises:
            ConfirmationTimeoutError: If no receipt is observed within ``timeout``.
        """
        ...

    @abstractmethod
    async def poll(self) -> TransactionReceipt | None:
        """Check once for a receipt; ``None`` while the transaction is pending."""
        ...


class BaseSigner(ABC):
    """Abstract wallet capability: submit transactions on behalf of one address."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Address of the account that signs submitted transactions."""
        ...

    @abstractmethod
    async def submit(self, request: TransactionRequest) -> TransactionHandle:
        """Sign and broadcast ``request``.

        Raises:
            UserDeclinedError: If the wallet refuses to sign.
        """
        ...
