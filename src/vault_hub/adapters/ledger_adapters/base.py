from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BaseLedgerAdapter(ABC):
    """Abstract base class for read-only ledger access.

    Each call is independent and side-effect free. Implementations raise
    ``TransportError`` or ``ContractRevertError`` for classified failures.
    Batching and fan-out are the caller's responsibility.
    """

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Return the name of this adapter."""
        ...

    @abstractmethod
    async def call(
        self, address: str, abi: list[dict], function: str, *args: Any
    ) -> Any:
        """Call the view ``function(*args)`` on the contract at ``address``."""
        ...
