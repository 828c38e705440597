from __future__ import annotations

import asyncio
from collections.abc import Callable

from ...errors import UserDeclinedError
from .base import BaseSigner, TransactionHandle, TransactionRequest


class ConfirmingSigner(BaseSigner):
    """Asks for a yes/no answer before every submission.

    A "no" raises ``UserDeclinedError``, the same way a wallet rejects a
    signature request.
    """

    def __init__(self, inner: BaseSigner, confirm: Callable[[TransactionRequest], bool]):
        self._inner = inner
        self._confirm = confirm

    @property
    def address(self) -> str:
        return self._inner.address

    async def submit(self, request: TransactionRequest) -> TransactionHandle:
        approved = await asyncio.to_thread(self._confirm, request)
        if not approved:
            raise UserDeclinedError(f"User declined {request.label or 'transaction'}")
        return await self._inner.submit(request)
