from __future__ import annotations

import asyncio
from typing import Any

import backoff
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TransactionNotFound

from ...errors import ConfirmationTimeoutError, TransportError
from ...logger import get_logger
from ...settings import HubSettings
from ..ledger_adapters.web3_rpc import classify_error
from .base import BaseSigner, TransactionHandle, TransactionReceipt, TransactionRequest

logger = get_logger(__name__)


class Web3TransactionHandle(TransactionHandle):
    """Receipt lookups for a transaction broadcast through ``w3``."""

    def __init__(self, w3: Web3, tx_hash: str, poll_interval: float = 2.0):
        self._w3 = w3
        self._tx_hash = tx_hash
        self._poll_interval = poll_interval

    @property
    def tx_hash(self) -> str:
        return self._tx_hash

    async def poll(self) -> TransactionReceipt | None:
        try:
            receipt = await asyncio.to_thread(
                self._w3.eth.get_transaction_receipt, self._tx_hash
            )
        except TransactionNotFound:
            return None
        except Exception as e:
            classified = classify_error(e, f"receipt lookup for {self._tx_hash}")
            if classified is e:
                raise
            raise classified from e

        return TransactionReceipt(
            tx_hash=self._tx_hash,
            status=int(receipt["status"]),
            block_number=receipt.get("blockNumber"),
        )

    async def wait(self, timeout: float) -> TransactionReceipt:
        """Poll for the receipt at a constant interval until ``timeout`` elapses.

        Transport errors while polling count as "not seen yet"; the transaction
        is already broadcast and a flaky endpoint says nothing about its outcome.
        """

        def _on_backoff(details: Any) -> None:
            logger.debug(
                "Transaction %s not mined yet (poll %d, %.1fs elapsed)",
                self._tx_hash,
                details["tries"],
                details["elapsed"],
            )

        @backoff.on_predicate(
            backoff.constant,
            lambda receipt: receipt is None,
            interval=self._poll_interval,
            max_time=timeout,
            jitter=None,
            on_backoff=_on_backoff,
        )
        async def _poll_until_mined() -> TransactionReceipt | None:
            try:
                return await self.poll()
            except TransportError as e:
                logger.warning("Receipt poll for %s failed: %s", self._tx_hash, e)
                return None

        receipt = await _poll_until_mined()
        if receipt is None:
            raise ConfirmationTimeoutError(
                f"Transaction {self._tx_hash} not confirmed within {timeout:.0f}s",
                tx_hash=self._tx_hash,
            )
        return receipt


class LocalAccountSigner(BaseSigner):
    """Signs with a local private key and broadcasts raw transactions."""

    def __init__(self, w3: Web3, account: LocalAccount, poll_interval: float = 2.0):
        self.w3 = w3
        self._account = account
        self._poll_interval = poll_interval
        # nonce assignment and broadcast must not interleave for one account
        self._send_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: HubSettings, w3: Web3) -> LocalAccountSigner:
        if not settings.private_key:
            raise ValueError("private_key must be configured to sign transactions")
        account: LocalAccount = Account.from_key(settings.private_key.get_secret_value())
        return cls(w3, account, poll_interval=settings.confirmation_poll_interval)

    @property
    def address(self) -> str:
        return self._account.address

    def _build_and_send(self, request: TransactionRequest) -> str:
        tx: dict[str, Any] = {
            "from": self.address,
            "to": Web3.to_checksum_address(request.to),
            "data": Web3.to_hex(request.data),
            "value": request.value,
            "nonce": self.w3.eth.get_transaction_count(self.address, "pending"),
            "chainId": self.w3.eth.chain_id,
        }
        tx["gas"] = self.w3.eth.estimate_gas(tx)
        tx["gasPrice"] = self.w3.eth.gas_price

        signed = self._account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def submit(self, request: TransactionRequest) -> TransactionHandle:
        label = request.label or f"call to {request.to}"
        async with self._send_lock:
            try:
                tx_hash = await asyncio.to_thread(self._build_and_send, request)
            except Exception as e:
                classified = classify_error(e, f"submitting {label}")
                if classified is e:
                    raise
                raise classified from e

        logger.info("Broadcast %s: %s", label, tx_hash)
        return Web3TransactionHandle(self.w3, tx_hash, poll_interval=self._poll_interval)
