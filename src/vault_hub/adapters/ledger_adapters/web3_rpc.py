from __future__ import annotations

import asyncio
from typing import Any

import requests
from eth_typing import URI
from web3 import Web3
from web3.exceptions import (
    BadFunctionCallOutput,
    ContractLogicError,
    ProviderConnectionError,
    Web3RPCError,
)

from ...errors import ContractRevertError, TransportError
from ...logger import TRACE, get_logger
from ...settings import HubSettings
from .base import BaseLedgerAdapter

logger = get_logger(__name__)

TRANSPORT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    requests.exceptions.RequestException,
    ProviderConnectionError,
    ConnectionError,
    TimeoutError,
)

REVERT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ContractLogicError,
    BadFunctionCallOutput,
)


def _normalize_arg(arg: Any) -> Any:
    if isinstance(arg, str) and Web3.is_address(arg):
        return Web3.to_checksum_address(arg)
    return arg


def classify_error(exc: BaseException, context: str) -> BaseException:
    """Map a web3/transport exception onto the hub's error kinds.

    Unrecognised exceptions are returned unchanged.
    """
    if isinstance(exc, (TransportError, ContractRevertError)):
        return exc
    if isinstance(exc, REVERT_EXCEPTIONS):
        return ContractRevertError(f"{context} reverted: {exc}")
    if isinstance(exc, Web3RPCError):
        # node-side rejections: insufficient funds, nonce too low, rate limits
        if "revert" in str(exc).lower():
            return ContractRevertError(f"{context} reverted: {exc}")
        return TransportError(f"{context} rejected by node: {exc}")
    if isinstance(exc, TRANSPORT_EXCEPTIONS):
        return TransportError(f"{context} failed: {exc}")
    return exc


class Web3LedgerAdapter(BaseLedgerAdapter):
    """Ledger adapter issuing ``eth_call`` through a web3 HTTP provider.

    Blocking web3 calls run in worker threads so that many reads can be in
    flight at once. Every call is bounded by ``read_timeout`` seconds.
    """

    def __init__(
        self,
        rpc_url: str,
        read_timeout: float = 15.0,
        block_identifier: int | str = "latest",
        w3: Web3 | None = None,
    ):
        self.rpc_url = rpc_url
        self.read_timeout = read_timeout
        self.block_identifier = block_identifier
        self.w3 = w3 or Web3(
            Web3.HTTPProvider(URI(rpc_url), request_kwargs={"timeout": read_timeout})
        )

    @classmethod
    def from_settings(cls, settings: HubSettings) -> Web3LedgerAdapter:
        return cls(
            settings.rpc_url_required,
            read_timeout=settings.read_timeout_seconds,
        )

    @property
    def adapter_name(self) -> str:
        return "web3_rpc"

    async def call(
        self, address: str, abi: list[dict], function: str, *args: Any
    ) -> Any:
        context = f"{function}() on {address}"
        try:
            contract = self.w3.eth.contract(
                address=Web3.to_checksum_address(address), abi=abi
            )
            fn = getattr(contract.functions, function)(*map(_normalize_arg, args))
            result = await asyncio.wait_for(
                asyncio.to_thread(fn.call, block_identifier=self.block_identifier),
                timeout=self.read_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"{context} timed out after {self.read_timeout:.1f}s"
            ) from e
        except Exception as e:
            classified = classify_error(e, context)
            if classified is e:
                raise
            raise classified from e

        logger.log(TRACE, "%s -> %r", context, result)
        return result
