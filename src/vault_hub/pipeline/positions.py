from __future__ import annotations

import asyncio
import itertools
import logging

from ..abi import load_vault_abi
from ..adapters.ledger_adapters.base import BaseLedgerAdapter
from ..domain import Accounting, PortfolioSnapshot, UserPosition, VaultState
from ..logger import get_logger


class PositionRefresher:
    """Reads a wallet's share balances and values them in the underlying asset."""

    def __init__(self, ledger: BaseLedgerAdapter, logger: logging.Logger | None = None):
        self.ledger = ledger
        self.log = logger or get_logger(__name__)
        self._generations = itertools.count(1)
        self._published: dict[str, tuple[int, tuple[UserPosition, ...]]] = {}

    def positions_for(self, wallet: str) -> tuple[UserPosition, ...]:
        """Last published positions for ``wallet``; empty if never refreshed."""
        published = self._published.get(wallet.lower())
        return published[1] if published else ()

    async def _read_position(self, wallet: str, vault: VaultState) -> UserPosition:
        vault_abi = load_vault_abi()
        shares = int(await self.ledger.call(vault.address, vault_abi, "balanceOf", wallet))

        if shares == 0:
            assets = 0
        elif vault.price_per_share is not None and (
            vault.descriptor.accounting is Accounting.PRICE_PER_SHARE
        ):
            assets = shares * vault.price_per_share // 10**vault.decimals
        else:
            assets = int(
                await self.ledger.call(vault.address, vault_abi, "convertToAssets", shares)
            )

        return UserPosition(
            wallet=wallet,
            vault_address=vault.address,
            shares=shares,
            assets=assets,
            decimals=vault.decimals,
        )

    async def refresh_positions(
        self, wallet: str, snapshot: PortfolioSnapshot
    ) -> tuple[UserPosition, ...]:
        """Read ``wallet``'s position in every vault of ``snapshot``.

        Vaults whose reads fail are left out; no zero position is
        substituted. The result replaces the wallet's published positions
        unless a later refresh for the same wallet has already landed.
        """
        generation = next(self._generations)
        results = await asyncio.gather(
            *[self._read_position(wallet, v) for v in snapshot.vaults],
            return_exceptions=True,
        )

        positions: list[UserPosition] = []
        for vault, result in zip(snapshot.vaults, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self.log.error(
                    "Position read for %s in '%s' failed: %s", wallet, vault.name, result
                )
                continue
            positions.append(result)

        published = tuple(positions)
        key = wallet.lower()
        previous = self._published.get(key)
        if previous is None or previous[0] < generation:
            self._published[key] = (generation, published)
        else:
            self.log.warning(
                "Discarding stale positions for %s (refresh %d)", wallet, generation
            )

        self.log.info(
            "Positions read for %d of %d vaults",
            len(published),
            len(snapshot.vaults),
            extra={"wallet": wallet, "pass_number": snapshot.pass_number},
        )
        return published
