"""Concurrent read pass over every registered vault."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from ..abi import load_erc20_abi, load_vault_abi
from ..adapters.apy_adapters.base import BaseApySource
from ..adapters.ledger_adapters.base import BaseLedgerAdapter
from ..domain import Accounting, PortfolioSnapshot, VaultDescriptor, VaultState
from ..logger import get_logger
from ..processors import VaultReads, build_vault_state
from ..registry import VaultRegistry

RefreshHook = Callable[[PortfolioSnapshot], Awaitable[None]]


def _process_vault_results(
    descriptors: Sequence[VaultDescriptor],
    results: Sequence[BaseException | VaultReads],
    apys: dict[str, float],
    log: logging.Logger,
) -> tuple[list[VaultState], dict[str, str]]:
    """Split asyncio.gather results into vault states and per-vault failures.

    Args:
        descriptors: Registry descriptors, in the order the reads were issued
        results: Results from asyncio.gather (may contain exceptions)
        apys: APY percentages keyed by lower-cased vault address
        log: Logger instance

    Returns:
        Successful vault states in registry order, and failure reasons keyed
        by vault address.
    """
    vaults: list[VaultState] = []
    failures: dict[str, str] = {}

    for descriptor, result in zip(descriptors, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            log.error("Vault '%s' (%s) failed: %s", descriptor.name, descriptor.address, result)
            failures[descriptor.address] = str(result) or type(result).__name__
            continue

        try:
            state = build_vault_state(descriptor, result, apys.get(descriptor.address.lower()))
        except ValueError as e:
            log.error("Vault '%s' returned unusable state: %s", descriptor.name, e)
            failures[descriptor.address] = str(e)
            continue

        log.debug(
            "Vault '%s': tvl=%s %s, yield=%s",
            descriptor.name,
            state.tvl,
            state.asset_symbol,
            state.yield_generated,
        )
        vaults.append(state)

    return vaults, failures


class StateAggregator:
    """Builds and publishes portfolio snapshots.

    Each ``refresh()`` is one pass: every vault is read concurrently, a vault
    whose reads fail is left out of the snapshot, and the finished snapshot
    replaces ``current`` unless a newer pass has already been published.
    """

    def __init__(
        self,
        registry: VaultRegistry,
        ledger: BaseLedgerAdapter,
        apy_source: BaseApySource | None = None,
        logger: logging.Logger | None = None,
    ):
        self.registry = registry
        self.ledger = ledger
        self.apy_source = apy_source
        self.log = logger or get_logger(__name__)
        self._passes = itertools.count(1)
        self._current: PortfolioSnapshot | None = None
        self._hooks: list[RefreshHook] = []

    @property
    def current(self) -> PortfolioSnapshot | None:
        """Most recently published snapshot, ``None`` before the first pass."""
        return self._current

    def add_refresh_hook(self, hook: RefreshHook) -> None:
        """Await ``hook(snapshot)`` after every pass, in registration order.

        A failing hook is logged and never fails the pass.
        """
        self._hooks.append(hook)

    async def _run_hooks(self, snapshot: PortfolioSnapshot) -> None:
        for hook in list(self._hooks):
            try:
                await hook(snapshot)
            except Exception as e:
                self.log.warning("Refresh hook %r failed: %s", hook, e)

    async def _fetch_apys(self, descriptors: Sequence[VaultDescriptor]) -> dict[str, float]:
        if self.apy_source is None:
            return {}
        try:
            return await self.apy_source.fetch_apys(descriptors)
        except Exception as e:
            self.log.warning(
                "APY source '%s' failed, continuing without APY: %s",
                self.apy_source.source_name,
                e,
            )
            return {}

    async def _read_share_price(self, descriptor: VaultDescriptor, vault_abi: list[dict]) -> Any:
        if descriptor.accounting is Accounting.SUPPLY:
            return await self.ledger.call(descriptor.address, vault_abi, "totalSupply")
        if descriptor.accounting is Accounting.PRICE_PER_SHARE:
            return await self.ledger.call(descriptor.address, vault_abi, "pricePerShare")
        return await self.ledger.call(
            descriptor.address, vault_abi, "convertToAssets", 10**descriptor.decimals
        )

    async def _read_vault(self, descriptor: VaultDescriptor) -> VaultReads:
        vault_abi = load_vault_abi()
        erc20_abi = load_erc20_abi()

        reads = [
            self.ledger.call(descriptor.address, vault_abi, "totalAssets"),
            self._read_share_price(descriptor, vault_abi),
            self.ledger.call(descriptor.address, vault_abi, "asset"),
        ]
        if descriptor.donating:
            reads.append(self.ledger.call(descriptor.address, vault_abi, "dragonRouter"))

        total_assets, share_value, asset_address, *donation = await asyncio.gather(*reads)

        asset_symbol, asset_decimals = await asyncio.gather(
            self.ledger.call(asset_address, erc20_abi, "symbol"),
            self.ledger.call(asset_address, erc20_abi, "decimals"),
        )

        supply_based = descriptor.accounting is Accounting.SUPPLY
        return VaultReads(
            total_assets=int(total_assets),
            asset_address=asset_address,
            asset_symbol=asset_symbol,
            asset_decimals=int(asset_decimals),
            total_supply=int(share_value) if supply_based else None,
            price_per_share=None if supply_based else int(share_value),
            donation_address=donation[0] if donation else None,
        )

    def _publish(self, snapshot: PortfolioSnapshot) -> bool:
        current = self._current
        if current is not None and current.pass_number > snapshot.pass_number:
            self.log.warning(
                "Discarding snapshot from pass %d; pass %d is already published",
                snapshot.pass_number,
                current.pass_number,
            )
            return False
        self._current = snapshot
        return True

    async def refresh(self) -> PortfolioSnapshot:
        """Run one read pass and return its snapshot.

        Never raises for a single vault's failure; those are recorded in
        ``snapshot.failures``.
        Registered refresh hooks run once the pass is done.
        """
        pass_number = next(self._passes)
        descriptors = self.registry.descriptors()
        self.log.info("Refreshing %d vaults (pass %d)...", len(descriptors), pass_number)

        apys, *results = await asyncio.gather(
            self._fetch_apys(descriptors),
            *[self._read_vault(d) for d in descriptors],
            return_exceptions=True,
        )
        if isinstance(apys, BaseException):
            raise apys

        vaults, failures = _process_vault_results(descriptors, results, apys, self.log)
        snapshot = PortfolioSnapshot(
            vaults=tuple(vaults),
            pass_number=pass_number,
            taken_at=datetime.now(timezone.utc),
            failures=failures,
        )

        if self._publish(snapshot):
            self.log.info(
                "Snapshot published: %d/%d vaults, tvl %s",
                len(vaults),
                len(descriptors),
                snapshot.tvl,
                extra={"pass_number": pass_number},
            )
        await self._run_hooks(snapshot)
        return snapshot
