"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .adapters.apy_adapters import BaseApySource, StaticApySource
from .adapters.ledger_adapters import BaseLedgerAdapter, Web3LedgerAdapter
from .pipeline.aggregator import StateAggregator
from .pipeline.positions import PositionRefresher
from .registry import VaultRegistry
from .settings import HubSettings


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Passed explicitly to avoid global state and enable testing.
    """

    settings: HubSettings
    logger: logging.Logger
    registry: VaultRegistry
    ledger: BaseLedgerAdapter
    aggregator: StateAggregator
    positions: PositionRefresher

    @classmethod
    def from_settings(
        cls,
        settings: HubSettings,
        logger: logging.Logger,
        ledger: BaseLedgerAdapter | None = None,
        apy_source: BaseApySource | None = None,
    ) -> AppState:
        registry = VaultRegistry.from_settings(settings)
        ledger = ledger or Web3LedgerAdapter.from_settings(settings)
        apy_source = apy_source or StaticApySource.from_settings(settings)
        return cls(
            settings=settings,
            logger=logger,
            registry=registry,
            ledger=ledger,
            aggregator=StateAggregator(registry, ledger, apy_source, logger=logger),
            positions=PositionRefresher(ledger, logger=logger),
        )
