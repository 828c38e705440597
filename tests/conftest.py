from __future__ import annotations

import os
from collections.abc import Callable

import pytest

from fakes import ASSET, CollectingSink, FakeLedger, FakeSigner
from vault_hub.domain import VaultDescriptor


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep local config files and VAULT_HUB_* variables out of tests."""
    for key in list(os.environ):
        if key.upper().startswith("VAULT_HUB_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("VAULT_HUB_CONFIG", str(tmp_path / "absent.toml"))


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def seed_vault(ledger: FakeLedger) -> Callable[..., None]:
    """Populate ``ledger`` with the reads of one healthy vault."""

    def _seed(
        descriptor: VaultDescriptor,
        total_assets: int,
        total_supply: int | None = None,
        price_per_share: int | None = None,
        asset: str = ASSET,
        symbol: str = "DAI",
        decimals: int = 18,
    ) -> None:
        ledger.set(descriptor.address, "totalAssets", total_assets)
        ledger.set(descriptor.address, "asset", asset)
        if total_supply is not None:
            ledger.set(descriptor.address, "totalSupply", total_supply)
        if price_per_share is not None:
            ledger.set(descriptor.address, "pricePerShare", price_per_share)
            ledger.set(
                descriptor.address,
                "convertToAssets",
                lambda shares: shares * price_per_share // 10**decimals,
            )
        ledger.set(asset, "symbol", symbol)
        ledger.set(asset, "decimals", decimals)

    return _seed
