from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..domain import Accounting, VaultDescriptor, VaultState
from ..logger import get_logger
from ..units import format_units

logger = get_logger(__name__)


@dataclass(frozen=True)
class VaultReads:
    """Raw values read from one vault and its underlying asset in one pass."""

    total_assets: int
    asset_address: str
    asset_symbol: str
    asset_decimals: int
    total_supply: int | None = None
    price_per_share: int | None = None  # assets (base units) per 10**decimals shares
    donation_address: str | None = None


def compute_yield_generated(
    accounting: Accounting, reads: VaultReads
) -> Decimal:
    """Yield accrued by the vault, in whole asset units, never negative.

    Supply accounting: ``max(totalAssets - totalSupply, 0)``, which assumes
    shares use the asset's decimals. Share-price accounting:
    ``(assetsPerShare - 1) * totalAssets``.
    """
    decimals = reads.asset_decimals
    if accounting is Accounting.SUPPLY:
        if reads.total_supply is None:
            raise ValueError("Supply accounting requires totalSupply()")
        return format_units(max(reads.total_assets - reads.total_supply, 0), decimals)

    if reads.price_per_share is None:
        raise ValueError(f"{accounting.value} accounting requires a share price")
    assets_per_share = format_units(reads.price_per_share, decimals)
    tvl = format_units(reads.total_assets, decimals)
    return max((assets_per_share - 1) * tvl, Decimal(0))


def build_vault_state(
    descriptor: VaultDescriptor,
    reads: VaultReads,
    apy: float | None = None,
) -> VaultState:
    """Derive a VaultState from one pass worth of reads."""
    if reads.total_assets < 0:
        raise ValueError(
            f"Vault {descriptor.address} reported negative totalAssets: {reads.total_assets}"
        )

    if reads.asset_decimals != descriptor.decimals:
        logger.warning(
            "Vault %s: registry says %d decimals, asset %s reports %d; using on-chain value",
            descriptor.name,
            descriptor.decimals,
            reads.asset_symbol,
            reads.asset_decimals,
        )
    if reads.asset_symbol != descriptor.asset_symbol:
        logger.debug(
            "Vault %s: registry symbol %s differs from on-chain %s",
            descriptor.name,
            descriptor.asset_symbol,
            reads.asset_symbol,
        )

    return VaultState(
        descriptor=descriptor,
        asset_address=reads.asset_address,
        asset_symbol=reads.asset_symbol,
        decimals=reads.asset_decimals,
        total_assets=reads.total_assets,
        tvl=format_units(reads.total_assets, reads.asset_decimals),
        yield_generated=compute_yield_generated(descriptor.accounting, reads),
        total_supply=reads.total_supply,
        price_per_share=reads.price_per_share,
        apy=apy,
        donation_address=reads.donation_address,
    )
