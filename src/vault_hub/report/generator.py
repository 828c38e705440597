from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field

from ..domain import PortfolioSnapshot, UserPosition
from ..processors import (
    best_vault,
    donation_breakdown,
    portfolio_value,
    total_tvl,
    total_yield_generated,
)


@dataclass
class VaultReport:
    address: str
    name: str
    protocol: str
    asset_symbol: str
    tvl: str
    yield_generated: str
    apy: float | None = None
    share_symbol: str | None = None
    donation_address: str | None = None


@dataclass
class PositionReport:
    vault_address: str
    vault_name: str
    asset_symbol: str
    shares: str
    assets: str


@dataclass
class DonationReport:
    category: str
    amount: str
    percentage: str


@dataclass
class PortfolioReport:
    """Portfolio report; amounts are decimal strings so the dict is JSON-safe."""

    pass_number: int
    taken_at: str
    total_tvl: str
    total_yield_generated: str
    best_vault: str | None
    vaults: list[VaultReport] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    wallet: str | None = None
    positions: list[PositionReport] = field(default_factory=list)
    portfolio_value: str | None = None
    donations: list[DonationReport] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Convert report to dictionary format."""
        return asdict(self)


def generate_report(
    snapshot: PortfolioSnapshot,
    wallet: str | None = None,
    positions: Sequence[UserPosition] = (),
    donations: Mapping[str, float] | None = None,
) -> PortfolioReport:
    """Assemble a report from a snapshot and, optionally, one wallet's positions.

    Args:
        snapshot: Published portfolio snapshot
        wallet: Wallet whose positions are included
        positions: That wallet's positions
        donations: Category -> amount mapping for the donation breakdown

    Returns:
        Report ready for publishing
    """
    best = best_vault(snapshot)
    by_address = {v.address.lower(): v for v in snapshot.vaults}

    position_rows = []
    for position in positions:
        vault = by_address.get(position.vault_address.lower())
        position_rows.append(
            PositionReport(
                vault_address=position.vault_address,
                vault_name=vault.name if vault else position.vault_address,
                asset_symbol=vault.asset_symbol if vault else "",
                shares=str(position.shares_amount),
                assets=str(position.assets_amount),
            )
        )

    return PortfolioReport(
        pass_number=snapshot.pass_number,
        taken_at=snapshot.taken_at.isoformat(),
        total_tvl=str(total_tvl(snapshot)),
        total_yield_generated=str(total_yield_generated(snapshot)),
        best_vault=best.name if best else None,
        vaults=[
            VaultReport(
                address=v.address,
                name=v.name,
                protocol=v.descriptor.protocol,
                asset_symbol=v.asset_symbol,
                tvl=str(v.tvl),
                yield_generated=str(v.yield_generated),
                apy=v.apy,
                share_symbol=v.descriptor.share_symbol,
                donation_address=v.donation_address,
            )
            for v in snapshot.vaults
        ],
        failures=dict(snapshot.failures),
        wallet=wallet,
        positions=position_rows,
        portfolio_value=str(portfolio_value(positions)) if wallet else None,
        donations=[
            DonationReport(
                category=share.category,
                amount=str(share.amount),
                percentage=f"{share.percentage:.2f}",
            )
            for share in donation_breakdown(donations or {})
        ],
    )
