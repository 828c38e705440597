"""Pure metrics over portfolio snapshots and wallet positions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal

from ..constants import DAYS_PER_YEAR
from ..domain import DonationShare, PortfolioSnapshot, UserPosition, VaultState
from ..errors import InvalidConfigurationError

Number = Decimal | float | int


def _to_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def total_tvl(snapshot: PortfolioSnapshot) -> Decimal:
    """Sum of per-vault TVL over the vaults present in ``snapshot``."""
    return sum((v.tvl for v in snapshot.vaults), Decimal(0))


def total_yield_generated(snapshot: PortfolioSnapshot) -> Decimal:
    return sum((v.yield_generated for v in snapshot.vaults), Decimal(0))


def best_vault(snapshot: PortfolioSnapshot) -> VaultState | None:
    """Vault with the highest APY; the earliest in registry order wins ties.

    Vaults without an APY are ignored. Returns None when nothing qualifies.
    """
    best: VaultState | None = None
    for vault in snapshot.vaults:
        if vault.apy is None:
            continue
        if best is None or vault.apy > best.apy:  # type: ignore[operator]
            best = vault
    return best


def projected_yield(principal: Number, apy_percent: Number, days: Number) -> Decimal:
    """Simple-interest projection: ``principal * apy * days / (365 * 100)``.

    Raises:
        InvalidConfigurationError: If principal or days is negative. A negative
            APY is accepted and projects a loss.
    """
    principal_d = _to_decimal(principal)
    apy_d = _to_decimal(apy_percent)
    days_d = _to_decimal(days)

    for name, value in (("principal", principal_d), ("days", days_d)):
        if value < 0:
            raise InvalidConfigurationError(f"{name} must be non-negative, got {value}")

    return principal_d * apy_d * days_d / (DAYS_PER_YEAR * 100)


def portfolio_value(positions: Iterable[UserPosition]) -> Decimal:
    """Total asset-denominated value of a wallet's positions."""
    return sum((p.assets_amount for p in positions), Decimal(0))


def donation_breakdown(amounts: Mapping[str, Number]) -> list[DonationShare]:
    """Turn category -> amount into shares with percentages, largest first."""
    decimals = {category: _to_decimal(amount) for category, amount in amounts.items()}
    negative = [category for category, amount in decimals.items() if amount < 0]
    if negative:
        raise InvalidConfigurationError(
            f"Donation amounts must be non-negative: {', '.join(negative)}"
        )

    total = sum(decimals.values(), Decimal(0))
    shares = [
        DonationShare(
            category=category,
            amount=amount,
            percentage=(amount * 100 / total) if total else Decimal(0),
        )
        for category, amount in decimals.items()
    ]
    return sorted(shares, key=lambda s: s.amount, reverse=True)
