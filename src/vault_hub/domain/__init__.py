"""Domain models for the vault hub."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from ..errors import InvalidConfigurationError
from ..units import format_units


class Accounting(str, Enum):
    """How a vault's yield is derived.

    SUPPLY subtracts total share supply from total assets. The two share-price
    conventions read assets-per-share either from ``pricePerShare()`` or from
    ``convertToAssets(10**decimals)``.
    """

    SUPPLY = "supply"
    PRICE_PER_SHARE = "price_per_share"
    CONVERT_TO_ASSETS = "convert_to_assets"


@dataclass(frozen=True)
class VaultDescriptor:
    """Static description of a registered vault."""

    address: str
    name: str
    protocol: str
    asset_symbol: str
    decimals: int
    accounting: Accounting = Accounting.SUPPLY
    share_symbol: str | None = None
    color: str | None = None
    donating: bool = False


@dataclass(frozen=True)
class VaultState:
    """Per-vault financial state produced by one read pass."""

    descriptor: VaultDescriptor
    asset_address: str
    asset_symbol: str
    decimals: int
    total_assets: int
    tvl: Decimal
    yield_generated: Decimal
    total_supply: int | None = None
    price_per_share: int | None = None
    apy: float | None = None
    donation_address: str | None = None

    @property
    def address(self) -> str:
        return self.descriptor.address

    @property
    def name(self) -> str:
        return self.descriptor.name


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Immutable aggregation of every vault that succeeded in one pass."""

    vaults: tuple[VaultState, ...]
    pass_number: int
    taken_at: datetime
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def tvl(self) -> Decimal:
        return sum((v.tvl for v in self.vaults), Decimal(0))

    def vault(self, address: str) -> VaultState | None:
        """Return the state of ``address`` if it succeeded in this pass."""
        normalized = address.lower()
        return next((v for v in self.vaults if v.address.lower() == normalized), None)


@dataclass(frozen=True)
class UserPosition:
    """Shares held by one wallet in one vault, and their asset value."""

    wallet: str
    vault_address: str
    shares: int
    assets: int
    decimals: int

    @property
    def assets_amount(self) -> Decimal:
        return format_units(self.assets, self.decimals)

    @property
    def shares_amount(self) -> Decimal:
        return format_units(self.shares, self.decimals)


class MutationKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


class MutationStatus(str, Enum):
    IDLE = "idle"
    CHECKING_ALLOWANCE = "checking_allowance"
    APPROVING = "approving"
    SUBMITTING = "submitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INDETERMINATE = "indeterminate"

    @property
    def is_terminal(self) -> bool:
        return self in (
            MutationStatus.IDLE,
            MutationStatus.SUCCEEDED,
            MutationStatus.FAILED,
        )


@dataclass(frozen=True)
class MutationRequest:
    """A single deposit or withdraw request, amount in asset base units."""

    kind: MutationKind
    vault: VaultDescriptor
    wallet: str
    amount: int
    decimals: int

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise InvalidConfigurationError(
                f"{self.kind.value} amount must be positive, got {self.amount}"
            )

    @property
    def key(self) -> tuple[str, str]:
        return (self.wallet.lower(), self.vault.address.lower())


@dataclass(frozen=True)
class MutationState:
    """State of the mutation slot for one (wallet, vault) pair.

    ``pending_stage`` names the transaction left unresolved when the status
    is INDETERMINATE ("approval" or the mutation kind).
    """

    status: MutationStatus = MutationStatus.IDLE
    reason: str | None = None
    approval_tx_hash: str | None = None
    tx_hash: str | None = None
    pending_stage: str | None = None

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal


@dataclass(frozen=True)
class DonationShare:
    """One category of an injected donation breakdown."""

    category: str
    amount: Decimal
    percentage: Decimal
