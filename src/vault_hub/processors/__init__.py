from __future__ import annotations

from .metrics import (
    best_vault,
    donation_breakdown,
    portfolio_value,
    projected_yield,
    total_tvl,
    total_yield_generated,
)
from .vault_state import VaultReads, build_vault_state, compute_yield_generated

__all__ = [
    "VaultReads",
    "best_vault",
    "build_vault_state",
    "compute_yield_generated",
    "donation_breakdown",
    "portfolio_value",
    "projected_yield",
    "total_tvl",
    "total_yield_generated",
]
