"""High-level refresh orchestration."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from ..domain import PortfolioSnapshot, UserPosition
from ..state import AppState


@dataclass
class RefreshResult:
    snapshot: PortfolioSnapshot
    wallet: str | None = None
    positions: tuple[UserPosition, ...] = field(default_factory=tuple)


async def run_refresh(state: AppState, wallet: str | None = None) -> RefreshResult:
    """Refresh the portfolio snapshot and, if given, one wallet's positions.

    The whole run is bounded by ``refresh_timeout_seconds``.

    Args:
        state: Application state containing settings, logger and services
        wallet: Optional wallet whose positions are refreshed afterwards
    """
    s = state.settings
    log = state.logger
    timeout_s = s.refresh_timeout_seconds

    async def _run() -> RefreshResult:
        snapshot = await state.aggregator.refresh()
        if wallet is None:
            return RefreshResult(snapshot=snapshot)
        positions = await state.positions.refresh_positions(wallet, snapshot)
        return RefreshResult(snapshot=snapshot, wallet=wallet, positions=positions)

    try:
        if timeout_s is None or timeout_s <= 0:
            return await _run()
        async with asyncio.timeout(timeout_s):
            return await _run()
    except TimeoutError as exc:
        log.error("Refresh timed out after %ss", timeout_s)
        raise TimeoutError(
            f"Refresh exceeded global timeout {timeout_s}s\n"
            " N.B. This can be changed via `refresh_timeout_seconds` "
            "or the VAULT_HUB_REFRESH_TIMEOUT_SECONDS environment variable."
        ) from exc
