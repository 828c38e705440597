from __future__ import annotations

from .aggregator import StateAggregator
from .positions import PositionRefresher

__all__ = ["PositionRefresher", "StateAggregator"]
