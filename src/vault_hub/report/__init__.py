from __future__ import annotations

from .generator import PortfolioReport, generate_report
from .publisher import publish_report

__all__ = [
    "PortfolioReport",
    "generate_report",
    "publish_report",
]
