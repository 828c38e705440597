from __future__ import annotations

from collections.abc import Mapping, Sequence

from ...domain import VaultDescriptor
from ...settings import HubSettings
from .base import BaseApySource


class StaticApySource(BaseApySource):
    """APYs taken verbatim from configuration."""

    def __init__(self, apys: Mapping[str, float]):
        self._apys = {address.lower(): float(apy) for address, apy in apys.items()}

    @classmethod
    def from_settings(cls, settings: HubSettings) -> StaticApySource:
        return cls(
            {
                cfg.address: cfg.apy
                for cfg in settings.effective_vaults
                if cfg.apy is not None
            }
        )

    @property
    def source_name(self) -> str:
        return "static"

    async def fetch_apys(
        self, descriptors: Sequence[VaultDescriptor]
    ) -> dict[str, float]:
        return {
            d.address.lower(): self._apys[d.address.lower()]
            for d in descriptors
            if d.address.lower() in self._apys
        }
