"""Static, ordered registry of the vaults known to the hub."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import replace

from web3 import Web3

from .domain import VaultDescriptor
from .errors import InvalidConfigurationError, RegistryError
from .settings import HubSettings, VaultConfig


class VaultRegistry:
    """Immutable, ordered set of vault descriptors.

    Built once from configuration; lookups never touch the network.
    """

    def __init__(self, descriptors: Sequence[VaultDescriptor]):
        if not descriptors:
            raise RegistryError("Vault registry is empty")

        seen: set[str] = set()
        checksummed: list[VaultDescriptor] = []
        for descriptor in descriptors:
            if not Web3.is_address(descriptor.address):
                raise RegistryError(
                    f"Invalid vault address for {descriptor.name!r}: {descriptor.address}"
                )
            normalized = descriptor.address.lower()
            if normalized in seen:
                raise RegistryError(f"Duplicate vault address: {descriptor.address}")
            seen.add(normalized)
            checksummed.append(
                replace(descriptor, address=Web3.to_checksum_address(descriptor.address))
            )

        self._descriptors: tuple[VaultDescriptor, ...] = tuple(checksummed)
        self._by_address = {d.address.lower(): d for d in self._descriptors}

    @classmethod
    def from_configs(cls, configs: Sequence[VaultConfig]) -> VaultRegistry:
        return cls(
            [
                VaultDescriptor(
                    address=cfg.address,
                    name=cfg.name,
                    protocol=cfg.protocol,
                    asset_symbol=cfg.asset_symbol,
                    decimals=cfg.decimals,
                    accounting=cfg.accounting,
                    share_symbol=cfg.share_symbol,
                    color=cfg.color,
                    donating=cfg.donating,
                )
                for cfg in configs
            ]
        )

    @classmethod
    def from_settings(cls, settings: HubSettings) -> VaultRegistry:
        return cls.from_configs(settings.effective_vaults)

    def descriptors(self) -> tuple[VaultDescriptor, ...]:
        return self._descriptors

    def get(self, address: str) -> VaultDescriptor | None:
        return self._by_address.get(address.lower())

    def resolve(self, reference: str) -> VaultDescriptor:
        """Find a vault by address, share symbol or display name (case-insensitive).

        Raises:
            InvalidConfigurationError: If no registered vault matches ``reference``.
        """
        if (by_address := self.get(reference)) is not None:
            return by_address

        wanted = reference.lower()
        for descriptor in self._descriptors:
            labels = {descriptor.name.lower()}
            if descriptor.share_symbol:
                labels.add(descriptor.share_symbol.lower())
            if wanted in labels:
                return descriptor

        known = ", ".join(d.share_symbol or d.name for d in self._descriptors)
        raise InvalidConfigurationError(f"Unknown vault '{reference}'. Available: {known}")

    def __iter__(self) -> Iterator[VaultDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)
