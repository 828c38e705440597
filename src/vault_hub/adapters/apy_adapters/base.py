from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ...domain import VaultDescriptor


class BaseApySource(ABC):
    """Abstract supplier of vault APYs.

    APY is an external input: implementations may read it from configuration,
    an analytics service or a yield-history collaborator.
    """

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the name of this source."""
        ...

    @abstractmethod
    async def fetch_apys(
        self, descriptors: Sequence[VaultDescriptor]
    ) -> dict[str, float]:
        """Return APY percentages keyed by lower-cased vault address.

        Vaults without a known APY are omitted.
        """
        ...
