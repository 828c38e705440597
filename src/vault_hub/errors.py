"""Error classification shared by the ledger, signer and orchestrator."""

from __future__ import annotations


class VaultHubError(Exception):
    """Base class for all classified vault-hub errors."""


class TransportError(VaultHubError):
    """The ledger endpoint was unreachable or did not answer in time.

    Retryable by the caller; never retried by the adapter itself.
    """


class ContractRevertError(VaultHubError):
    """A contract call or a mined transaction reverted."""


class UserDeclinedError(VaultHubError):
    """The signer refused to submit a transaction."""


class ConfirmationTimeoutError(VaultHubError):
    """A submitted transaction was not observed confirmed within the bound."""

    def __init__(self, message: str, tx_hash: str | None = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class MutationBusyError(VaultHubError):
    """A mutation for the same (wallet, vault) pair is already in flight."""


class InvalidConfigurationError(VaultHubError, ValueError):
    """Inputs or configuration values are invalid."""


class RegistryError(VaultHubError):
    """The vault registry could not be built from configuration."""
