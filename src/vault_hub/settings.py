"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import REGISTRY_PRESETS
from .domain import Accounting

load_dotenv()

LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class RegistryPreset(str, Enum):
    SPARK = "spark"
    OCTANT = "octant"


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


class VaultConfig(BaseModel):
    """One vault entry of the registry, as written in the config file."""

    address: str
    name: str
    protocol: str
    asset_symbol: str
    decimals: int = Field(default=18, ge=0, le=77)
    accounting: Accounting = Accounting.SUPPLY
    share_symbol: str | None = None
    color: str | None = None
    donating: bool = False
    apy: float | None = None

    model_config = ConfigDict(extra="ignore")


class HubSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with VAULT_HUB_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- ledger endpoint ---
    rpc_url: str | None = None

    # --- registry ---
    registry: RegistryPreset = RegistryPreset.SPARK
    vaults: list[VaultConfig] = Field(default_factory=list)

    # --- wallet / signing ---
    wallet_address: str | None = None
    private_key: SecretStr | None = None

    # --- timeouts ---
    read_timeout_seconds: float = Field(default=15.0, gt=0)
    refresh_timeout_seconds: float | None = 60.0
    confirmation_timeout_seconds: float = Field(default=180.0, gt=0)
    confirmation_poll_interval: float = Field(default=2.0, gt=0)

    # --- injected analytics ---
    donation_breakdown: dict[str, float] = Field(default_factory=dict)

    # --- output / logging ---
    output_format: OutputFormat = OutputFormat.TABLE
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="VAULT_HUB_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator("private_key", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(sorted(LOG_LEVELS))}, got {v!r}"
            )
        return level

    @field_validator("donation_breakdown")
    @classmethod
    def validate_donation_amounts(cls, v: dict[str, float]) -> dict[str, float]:
        negative = [category for category, amount in v.items() if amount < 0]
        if negative:
            raise ValueError(
                f"donation_breakdown amounts must be non-negative: {', '.join(negative)}"
            )
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("VAULT_HUB_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    local_config = Path("vault-hub.toml")
                    user_config = Path.home() / ".config" / "vault-hub" / "config.toml"
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [vault_hub]
                body = data.get("vault_hub", data)
                if not isinstance(body, dict):
                    return {}

                if "private_key" in body:
                    raise ValueError(
                        "Security violation: 'private_key' found in TOML config file. "
                        "Secrets must only be provided via environment variables or CLI flags."
                    )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,  # optional secrets dir
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a JSON-friendly dict with secrets redacted."""
        data = self.model_dump(mode="json")
        if self.private_key:
            data["private_key"] = "***redacted***"
        return data

    @property
    def rpc_url_required(self) -> str:
        """Get rpc_url, raising ValueError if not set."""
        if self.rpc_url is None:
            raise ValueError("rpc_url must be configured")
        return self.rpc_url

    @property
    def effective_vaults(self) -> list[VaultConfig]:
        """Vaults from the config file, or the selected preset when none are listed."""
        if self.vaults:
            return list(self.vaults)
        return [VaultConfig(**preset) for preset in REGISTRY_PRESETS[self.registry.value]]
