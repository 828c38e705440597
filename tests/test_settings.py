"""Tests for settings configuration loading."""

from __future__ import annotations

from textwrap import dedent

import pytest

from vault_hub.constants import SPARK_VAULTS
from vault_hub.domain import Accounting
from vault_hub.settings import HubSettings, OutputFormat, RegistryPreset


def test_defaults_use_spark_preset():
    settings = HubSettings()

    assert settings.registry is RegistryPreset.SPARK
    assert [v.address for v in settings.effective_vaults] == [
        v["address"] for v in SPARK_VAULTS
    ]
    assert settings.effective_vaults[0].accounting is Accounting.CONVERT_TO_ASSETS
    assert settings.output_format is OutputFormat.TABLE


def test_vault_tables_loaded_from_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        dedent(
            """
            [vault_hub]
            rpc_url = "https://rpc.example"
            registry = "octant"
            refresh_timeout_seconds = 12.5

            [vault_hub.donation_breakdown]
            "Public Goods" = 300
            Research = 100

            [[vault_hub.vaults]]
            address = "0x1111111111111111111111111111111111111111"
            name = "Test Vault"
            protocol = "Test"
            asset_symbol = "USDC"
            decimals = 6
            accounting = "price_per_share"
            apy = 4.2
            """
        ).strip()
    )
    monkeypatch.setenv("VAULT_HUB_CONFIG", str(config_path))

    settings = HubSettings()

    assert settings.rpc_url == "https://rpc.example"
    assert settings.registry is RegistryPreset.OCTANT
    assert settings.refresh_timeout_seconds == 12.5
    assert settings.donation_breakdown == {"Public Goods": 300, "Research": 100}
    assert len(settings.effective_vaults) == 1
    vault = settings.effective_vaults[0]
    assert vault.decimals == 6
    assert vault.accounting is Accounting.PRICE_PER_SHARE
    assert vault.apy == 4.2


def test_env_overrides_config_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text('rpc_url = "https://file.example"\nlog_level = "debug"\n')
    monkeypatch.setenv("VAULT_HUB_CONFIG", str(config_path))
    monkeypatch.setenv("VAULT_HUB_RPC_URL", "https://env.example")

    settings = HubSettings()

    assert settings.rpc_url == "https://env.example"
    assert settings.log_level == "DEBUG"


def test_cli_kwargs_override_env(monkeypatch):
    monkeypatch.setenv("VAULT_HUB_RPC_URL", "https://env.example")

    settings = HubSettings(rpc_url="https://cli.example")

    assert settings.rpc_url == "https://cli.example"


def test_private_key_in_config_file_is_rejected(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text('private_key = "0xdeadbeef"\n')
    monkeypatch.setenv("VAULT_HUB_CONFIG", str(config_path))

    with pytest.raises(ValueError, match="Security violation"):
        HubSettings()


def test_safe_dict_redacts_private_key(monkeypatch):
    monkeypatch.setenv("VAULT_HUB_PRIVATE_KEY", "0x" + "ab" * 32)

    settings = HubSettings()
    dumped = settings.as_safe_dict()

    assert settings.private_key is not None
    assert dumped["private_key"] == "***redacted***"
    assert "ab" * 32 not in str(dumped)


def test_rpc_url_required_raises_when_missing():
    settings = HubSettings()

    with pytest.raises(ValueError, match="rpc_url must be configured"):
        _ = settings.rpc_url_required
