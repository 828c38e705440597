from datetime import datetime, timezone
from decimal import Decimal

import pytest

from fakes import ASSET, VAULT_A, VAULT_B, WALLET, make_descriptor
from vault_hub.domain import PortfolioSnapshot, UserPosition, VaultState
from vault_hub.report.generator import PortfolioReport, generate_report


@pytest.fixture
def snapshot() -> PortfolioSnapshot:
    def _state(address, name, tvl, apy):
        return VaultState(
            descriptor=make_descriptor(address, name),
            asset_address=ASSET,
            asset_symbol="DAI",
            decimals=18,
            total_assets=int(Decimal(tvl) * 10**18),
            tvl=Decimal(tvl),
            yield_generated=Decimal("1.5"),
            apy=apy,
        )

    return PortfolioSnapshot(
        vaults=(_state(VAULT_A, "Alpha", "100", 7.2), _state(VAULT_B, "Bravo", "50", 8.5)),
        pass_number=4,
        taken_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        failures={"0x" + "c" * 40: "timed out"},
    )


def test_generate_report_summarises_snapshot(snapshot):
    report = generate_report(snapshot, donations={"Research": 1, "Public Goods": 3})

    assert isinstance(report, PortfolioReport)
    assert report.pass_number == 4
    assert Decimal(report.total_tvl) == 150
    assert Decimal(report.total_yield_generated) == 3
    assert report.best_vault == "Bravo"
    assert [v.name for v in report.vaults] == ["Alpha", "Bravo"]
    assert report.failures == {"0x" + "c" * 40: "timed out"}
    assert report.wallet is None and report.portfolio_value is None
    assert [(d.category, d.percentage) for d in report.donations] == [
        ("Public Goods", "75.00"),
        ("Research", "25.00"),
    ]


def test_generate_report_with_positions(snapshot):
    positions = [UserPosition(WALLET, VAULT_B, shares=10**18, assets=2 * 10**18, decimals=18)]

    report = generate_report(snapshot, wallet=WALLET, positions=positions)

    assert report.wallet == WALLET
    assert Decimal(report.portfolio_value) == 2
    (row,) = report.positions
    assert row.vault_name == "Bravo"
    assert Decimal(row.assets) == 2


def test_to_dict_is_plain_data(snapshot):
    data = generate_report(snapshot).to_dict()

    assert data["taken_at"] == "2026-01-01T00:00:00+00:00"
    assert data["vaults"][0]["name"] == "Alpha"
    assert isinstance(data["total_tvl"], str)
