from __future__ import annotations

from decimal import Decimal

import pytest

from vault_hub.errors import InvalidConfigurationError
from vault_hub.units import format_units, parse_units


def test_parse_units_whole_and_fractional():
    assert parse_units("1", 18) == 10**18
    assert parse_units("12.5", 6) == 12_500_000
    assert parse_units(Decimal("0.000001"), 6) == 1


def test_parse_units_keeps_uint256_precision():
    amount = "115792089237316195423570985008687907853269984665640564039457.584007913129639935"
    assert parse_units(amount, 18) == 2**256 - 1


def test_parse_units_rejects_excess_decimals():
    with pytest.raises(InvalidConfigurationError, match="more than 6 decimal places"):
        parse_units("1.0000001", 6)


@pytest.mark.parametrize("amount", ["abc", "", "NaN", "Infinity"])
def test_parse_units_rejects_non_numbers(amount):
    with pytest.raises(InvalidConfigurationError):
        parse_units(amount, 18)


def test_format_units():
    assert format_units(12_500_000, 6) == Decimal("12.5")
    assert format_units(0, 18) == 0
    assert format_units(1, 18) == Decimal("0.000000000000000001")
