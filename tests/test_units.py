"""
Tests for minor-unit / display-unit conversion and token metadata.
"""

from __future__ import annotations

import pytest

from backend_eagleeye.analytics.units import (
    from_display_units,
    to_display_units,
    token_decimals,
    token_symbol,
)


def test_whole_amount_renders_as_integer():
    assert to_display_units(100_000_000) == "1"
    assert to_display_units(2_500_000_000) == "25"


def test_fractional_amount_renders_all_decimals():
    assert to_display_units(150_000_000) == "1.50000000"
    assert to_display_units(123_456_789) == "1.23456789"
    assert to_display_units(1) == "0.00000001"


def test_zero_and_negative():
    assert to_display_units(0) == "0"
    assert to_display_units(-150_000_000) == "-1.50000000"
    assert to_display_units(-100_000_000) == "-1"


def test_custom_decimals():
    assert to_display_units(1_500_000, decimals=6) == "1.500000"
    assert to_display_units(10**18, decimals=18) == "1"


def test_large_amounts_stay_exact():
    amount = 2**64 + 12345
    text = to_display_units(amount)
    assert from_display_units(text) == amount


def test_float_amount_rejected():
    with pytest.raises(TypeError):
        to_display_units(1.5)  # type: ignore[arg-type]


@pytest.mark.parametrize("amount", [0, 1, 99_999_999, 100_000_000, 150_000_000, 123_456_789, -7])
def test_display_round_trip(amount):
    assert from_display_units(to_display_units(amount)) == amount


def test_from_display_units_parses_short_fractions():
    assert from_display_units("1.5") == 150_000_000
    assert from_display_units("0.00000001") == 1
    assert from_display_units("-2") == -200_000_000


@pytest.mark.parametrize("text", ["", "abc", "1.2.3", "1.", "1.000000001", "--1"])
def test_from_display_units_rejects_malformed(text):
    with pytest.raises(ValueError):
        from_display_units(text)


def test_token_table():
    assert token_decimals("0x1::aptos_coin::AptosCoin") == 8
    assert token_decimals("0x1::coin::Coin<0x1::usd_coin::USDCoin>") == 6
    assert token_decimals("0x1::coin::Coin<0x1::wrapped_eth::WrappedETH>") == 18
    assert token_decimals("0xdead::unknown::Coin") == 8
    assert token_symbol("0x1::aptos_coin::AptosCoin") == "APT"
    assert token_symbol("0x1::coin::Coin<0x1::tether::Tether>") == "USDT"
    assert token_symbol("0xdead::unknown::Coin") == "UNKNOWN"
