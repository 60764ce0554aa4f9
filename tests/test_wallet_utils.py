"""
Tests for address validation (is_valid_address, validate_address, split_valid_addresses).
"""

from __future__ import annotations

import pytest

from backend_eagleeye.core.exceptions import InvalidAddress
from backend_eagleeye.utils.wallet_utils import (
    is_valid_address,
    normalize_address,
    split_valid_addresses,
    validate_address,
)

VALID = "0x" + "ab" * 32
VALID_UPPER = "0x" + "AB" * 32


def test_valid_address_accepted_any_case():
    assert is_valid_address(VALID)
    assert is_valid_address(VALID_UPPER)
    assert validate_address(VALID) == VALID


@pytest.mark.parametrize(
    "address",
    [
        "",
        "0x",
        "ab" * 32,  # no prefix
        "0x" + "a" * 63,
        "0x" + "a" * 65,
        "0x" + "g" * 64,
        " 0x" + "a" * 64,
        "0x" + "a" * 64 + "\n",
        None,
        12345,
    ],
)
def test_invalid_addresses_rejected(address):
    assert is_valid_address(address) is False
    with pytest.raises(InvalidAddress):
        validate_address(address)


def test_validate_address_reports_specific_problem():
    with pytest.raises(InvalidAddress, match="missing 0x prefix"):
        validate_address("ab" * 33)
    with pytest.raises(InvalidAddress, match="got 63"):
        validate_address("0x" + "a" * 63)
    with pytest.raises(InvalidAddress, match="non-hexadecimal"):
        validate_address("0x" + "z" * 64)
    with pytest.raises(InvalidAddress, match="non-empty"):
        validate_address("")


def test_invalid_address_is_value_error():
    """Callers that only know ValueError still catch address problems."""
    with pytest.raises(ValueError):
        validate_address("nope")


def test_split_valid_addresses_preserves_order():
    valid, invalid = split_valid_addresses(["bad", VALID, "0x1", VALID_UPPER])
    assert valid == [VALID, VALID_UPPER]
    assert invalid == ["bad", "0x1"]


def test_normalize_address_lowercases():
    assert normalize_address(VALID_UPPER) == VALID_UPPER.lower()
