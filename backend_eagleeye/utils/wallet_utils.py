"""Wallet address validation utilities."""

from __future__ import annotations

import re
from typing import Iterable

from backend_eagleeye.core.exceptions import InvalidAddress

ADDRESS_PATTERN = re.compile(r"0x[0-9a-fA-F]{64}")
ADDRESS_LENGTH = 66


def is_valid_address(address: str) -> bool:
    """Return True if address is 0x followed by exactly 64 hex characters (any case)."""
    if not isinstance(address, str):
        return False
    return ADDRESS_PATTERN.fullmatch(address) is not None


def validate_address(address: str) -> str:
    """Return the address unchanged if valid; raise InvalidAddress with the specific problem otherwise."""
    if not isinstance(address, str) or not address:
        raise InvalidAddress(str(address), "address must be a non-empty string")
    if not address.startswith("0x"):
        raise InvalidAddress(address, "missing 0x prefix")
    if len(address) != ADDRESS_LENGTH:
        raise InvalidAddress(
            address,
            f"expected 64 hex characters after 0x, got {len(address) - 2}",
        )
    if not is_valid_address(address):
        raise InvalidAddress(address, "contains non-hexadecimal characters")
    return address


def split_valid_addresses(addresses: Iterable[str]) -> tuple[list[str], list[str]]:
    """Partition addresses into (valid, invalid), preserving input order."""
    valid: list[str] = []
    invalid: list[str] = []
    for address in addresses:
        if is_valid_address(address):
            valid.append(address)
        else:
            invalid.append(address)
    return valid, invalid


def normalize_address(address: str) -> str:
    """Lower-case form used for cache keys and sender comparisons."""
    return address.strip().lower()
