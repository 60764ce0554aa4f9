"""
Minor-unit / display-unit conversion and token metadata.

All arithmetic is integer or string based. Display strings are for output
only and never feed back into aggregation.
"""

from __future__ import annotations

DEFAULT_DECIMALS = 8

TOKEN_DECIMALS: dict[str, int] = {
    "0x1::aptos_coin::AptosCoin": 8,
    "0x1::coin::Coin<0x1::usd_coin::USDCoin>": 6,
    "0x1::coin::Coin<0x1::tether::Tether>": 6,
    "0x1::coin::Coin<0x1::wrapped_eth::WrappedETH>": 18,
    "0x1::coin::Coin<0x1::wrapped_btc::WrappedBTC>": 8,
}

_SYMBOL_MARKERS: tuple[tuple[str, str], ...] = (
    ("aptos_coin", "APT"),
    ("usd_coin", "USDC"),
    ("tether", "USDT"),
    ("wrapped_eth", "WETH"),
    ("wrapped_btc", "WBTC"),
)


def token_decimals(token_type: str) -> int:
    return TOKEN_DECIMALS.get(token_type, DEFAULT_DECIMALS)


def token_symbol(token_type: str) -> str:
    for marker, symbol in _SYMBOL_MARKERS:
        if marker in token_type:
            return symbol
    return "UNKNOWN"


def to_display_units(amount: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """
    Render a minor-unit int as a decimal string.

    Exact multiples of 10**decimals render as integers ("1"); anything else
    renders with exactly `decimals` fractional digits ("1.50000000").
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"amount must be int, got {type(amount).__name__}")
    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    if frac == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac:0{decimals}d}"


def from_display_units(text: str, decimals: int = DEFAULT_DECIMALS) -> int:
    """Exact inverse of to_display_units. Raises ValueError on malformed input or excess precision."""
    raw = (text or "").strip()
    sign = 1
    if raw[:1] in ("-", "+"):
        sign = -1 if raw[0] == "-" else 1
        raw = raw[1:]
    whole, dot, frac = raw.partition(".")
    if not whole.isdigit() or (dot and not frac.isdigit()):
        raise ValueError(f"not a decimal amount: {text!r}")
    if len(frac) > decimals:
        raise ValueError(f"{text!r} has more than {decimals} fractional digits")
    return sign * (int(whole) * 10**decimals + int(frac.ljust(decimals, "0") or "0"))
