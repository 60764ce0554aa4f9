"""
Data models for ledger client output.

Immutable records built from the ledger REST API JSON: coin events,
account transactions and account snapshots. Amounts are minor units held
as Python int (never float); timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

NATIVE_COIN_TYPE = "0x1::aptos_coin::AptosCoin"
COIN_STORE_PREFIX = "0x1::coin::CoinStore<"

# Ledger timestamps are microseconds since epoch; values above these bounds
# are taken to be micro- / milliseconds rather than seconds.
_MICROS_THRESHOLD = 10**14
_MILLIS_THRESHOLD = 10**11


class EventKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a ledger timestamp into a UTC datetime.

    Accepts integer strings / ints in microseconds (ledger native), milliseconds
    or seconds, ISO 8601 strings and datetimes. Returns None when unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if not _is_ascii_digits(text.lstrip("-")):
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        value = int(text)
    if not isinstance(value, int):
        return None
    try:
        if abs(value) >= _MICROS_THRESHOLD:
            seconds, micros = divmod(value, 1_000_000)
            return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=micros)
        if abs(value) >= _MILLIS_THRESHOLD:
            seconds, millis = divmod(value, 1_000)
            return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=millis * 1000)
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _is_ascii_digits(text: str) -> bool:
    # str.isdigit() alone accepts superscripts and other digits int() rejects
    return text.isascii() and text.isdigit()


def parse_amount(value: Any) -> int | None:
    """Return a non-negative int amount from an int or decimal-digit string; None otherwise (floats rejected)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str):
        text = value.strip()
        if _is_ascii_digits(text):
            return int(text)
    return None


def _parse_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class LedgerEvent:
    """
    One deposit or withdrawal recorded on the ledger for an account.

    timestamp is None only when the event feed carries no time (the
    per-handle event endpoint); events extracted from transactions always
    carry the transaction timestamp.
    """

    kind: EventKind
    amount: int
    token_type: str
    timestamp: datetime | None
    sequence_number: int
    version: str | None = None
    transaction_hash: str | None = None

    @classmethod
    def from_api_item(cls, item: dict[str, Any], kind: EventKind, token_type: str) -> "LedgerEvent | None":
        """Build from a single events-endpoint item; None when the shape has no usable amount."""
        if not isinstance(item, dict):
            return None
        data = item.get("data")
        if not isinstance(data, dict):
            return None
        amount = parse_amount(data.get("amount"))
        if amount is None:
            return None
        return cls(
            kind=kind,
            amount=amount,
            token_type=str(data.get("coin_type") or token_type),
            timestamp=parse_timestamp(item.get("timestamp")),
            sequence_number=_parse_int(item.get("sequence_number")),
            version=str(item["version"]) if item.get("version") is not None else None,
            transaction_hash=item.get("transaction_hash"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "amount": str(self.amount),
            "token_type": self.token_type,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "sequence_number": self.sequence_number,
            "version": self.version,
            "transaction_hash": self.transaction_hash,
        }


@dataclass(frozen=True)
class RawTransaction:
    """One record of an account's transaction feed (newest-first)."""

    version: str
    hash: str
    sender: str
    timestamp: datetime | None
    type: str = "user_transaction"
    success: bool = True
    payload: dict[str, Any] = field(default_factory=dict)
    events: tuple[dict[str, Any], ...] = ()

    @classmethod
    def from_api_item(cls, item: dict[str, Any]) -> "RawTransaction":
        payload = item.get("payload")
        events = item.get("events")
        return cls(
            version=str(item.get("version") or ""),
            hash=str(item.get("hash") or ""),
            sender=str(item.get("sender") or ""),
            timestamp=parse_timestamp(item.get("timestamp")),
            type=str(item.get("type") or "user_transaction"),
            success=bool(item.get("success", True)),
            payload=payload if isinstance(payload, dict) else {},
            events=tuple(e for e in events if isinstance(e, dict)) if isinstance(events, list) else (),
        )


@dataclass(frozen=True)
class AccountResource:
    """One Move resource held by an account (type string + raw data)."""

    type: str
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data}


@dataclass(frozen=True)
class AccountSnapshot:
    """Point-in-time account metadata; read separately from events, not ordered against them."""

    address: str
    sequence_number: int
    coin_resources: tuple[AccountResource, ...] = ()
    token_resources: tuple[AccountResource, ...] = ()

    @classmethod
    def from_api(cls, address: str, account: dict[str, Any], resources: list[Any]) -> "AccountSnapshot":
        coins: list[AccountResource] = []
        tokens: list[AccountResource] = []
        for res in resources or []:
            if not isinstance(res, dict):
                continue
            rtype = str(res.get("type") or "")
            data = res.get("data") if isinstance(res.get("data"), dict) else {}
            if rtype.startswith(COIN_STORE_PREFIX):
                coins.append(AccountResource(type=rtype, data=data))
            elif "::token::" in rtype or "::collection::" in rtype:
                tokens.append(AccountResource(type=rtype, data=data))
        return cls(
            address=address,
            sequence_number=_parse_int((account or {}).get("sequence_number")),
            coin_resources=tuple(coins),
            token_resources=tuple(tokens),
        )

    def coin_balance(self, token_type: str = NATIVE_COIN_TYPE) -> int | None:
        """Minor-unit balance of the coin store for token_type, or None if the account holds none."""
        wanted = f"{COIN_STORE_PREFIX}{token_type}>"
        for res in self.coin_resources:
            if res.type == wanted:
                coin = res.data.get("coin")
                if isinstance(coin, dict):
                    return parse_amount(coin.get("value"))
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence_number": str(self.sequence_number),
            "coin_resources": [r.to_dict() for r in self.coin_resources],
            "token_resources": [r.to_dict() for r in self.token_resources],
        }
