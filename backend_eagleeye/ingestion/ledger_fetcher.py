"""
Windowed transaction history fetcher.

Pages through an account's newest-first transaction feed until the history
runs out or LOOKAHEAD_LIMIT consecutive pages start before the window, then
filters to start <= timestamp <= end. Also classifies fetched transactions
into inbound / outbound transfers and extracts deposit / withdrawal events.

Lookahead is a heuristic: a page whose newest record is old does not prove
nothing newer follows, so a few more pages are read before giving up.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Protocol

from backend_eagleeye.eagleeye_logging import get_logger, short_id
from backend_eagleeye.ledger_client.models import (
    NATIVE_COIN_TYPE,
    EventKind,
    LedgerEvent,
    RawTransaction,
    parse_amount,
)
from backend_eagleeye.utils.wallet_utils import normalize_address, validate_address

logger = get_logger(__name__)

PAGE_SIZE = 100
LOOKAHEAD_LIMIT = 3
MAX_PAGES = 1000

STOP_HISTORY_EXHAUSTED = "history_exhausted"
STOP_LOOKAHEAD_EXHAUSTED = "lookahead_exhausted"
STOP_PAGE_LIMIT = "page_limit"

_DEPOSIT_STRUCTS = frozenset({"DepositEvent", "Deposit"})
_WITHDRAW_STRUCTS = frozenset({"WithdrawEvent", "Withdraw"})
_RECIPIENT_KEYS = ("store", "to", "recipient")


class TransactionPageSource(Protocol):
    """Anything that serves newest-first transaction pages (LedgerClient does)."""

    async def fetch_transaction_page(
        self, address: str, offset: int = 0, page_size: int = PAGE_SIZE
    ) -> tuple[RawTransaction, ...]: ...


@dataclass(frozen=True)
class WindowFetch:
    address: str
    transactions: tuple[RawTransaction, ...]
    pages_fetched: int
    records_scanned: int
    stop_reason: str


@dataclass(frozen=True)
class TransferRecord:
    """One classified transfer, ready for CSV/JSON export."""

    date: datetime | None
    version: str
    transaction_hash: str
    amount: int
    sender: str
    recipient: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat() if self.date else None,
            "version": self.version,
            "transactionHash": self.transaction_hash,
            "amount": str(self.amount),
            "from": self.sender,
            "to": self.recipient,
        }


@dataclass(frozen=True)
class ClassifiedTransfers:
    inbound: tuple[TransferRecord, ...]
    outbound: tuple[TransferRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "inbound": [t.to_dict() for t in self.inbound],
            "outbound": [t.to_dict() for t in self.outbound],
        }


class LedgerFetcher:
    """Time-windowed pagination over one client's transaction feed."""

    def __init__(
        self,
        client: TransactionPageSource,
        page_size: int = PAGE_SIZE,
        lookahead_limit: int = LOOKAHEAD_LIMIT,
        max_pages: int = MAX_PAGES,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if lookahead_limit < 1:
            raise ValueError("lookahead_limit must be >= 1")
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        self._client = client
        self.page_size = page_size
        self.lookahead_limit = lookahead_limit
        self.max_pages = max_pages

    async def fetch_window(self, address: str, start: datetime, end: datetime) -> WindowFetch:
        """
        Collect every transaction of address with start <= timestamp <= end.

        Stops on an empty or short page, or after lookahead_limit consecutive
        pages whose newest record is older than start. A page whose newest
        record is inside or after the window resets the old-page counter.
        Never reads more than max_pages pages.
        """
        validate_address(address)
        addr = normalize_address(address)
        collected: list[RawTransaction] = []
        offset = 0
        pages = 0
        consecutive_old = 0
        stop_reason = STOP_HISTORY_EXHAUSTED

        while True:
            page = await self._client.fetch_transaction_page(addr, offset, self.page_size)
            pages += 1
            if not page:
                break
            collected.extend(page)
            offset += len(page)
            if len(page) < self.page_size:
                break
            newest = page[0].timestamp
            if newest is not None and newest < start:
                consecutive_old += 1
                if consecutive_old >= self.lookahead_limit:
                    stop_reason = STOP_LOOKAHEAD_EXHAUSTED
                    break
            else:
                consecutive_old = 0
            if pages >= self.max_pages:
                stop_reason = STOP_PAGE_LIMIT
                logger.warning("ledger_window_page_limit", wallet_id=short_id(addr), pages=pages, offset=offset)
                break

        windowed = tuple(
            tx for tx in collected if tx.timestamp is not None and start <= tx.timestamp <= end
        )
        logger.info(
            "ledger_window_fetched",
            wallet_id=short_id(addr),
            pages=pages,
            scanned=len(collected),
            in_window=len(windowed),
            stop_reason=stop_reason,
        )
        return WindowFetch(
            address=addr,
            transactions=windowed,
            pages_fetched=pages,
            records_scanned=len(collected),
            stop_reason=stop_reason,
        )


def classify_transfers(transactions: Iterable[RawTransaction], address: str) -> ClassifiedTransfers:
    """
    Split transactions into inbound / outbound for address.

    Outbound when the sender is address (case-insensitive), else inbound.
    Amount is the last event carrying data.amount (0 when none). Recipient is
    the last event's store/to/recipient field, else payload.arguments[1] when
    it looks like an address, else address itself for inbound transfers.
    """
    addr = normalize_address(address)
    inbound: list[TransferRecord] = []
    outbound: list[TransferRecord] = []

    for tx in transactions:
        amount = 0
        recipient = ""
        for event in tx.events:
            data = event.get("data")
            if not isinstance(data, dict):
                continue
            parsed = parse_amount(data.get("amount"))
            if parsed is not None:
                amount = parsed
            for key in _RECIPIENT_KEYS:
                value = data.get(key)
                if isinstance(value, str) and value:
                    recipient = value
                    break
        if not recipient:
            args = tx.payload.get("arguments")
            if isinstance(args, list) and len(args) > 1:
                candidate = args[1]
                if isinstance(candidate, str) and candidate.startswith("0x"):
                    recipient = candidate

        is_outbound = normalize_address(tx.sender) == addr
        if not recipient and not is_outbound:
            recipient = addr
        record = TransferRecord(
            date=tx.timestamp,
            version=tx.version,
            transaction_hash=tx.hash,
            amount=amount,
            sender=tx.sender,
            recipient=recipient,
        )
        (outbound if is_outbound else inbound).append(record)

    return ClassifiedTransfers(inbound=tuple(inbound), outbound=tuple(outbound))


def _struct_name(event_type: str) -> str:
    # "0x1::coin::DepositEvent" -> "DepositEvent"; generic args are ignored
    base = event_type.split("<", 1)[0]
    return base.rsplit("::", 1)[-1]


def _event_owner(event: dict[str, Any], data: dict[str, Any]) -> str | None:
    guid = event.get("guid")
    if isinstance(guid, dict) and isinstance(guid.get("account_address"), str):
        return normalize_address(guid["account_address"])
    if isinstance(data.get("account"), str):
        return normalize_address(data["account"])
    return None


def _payload_token(tx: RawTransaction) -> str | None:
    type_args = tx.payload.get("type_arguments")
    if isinstance(type_args, list) and type_args and isinstance(type_args[0], str):
        return type_args[0]
    return None


def extract_ledger_events(
    transactions: Iterable[RawTransaction],
    address: str,
    token_type: str = NATIVE_COIN_TYPE,
) -> tuple[list[LedgerEvent], list[LedgerEvent]]:
    """
    Pull deposit / withdrawal events for address and token_type out of
    transactions. Returns (deposits, withdrawals); unrecognized event shapes
    and events for other accounts or tokens are skipped.
    """
    addr = normalize_address(address)
    deposits: list[LedgerEvent] = []
    withdrawals: list[LedgerEvent] = []
    skipped = 0

    for tx in transactions:
        fallback_token = _payload_token(tx) or NATIVE_COIN_TYPE
        for event in tx.events:
            struct = _struct_name(str(event.get("type") or ""))
            if struct in _DEPOSIT_STRUCTS:
                kind = EventKind.DEPOSIT
            elif struct in _WITHDRAW_STRUCTS:
                kind = EventKind.WITHDRAWAL
            else:
                continue
            data = event.get("data")
            if not isinstance(data, dict):
                skipped += 1
                continue
            amount = parse_amount(data.get("amount"))
            if amount is None or _event_owner(event, data) != addr:
                skipped += 1
                continue
            event_token = data.get("coin_type") if isinstance(data.get("coin_type"), str) else fallback_token
            if event_token != token_type:
                continue
            try:
                sequence = int(event.get("sequence_number") or 0)
            except (TypeError, ValueError):
                sequence = 0
            record = LedgerEvent(
                kind=kind,
                amount=amount,
                token_type=event_token,
                timestamp=tx.timestamp,
                sequence_number=sequence,
                version=tx.version or None,
                transaction_hash=tx.hash or None,
            )
            (deposits if kind is EventKind.DEPOSIT else withdrawals).append(record)

    if skipped:
        logger.debug("ledger_events_skipped", wallet_id=short_id(addr), skipped=skipped)
    return deposits, withdrawals
