"""
Single-wallet analysis: fetch events for one address and aggregate them.

With a DateRange the windowed transaction feed is used (LedgerFetcher +
extract_ledger_events); without one the client's deposit / withdrawal event
handles are read directly. analyze_wallet_safe converts every failure into a
tagged result so batch siblings are never affected.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from backend_eagleeye.analytics.event_aggregator import (
    WalletAnalysisResult,
    aggregate_events,
    failure_result,
)
from backend_eagleeye.core.exceptions import InvalidRequest
from backend_eagleeye.eagleeye_logging import bind_wallet
from backend_eagleeye.ingestion.ledger_fetcher import LedgerFetcher, extract_ledger_events
from backend_eagleeye.ledger_client.client import DEFAULT_EVENT_LIMIT, LedgerClient
from backend_eagleeye.ledger_client.models import NATIVE_COIN_TYPE, AccountSnapshot
from backend_eagleeye.utils.wallet_utils import normalize_address, validate_address

DEFAULT_WINDOW_DAYS = 30


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None:
            object.__setattr__(self, "start", self.start.replace(tzinfo=timezone.utc))
        if self.end.tzinfo is None:
            object.__setattr__(self, "end", self.end.replace(tzinfo=timezone.utc))
        if self.start > self.end:
            raise InvalidRequest("date range start must not be after end")

    @classmethod
    def last_days(cls, days: int = DEFAULT_WINDOW_DAYS, now: datetime | None = None) -> "DateRange":
        end = now or datetime.now(timezone.utc)
        return cls(start=end - timedelta(days=days), end=end)

    def to_dict(self) -> dict[str, Any]:
        return {"startDate": self.start.isoformat(), "endDate": self.end.isoformat()}


@dataclass(frozen=True)
class AnalysisOptions:
    include_account_info: bool = False
    include_transaction_history: bool = False
    event_limit: int = DEFAULT_EVENT_LIMIT


async def analyze_wallet(
    client: LedgerClient,
    address: str,
    token_type: str = NATIVE_COIN_TYPE,
    *,
    fetcher: LedgerFetcher | None = None,
    date_range: DateRange | None = None,
    options: AnalysisOptions | None = None,
    batch_number: int | None = None,
) -> WalletAnalysisResult:
    """Analyze one wallet; raises on invalid address or remote failure."""
    opts = options or AnalysisOptions()
    validate_address(address)
    addr = normalize_address(address)
    started = time.perf_counter()

    if date_range is not None:
        window = await (fetcher or LedgerFetcher(client)).fetch_window(addr, date_range.start, date_range.end)
        deposits, withdrawals = extract_ledger_events(window.transactions, addr, token_type)
    else:
        deposits, withdrawals = await asyncio.gather(
            client.fetch_deposit_events(addr, token_type, opts.event_limit),
            client.fetch_withdrawal_events(addr, token_type, opts.event_limit),
        )

    snapshot: AccountSnapshot | None = None
    if opts.include_account_info:
        snapshot = await client.fetch_account_snapshot(addr)

    result = aggregate_events(
        addr,
        token_type,
        deposits,
        withdrawals,
        snapshot=snapshot,
        include_recent=opts.include_transaction_history,
        processing_time_ms=(time.perf_counter() - started) * 1000,
        batch_number=batch_number,
    )
    bind_wallet(addr, __name__).info(
        "wallet_analyzed",
        deposits=result.deposit_count,
        withdrawals=result.withdrawal_count,
        net_flow=str(result.net_flow),
    )
    return result


async def analyze_wallet_safe(
    client: LedgerClient,
    address: str,
    token_type: str = NATIVE_COIN_TYPE,
    **kwargs: Any,
) -> WalletAnalysisResult:
    """
    Run analyze_wallet for one address. Never raises (except cancellation);
    any failure comes back as a failure_result carrying its descriptor.
    """
    started = time.perf_counter()
    try:
        return await analyze_wallet(client, address, token_type, **kwargs)
    except Exception as e:
        bind_wallet(address, __name__).warning(
            "wallet_analysis_failed",
            error_kind=type(e).__name__,
            error=str(e),
        )
        return failure_result(
            address,
            token_type,
            e,
            processing_time_ms=(time.perf_counter() - started) * 1000,
            batch_number=kwargs.get("batch_number"),
        )
