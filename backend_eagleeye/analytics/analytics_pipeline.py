"""
Analytics pipeline: entry points used by the API and scripts.

- analyze / analyze_sync: windowed analysis of many wallets -> Report
- analyze_batch: batched event-handle analysis -> BatchJobResult
- fetch_wallet_events: raw per-wallet event lists with totals
- fetch_transfers: inbound / outbound transfer classification for one wallet

Each entry point accepts an existing LedgerClient (caller keeps ownership) or
builds one from ClientConfig / environment settings and releases it on exit.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Sequence

from backend_eagleeye.agent_worker.batch_orchestrator import (
    MAX_BATCH_SIZE,
    PRIORITY_CONCURRENCY,
    PRIORITY_NORMAL,
    BatchJobResult,
    BatchOrchestrator,
)
from backend_eagleeye.analytics.event_aggregator import aggregate_events
from backend_eagleeye.analytics.wallet_analysis import AnalysisOptions, DateRange
from backend_eagleeye.config.settings import get_settings
from backend_eagleeye.core.exceptions import ErrorDescriptor, InvalidRequest
from backend_eagleeye.eagleeye_logging import get_logger, short_id
from backend_eagleeye.ingestion.ledger_fetcher import ClassifiedTransfers, LedgerFetcher, classify_transfers
from backend_eagleeye.ledger_client.client import ClientConfig, LedgerClient
from backend_eagleeye.ledger_client.models import NATIVE_COIN_TYPE, AccountSnapshot, LedgerEvent
from backend_eagleeye.reports.report_assembler import Report, assemble_report
from backend_eagleeye.utils.wallet_utils import normalize_address, validate_address

logger = get_logger(__name__)


@asynccontextmanager
async def _client_scope(
    client: LedgerClient | None,
    config: ClientConfig | None,
) -> AsyncIterator[LedgerClient]:
    """Yield the given client untouched, or a fresh one released on exit."""
    if client is not None:
        yield client
        return
    cfg = config or get_settings().client_config()
    async with LedgerClient(cfg) as owned:
        yield owned


def _primary_token(token_types: Sequence[str] | None) -> str:
    return token_types[0] if token_types else NATIVE_COIN_TYPE


async def analyze(
    addresses: Sequence[str],
    token_types: Sequence[str] | None = None,
    date_range: DateRange | None = None,
    options: AnalysisOptions | None = None,
    *,
    client: LedgerClient | None = None,
    config: ClientConfig | None = None,
    created_by: str | None = None,
) -> Report:
    """
    Analyze wallets over date_range (default: last 30 days) and assemble a Report.

    Raises InvalidRequest for an empty list or one without any valid address;
    per-wallet failures appear as failed wallets inside the report.
    """
    if not addresses:
        raise InvalidRequest("addresses must be a non-empty list")
    settings = get_settings()
    window = date_range or DateRange.last_days(settings.default_window_days)
    batch_size = max(1, min(settings.batch_size, MAX_BATCH_SIZE))

    async with _client_scope(client, config) as ledger:
        orchestrator = BatchOrchestrator(ledger, inter_batch_delay_sec=settings.inter_batch_delay_sec)
        job = await orchestrator.run_batch(
            addresses,
            token_types,
            batch_size=batch_size,
            priority=PRIORITY_NORMAL,
            include_progress=False,
            date_range=window,
            options=options,
        )
    return assemble_report(
        job.results,
        date_range=window,
        token_types=token_types,
        created_by=created_by,
    )


def analyze_sync(addresses: Sequence[str], *args: Any, **kwargs: Any) -> Report:
    """Blocking wrapper around analyze() for scripts; must not be called from a running loop."""
    return asyncio.run(analyze(addresses, *args, **kwargs))


async def analyze_batch(
    addresses: Sequence[str],
    token_types: Sequence[str] | None = None,
    batch_size: int = 10,
    priority: str = PRIORITY_NORMAL,
    include_progress: bool = True,
    *,
    client: LedgerClient | None = None,
    config: ClientConfig | None = None,
    date_range: DateRange | None = None,
    options: AnalysisOptions | None = None,
) -> BatchJobResult:
    """
    Batched analysis. Without date_range the deposit / withdrawal event
    handles are read directly; with one the windowed transaction feed is used.
    Priority only widens concurrency; the client rate limit stays the ceiling.
    """
    settings = get_settings()
    async with _client_scope(client, config) as ledger:
        orchestrator = BatchOrchestrator(ledger, inter_batch_delay_sec=settings.inter_batch_delay_sec)
        return await orchestrator.run_batch(
            addresses,
            token_types,
            batch_size=batch_size,
            priority=priority,
            include_progress=include_progress,
            date_range=date_range,
            options=options,
        )


@dataclass(frozen=True)
class WalletEvents:
    address: str
    events: tuple[LedgerEvent, ...] = ()
    total_deposits: int = 0
    total_withdrawals: int = 0
    net_flow: int = 0
    account_snapshot: AccountSnapshot | None = None
    error: ErrorDescriptor | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "address": self.address,
            "events": [e.to_dict() for e in self.events],
            "totalDeposits": str(self.total_deposits),
            "totalWithdrawals": str(self.total_withdrawals),
            "netFlow": str(self.net_flow),
        }
        if self.account_snapshot is not None:
            out["accountInfo"] = self.account_snapshot.to_dict()
        if self.error is not None:
            out["error"] = self.error.to_dict()
        return out


async def _wallet_events(ledger: LedgerClient, address: str, token_type: str) -> WalletEvents:
    try:
        validate_address(address)
        addr = normalize_address(address)
        deposits, withdrawals = await asyncio.gather(
            ledger.fetch_deposit_events(addr, token_type),
            ledger.fetch_withdrawal_events(addr, token_type),
        )
        snapshot = await ledger.fetch_account_snapshot(addr)
    except Exception as e:
        logger.warning("wallet_events_failed", wallet_id=short_id(address), error=str(e))
        return WalletEvents(address=address, error=ErrorDescriptor.from_exception(e))
    result = aggregate_events(addr, token_type, deposits, withdrawals)
    return WalletEvents(
        address=addr,
        events=tuple(deposits) + tuple(withdrawals),
        total_deposits=result.total_deposits,
        total_withdrawals=result.total_withdrawals,
        net_flow=result.net_flow,
        account_snapshot=snapshot,
    )


async def fetch_wallet_events(
    addresses: Sequence[str],
    token_types: Sequence[str] | None = None,
    *,
    client: LedgerClient | None = None,
    config: ClientConfig | None = None,
    concurrency: int = PRIORITY_CONCURRENCY[PRIORITY_NORMAL],
) -> list[WalletEvents]:
    """
    Deposit / withdrawal event lists per address, in input order; failures are tagged, not raised.

    At most `concurrency` addresses are in flight at once.
    """
    if not addresses:
        raise InvalidRequest("addresses must be a non-empty list")
    if concurrency < 1:
        raise InvalidRequest("concurrency must be >= 1")
    token_type = _primary_token(token_types)
    semaphore = asyncio.Semaphore(concurrency)

    async def bounded(ledger: LedgerClient, address: str) -> WalletEvents:
        async with semaphore:
            return await _wallet_events(ledger, address, token_type)

    async with _client_scope(client, config) as ledger:
        return list(await asyncio.gather(*(bounded(ledger, a) for a in addresses)))


async def fetch_transfers(
    address: str,
    start: datetime,
    end: datetime,
    *,
    client: LedgerClient | None = None,
    config: ClientConfig | None = None,
) -> ClassifiedTransfers:
    """Every transaction of address within [start, end], split into inbound / outbound."""
    validate_address(address)
    window = DateRange(start=start, end=end)
    async with _client_scope(client, config) as ledger:
        fetched = await LedgerFetcher(ledger).fetch_window(address, window.start, window.end)
    return classify_transfers(fetched.transactions, address)
