"""
Per-wallet aggregation of deposit / withdrawal events.

Totals and net flow are exact Python ints in minor units; display strings
are derived at serialization time only. aggregate_events never raises on
event content, and failure_result builds the zeroed, error-tagged result
used when a wallet's analysis fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from backend_eagleeye.analytics.units import to_display_units, token_decimals
from backend_eagleeye.core.exceptions import ErrorDescriptor
from backend_eagleeye.ledger_client.models import AccountSnapshot, EventKind, LedgerEvent

RECENT_PER_KIND = 5

CACHE_STATUS_LIVE = "real_time"
CACHE_STATUS_ERROR = "error"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class WalletAnalysisResult:
    """
    Outcome of one wallet's analysis. Either a success (error is None) or a
    failure (error set, zero totals, no snapshot / recent transactions).
    """

    address: str
    token_type: str
    total_deposits: int = 0
    total_withdrawals: int = 0
    net_flow: int = 0
    deposit_count: int = 0
    withdrawal_count: int = 0
    has_activity: bool = False
    last_activity: datetime | None = None
    account_snapshot: AccountSnapshot | None = None
    recent_transactions: tuple[LedgerEvent, ...] | None = None
    error: ErrorDescriptor | None = None
    processing_time_ms: float = 0.0
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cache_status: str = CACHE_STATUS_LIVE
    batch_number: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def total_transactions(self) -> int:
        return self.deposit_count + self.withdrawal_count

    @property
    def volume(self) -> int:
        return self.total_deposits + self.total_withdrawals

    def to_dict(self) -> dict[str, Any]:
        decimals = token_decimals(self.token_type)
        out: dict[str, Any] = {
            "address": self.address,
            "summary": {
                "totalDeposits": str(self.total_deposits),
                "totalWithdrawals": str(self.total_withdrawals),
                "netFlow": str(self.net_flow),
                "totalDepositsDisplay": to_display_units(self.total_deposits, decimals),
                "totalWithdrawalsDisplay": to_display_units(self.total_withdrawals, decimals),
                "netFlowDisplay": to_display_units(self.net_flow, decimals),
                "totalTransactions": self.total_transactions,
                "processingTimeMs": round(self.processing_time_ms, 3),
            },
            "events": {
                "deposits": self.deposit_count,
                "withdrawals": self.withdrawal_count,
                "total": self.total_transactions,
            },
            "activity": {
                "hasActivity": self.has_activity,
                "lastActivity": self.last_activity.isoformat() if self.last_activity else None,
            },
            "metadata": {
                "analyzedAt": self.analyzed_at.isoformat(),
                "tokenType": self.token_type,
                "cacheStatus": self.cache_status,
                "batchNumber": self.batch_number,
            },
        }
        if self.account_snapshot is not None:
            out["accountInfo"] = self.account_snapshot.to_dict()
        if self.recent_transactions is not None:
            out["recentTransactions"] = [e.to_dict() for e in self.recent_transactions]
        if self.error is not None:
            out["error"] = self.error.to_dict()
        return out


def _newest_first(events: Iterable[LedgerEvent]) -> list[LedgerEvent]:
    return sorted(events, key=lambda e: (e.timestamp or _EPOCH, e.sequence_number), reverse=True)


def aggregate_events(
    address: str,
    token_type: str,
    deposits: Iterable[LedgerEvent],
    withdrawals: Iterable[LedgerEvent],
    *,
    snapshot: AccountSnapshot | None = None,
    include_recent: bool = False,
    processing_time_ms: float = 0.0,
    cache_status: str = CACHE_STATUS_LIVE,
    batch_number: int | None = None,
) -> WalletAnalysisResult:
    """
    Sum deposit and withdrawal amounts into a WalletAnalysisResult.

    Events are counted by their own kind regardless of which list they came
    in. net_flow may be negative and is never clamped.
    """
    dep: list[LedgerEvent] = []
    wd: list[LedgerEvent] = []
    for event in [*deposits, *withdrawals]:
        (dep if event.kind is EventKind.DEPOSIT else wd).append(event)

    total_deposits = sum(e.amount for e in dep)
    total_withdrawals = sum(e.amount for e in wd)
    stamped = [e.timestamp for e in (*dep, *wd) if e.timestamp is not None]

    recent: tuple[LedgerEvent, ...] | None = None
    if include_recent:
        picked = _newest_first(dep)[:RECENT_PER_KIND] + _newest_first(wd)[:RECENT_PER_KIND]
        recent = tuple(_newest_first(picked))

    return WalletAnalysisResult(
        address=address,
        token_type=token_type,
        total_deposits=total_deposits,
        total_withdrawals=total_withdrawals,
        net_flow=total_deposits - total_withdrawals,
        deposit_count=len(dep),
        withdrawal_count=len(wd),
        has_activity=(len(dep) + len(wd)) > 0,
        last_activity=max(stamped) if stamped else None,
        account_snapshot=snapshot,
        recent_transactions=recent,
        processing_time_ms=processing_time_ms,
        cache_status=cache_status,
        batch_number=batch_number,
    )


def failure_result(
    address: str,
    token_type: str,
    error: BaseException | ErrorDescriptor,
    *,
    processing_time_ms: float = 0.0,
    batch_number: int | None = None,
) -> WalletAnalysisResult:
    """Zeroed result tagged with the error that stopped this wallet's analysis."""
    descriptor = error if isinstance(error, ErrorDescriptor) else ErrorDescriptor.from_exception(error)
    return WalletAnalysisResult(
        address=address,
        token_type=token_type,
        error=descriptor,
        processing_time_ms=processing_time_ms,
        cache_status=CACHE_STATUS_ERROR,
        batch_number=batch_number,
    )
