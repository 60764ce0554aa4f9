"""
Report assembly from per-wallet analysis results.

Builds an immutable Report: summary totals (exact minor units plus a display
string), the wallet results in input order, plain-text insights, and
recommendations derived from those insights. Inputs are never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from backend_eagleeye.analytics.event_aggregator import WalletAnalysisResult
from backend_eagleeye.analytics.units import to_display_units, token_decimals, token_symbol
from backend_eagleeye.analytics.wallet_analysis import DateRange
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.ledger_client.models import NATIVE_COIN_TYPE

logger = get_logger(__name__)

LARGE_WALLET_SET = 5
HEAVY_FLOW_FACTOR = 2
HIGH_VOLUME_FACTOR = 2

GENERAL_RECOMMENDATIONS = (
    "Set up alerts for unusual transaction patterns or volume spikes",
    "Regular analysis helps identify emerging trends and risk patterns",
)


@dataclass(frozen=True)
class ReportSummary:
    wallet_count: int
    total_volume: int
    total_volume_display: str
    total_transactions: int
    date_range: DateRange | None
    token_types: tuple[str, ...]
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalWallets": self.wallet_count,
            "totalVolume": str(self.total_volume),
            "totalVolumeDisplay": self.total_volume_display,
            "totalTransactions": self.total_transactions,
            "dateRange": self.date_range.to_dict() if self.date_range else None,
            "tokenTypes": list(self.token_types),
            "analysisDate": self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class Report:
    summary: ReportSummary
    wallets: tuple[WalletAnalysisResult, ...]
    insights: tuple[str, ...]
    recommendations: tuple[str, ...]
    created_by: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "wallets": [w.to_dict() for w in self.wallets],
            "insights": list(self.insights),
            "recommendations": list(self.recommendations),
            "createdBy": self.created_by,
        }


@dataclass(frozen=True)
class _Patterns:
    failed: int
    inactive: int
    deposit_heavy: int
    withdrawal_heavy: int


def _detect_patterns(wallets: Sequence[WalletAnalysisResult]) -> _Patterns:
    ok = [w for w in wallets if w.ok]
    return _Patterns(
        failed=len(wallets) - len(ok),
        inactive=sum(1 for w in ok if not w.has_activity),
        deposit_heavy=sum(1 for w in ok if w.total_deposits > w.total_withdrawals * HEAVY_FLOW_FACTOR),
        withdrawal_heavy=sum(1 for w in ok if w.total_withdrawals > w.total_deposits * HEAVY_FLOW_FACTOR),
    )


def generate_insights(wallets: Sequence[WalletAnalysisResult], total_volume: int, token_type: str) -> list[str]:
    insights: list[str] = []
    if not wallets:
        return insights
    patterns = _detect_patterns(wallets)
    decimals = token_decimals(token_type)
    symbol = token_symbol(token_type)

    if patterns.failed:
        insights.append(f"{patterns.failed} wallet(s) could not be analyzed")

    if patterns.inactive:
        insights.append(f"{patterns.inactive} wallet(s) show no activity in the selected time period")

    if total_volume > 0:
        top = max(wallets, key=lambda w: w.volume)
        insights.append(
            f"Highest volume wallet {top.address[:10]}... moved {to_display_units(top.volume, decimals)} {symbol}"
        )
        # volume > 2 * average, compared as integers: volume * n > 2 * total
        n = len(wallets)
        high = [w for w in wallets if w.volume * n > HIGH_VOLUME_FACTOR * total_volume]
        if high:
            threshold = to_display_units(HIGH_VOLUME_FACTOR * total_volume // n, decimals)
            insights.append(
                f"{len(high)} wallet(s) show significantly higher volume than average ({threshold} {symbol})"
            )

    active = [w for w in wallets if w.ok and w.has_activity]
    if active:
        avg_tx = sum(w.total_transactions for w in active) / len(active)
        insights.append(f"Active wallets average {avg_tx:.1f} transactions per wallet")

    if patterns.deposit_heavy:
        insights.append(
            f"{patterns.deposit_heavy} wallet(s) show deposit-heavy behavior (2x more deposits than withdrawals)"
        )
    if patterns.withdrawal_heavy:
        insights.append(
            f"{patterns.withdrawal_heavy} wallet(s) show withdrawal-heavy behavior (2x more withdrawals than deposits)"
        )
    return insights


def generate_recommendations(wallets: Sequence[WalletAnalysisResult]) -> list[str]:
    recommendations: list[str] = []
    patterns = _detect_patterns(wallets)
    if patterns.inactive:
        recommendations.append("Consider expanding the date range for inactive wallets to capture historical activity")
    if patterns.deposit_heavy:
        recommendations.append(
            "Deposit-heavy wallets may indicate accumulation behavior; monitor for potential large movements"
        )
    if patterns.withdrawal_heavy:
        recommendations.append("Withdrawal-heavy wallets may indicate distribution behavior; consider risk assessment")
    if len(wallets) > LARGE_WALLET_SET:
        recommendations.append("Large wallet sets benefit from batch processing; consider scheduling regular analysis")
    recommendations.extend(GENERAL_RECOMMENDATIONS)
    return recommendations


def assemble_report(
    results: Sequence[WalletAnalysisResult],
    *,
    date_range: DateRange | None = None,
    token_types: Sequence[str] | None = None,
    created_by: str | None = None,
) -> Report:
    """Build a Report; wallet order is the order of results."""
    wallets = tuple(results)
    tokens = tuple(token_types) if token_types else (NATIVE_COIN_TYPE,)
    total_volume = sum(w.volume for w in wallets)
    total_transactions = sum(w.total_transactions for w in wallets)

    summary = ReportSummary(
        wallet_count=len(wallets),
        total_volume=total_volume,
        total_volume_display=to_display_units(total_volume, token_decimals(tokens[0])),
        total_transactions=total_transactions,
        date_range=date_range,
        token_types=tokens,
    )
    report = Report(
        summary=summary,
        wallets=wallets,
        insights=tuple(generate_insights(wallets, total_volume, tokens[0])),
        recommendations=tuple(generate_recommendations(wallets)),
        created_by=created_by,
    )
    logger.info(
        "report_assembled",
        wallets=summary.wallet_count,
        total_volume=str(total_volume),
        total_transactions=total_transactions,
        insights=len(report.insights),
    )
    return report
