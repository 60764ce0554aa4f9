"""
Eagle Eye analytics: per-wallet aggregation and unit conversion.

Modules: units, event_aggregator, wallet_analysis, analytics_pipeline.
analytics_pipeline is imported by path (it depends on agent_worker).
"""

from backend_eagleeye.analytics.event_aggregator import (
    WalletAnalysisResult,
    aggregate_events,
    failure_result,
)
from backend_eagleeye.analytics.units import from_display_units, to_display_units, token_decimals, token_symbol
from backend_eagleeye.analytics.wallet_analysis import AnalysisOptions, DateRange, analyze_wallet

__all__ = [
    "AnalysisOptions",
    "DateRange",
    "WalletAnalysisResult",
    "aggregate_events",
    "analyze_wallet",
    "failure_result",
    "from_display_units",
    "to_display_units",
    "token_decimals",
    "token_symbol",
]
