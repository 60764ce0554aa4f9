# Ledger ingestion: windowed transaction fetch, transfer classification, event extraction.

from backend_eagleeye.ingestion.ledger_fetcher import (
    LOOKAHEAD_LIMIT,
    PAGE_SIZE,
    ClassifiedTransfers,
    LedgerFetcher,
    TransferRecord,
    WindowFetch,
    classify_transfers,
    extract_ledger_events,
)

__all__ = [
    "ClassifiedTransfers",
    "LOOKAHEAD_LIMIT",
    "LedgerFetcher",
    "PAGE_SIZE",
    "TransferRecord",
    "WindowFetch",
    "classify_transfers",
    "extract_ledger_events",
]
