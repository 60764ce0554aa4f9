"""
FastAPI server: wallet analysis, batch jobs, transfer export and reports.

Routes delegate to analytics_pipeline; the ledger client and report store
are FastAPI dependencies so tests can override them. Identity comes from the
X-User-Id header (authentication itself lives upstream). Domain errors map
to HTTP status: request / address / configuration errors 400, remote
rejections 502, remote unavailability 503.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Any, AsyncIterator, Literal

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from backend_eagleeye import __version__
from backend_eagleeye.agent_worker.batch_orchestrator import MAX_BATCH_SIZE
from backend_eagleeye.analytics.analytics_pipeline import (
    analyze,
    analyze_batch,
    fetch_transfers,
    fetch_wallet_events,
)
from backend_eagleeye.analytics.wallet_analysis import AnalysisOptions, DateRange
from backend_eagleeye.config.settings import get_settings
from backend_eagleeye.core.exceptions import (
    EagleEyeError,
    InvalidAddress,
    InvalidConfiguration,
    InvalidRequest,
    RemoteRejected,
    RemoteUnavailable,
)
from backend_eagleeye.database.report_store import ReportStore, SqlReportStore
from backend_eagleeye.eagleeye_logging import get_logger, short_id
from backend_eagleeye.ledger_client.client import LedgerClient
from backend_eagleeye.ledger_client.models import NATIVE_COIN_TYPE
from backend_eagleeye.utils.wallet_utils import split_valid_addresses

logger = get_logger(__name__)

ERROR_STATUS: dict[type[EagleEyeError], int] = {
    InvalidRequest: 400,
    InvalidAddress: 400,
    InvalidConfiguration: 400,
    RemoteRejected: 502,
    RemoteUnavailable: 503,
}


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------


async def get_ledger_client() -> AsyncIterator[LedgerClient]:
    """One LedgerClient per request, released when the response is done."""
    async with LedgerClient(get_settings().client_config()) as client:
        yield client


@lru_cache(maxsize=1)
def get_report_store() -> ReportStore:
    store = SqlReportStore(get_settings().database_url)
    store.init_db()
    return store


def get_current_user(x_user_id: str | None = Header(None)) -> str:
    """Caller identity from X-User-Id; 401 when absent."""
    user = (x_user_id or "").strip()
    if not user:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


# -----------------------------------------------------------------------------
# Request models
# -----------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WalletAnalyzeRequest(_CamelModel):
    """POST /wallet/analyze body."""

    addresses: list[str] = Field(..., description="Wallet addresses (0x + 64 hex)")
    token_types: list[str] | None = Field(None, alias="tokenTypes")
    start_date: datetime | None = Field(None, alias="startDate")
    end_date: datetime | None = Field(None, alias="endDate")
    include_account_info: bool = Field(False, alias="includeAccountInfo")
    include_transaction_history: bool = Field(False, alias="includeTransactionHistory")


class WalletBatchRequest(_CamelModel):
    """POST /wallet/batch body."""

    addresses: list[str] = Field(..., description="Wallet addresses (0x + 64 hex)")
    token_types: list[str] | None = Field(None, alias="tokenTypes")
    batch_size: int = Field(10, ge=1, le=50, alias="batchSize")
    include_progress: bool = Field(True, alias="includeProgress")
    priority: Literal["low", "normal", "high"] = "normal"
    start_date: datetime | None = Field(None, alias="startDate")
    end_date: datetime | None = Field(None, alias="endDate")


class WalletEventsRequest(_CamelModel):
    """POST /wallet/events body."""

    addresses: list[str] = Field(..., max_length=MAX_BATCH_SIZE)
    token_types: list[str] | None = Field(None, alias="tokenTypes")


class FetchTransactionsRequest(_CamelModel):
    """POST /fetch-transactions body."""

    wallet_address: str = Field(..., alias="walletAddress")
    start_date: datetime = Field(..., alias="startDate")
    end_date: datetime = Field(..., alias="endDate")


class GenerateReportRequest(_CamelModel):
    """POST /reports/generate body."""

    wallet_addresses: list[str] = Field(..., alias="walletAddresses")
    token_types: list[str] | None = Field(None, alias="tokenTypes")
    start_date: datetime | None = Field(None, alias="startDate")
    end_date: datetime | None = Field(None, alias="endDate")


def _date_range(start: datetime | None, end: datetime | None) -> DateRange | None:
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise InvalidRequest("startDate and endDate must be given together")
    return DateRange(start=start, end=end)


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("api_started", ledger_base_url=settings.ledger_base_url, version=__version__)
    yield
    logger.info("api_stopped")


app = FastAPI(
    title="Eagle Eye API",
    description="Wallet transaction aggregation and analysis reports over the ledger REST API.",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(EagleEyeError)
def eagleeye_error_handler(request: Any, exc: EagleEyeError) -> JSONResponse:
    """Map domain errors to HTTP status with a stable error code."""
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    logger.warning("api_request_failed", error_code=exc.code, status_code=status, error=exc.message)
    return JSONResponse(
        status_code=status,
        content={"success": False, "error": exc.message, "code": exc.code},
    )


@app.exception_handler(HTTPException)
def http_exception_handler(request: Any, exc: HTTPException) -> JSONResponse:
    """Consistent JSON error response for HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
    )


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness check: API is up."""
    return {"status": "ok"}


@app.post("/wallet/analyze")
async def wallet_analyze(
    body: WalletAnalyzeRequest,
    client: LedgerClient = Depends(get_ledger_client),
) -> dict[str, Any]:
    """Analyze wallets over a date range (default last 30 days) and return the assembled report."""
    window = _date_range(body.start_date, body.end_date)
    options = AnalysisOptions(
        include_account_info=body.include_account_info,
        include_transaction_history=body.include_transaction_history,
    )
    report = await analyze(body.addresses, body.token_types, window, options, client=client)
    failed = sum(1 for w in report.wallets if not w.ok)
    return {
        "success": True,
        "data": report.to_dict(),
        "metadata": {
            "totalAddresses": len(body.addresses),
            "successfulAnalyses": len(report.wallets) - failed,
            "failedAnalyses": failed,
            "tokenTypes": body.token_types or [NATIVE_COIN_TYPE],
            "cache": client.cache_stats(),
        },
    }


@app.post("/wallet/batch")
async def wallet_batch(
    body: WalletBatchRequest,
    client: LedgerClient = Depends(get_ledger_client),
) -> dict[str, Any]:
    """Batched analysis with priority-based concurrency, progress records and summary."""
    result = await analyze_batch(
        body.addresses,
        body.token_types,
        batch_size=body.batch_size,
        priority=body.priority,
        include_progress=body.include_progress,
        client=client,
        date_range=_date_range(body.start_date, body.end_date),
    )
    return {
        "success": True,
        "data": result.to_dict(),
        "metadata": {"priority": body.priority, "includeProgress": body.include_progress},
    }


@app.post("/wallet/events")
async def wallet_events(
    body: WalletEventsRequest,
    client: LedgerClient = Depends(get_ledger_client),
) -> dict[str, Any]:
    """Deposit / withdrawal event lists with totals and account info per address."""
    rows = await fetch_wallet_events(body.addresses, body.token_types, client=client)
    return {
        "success": True,
        "data": [r.to_dict() for r in rows],
        "metadata": {
            "addresses": len(body.addresses),
            "tokenTypes": body.token_types or [NATIVE_COIN_TYPE],
        },
    }


@app.post("/fetch-transactions")
async def fetch_transactions(
    body: FetchTransactionsRequest,
    client: LedgerClient = Depends(get_ledger_client),
) -> dict[str, Any]:
    """Inbound / outbound transfers of one wallet within [startDate, endDate]."""
    logger.info("fetch_transactions_called", wallet_id=short_id(body.wallet_address))
    transfers = await fetch_transfers(body.wallet_address, body.start_date, body.end_date, client=client)
    return transfers.to_dict()


@app.post("/reports/generate")
async def generate_report(
    body: GenerateReportRequest,
    user: str = Depends(get_current_user),
    client: LedgerClient = Depends(get_ledger_client),
    store: ReportStore = Depends(get_report_store),
) -> dict[str, Any]:
    """Analyze the valid addresses, persist the report for the caller and return it."""
    valid, invalid = split_valid_addresses(body.wallet_addresses)
    if not valid:
        raise InvalidRequest("No valid addresses provided")
    window = _date_range(body.start_date, body.end_date)
    report = await analyze(valid, body.token_types, window, client=client, created_by=user)
    parameters = {
        "walletAddresses": valid,
        "tokenTypes": body.token_types or [NATIVE_COIN_TYPE],
        "dateRange": report.summary.date_range.to_dict() if report.summary.date_range else None,
    }
    report_id = store.save(report, parameters)
    return {
        "success": True,
        "reportId": report_id,
        "reportData": report.to_dict(),
        "skippedAddresses": invalid,
        "message": f"Report generated successfully for {len(valid)} wallet(s)",
    }


@app.get("/reports")
def list_reports(
    limit: int = Query(50, ge=1, le=200),
    user: str = Depends(get_current_user),
    store: ReportStore = Depends(get_report_store),
) -> dict[str, Any]:
    """Reports owned by the caller, newest first."""
    reports = store.list_for_owner(user, limit=limit)
    return {"success": True, "reports": reports, "count": len(reports)}


@app.get("/reports/{report_id}")
def get_report(
    report_id: str,
    user: str = Depends(get_current_user),
    store: ReportStore = Depends(get_report_store),
) -> dict[str, Any]:
    """Return a stored report; only its owner may read it."""
    stored = store.get(report_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Report not found")
    if stored.get("createdBy") != user:
        raise HTTPException(status_code=403, detail="Access denied")
    return {"success": True, "report": stored}
