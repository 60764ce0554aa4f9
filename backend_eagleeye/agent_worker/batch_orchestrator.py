"""
Batch orchestrator: analyze many wallets with bounded concurrency.

Addresses are split into batches of batch_size processed one after another.
Inside a batch, analyses run concurrently under an asyncio.Semaphore sized by
priority (never above the batch size); the shared client's rate limiter stays
the hard ceiling on request rate. Every per-address failure becomes a tagged
result in the address's original position; nothing aborts sibling work.

Priority:
- high   → 10 concurrent analyses, no pause between batches
- normal → 5 concurrent, inter_batch_delay_sec pause
- low    → 2 concurrent, inter_batch_delay_sec pause
"""

from __future__ import annotations

import asyncio
import math
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from backend_eagleeye.analytics.event_aggregator import WalletAnalysisResult, failure_result
from backend_eagleeye.analytics.wallet_analysis import AnalysisOptions, DateRange, analyze_wallet_safe
from backend_eagleeye.core.exceptions import (
    ErrorDescriptor,
    InvalidAddress,
    InvalidRequest,
    PartialBatchFailure,
)
from backend_eagleeye.eagleeye_logging import get_logger
from backend_eagleeye.ingestion.ledger_fetcher import LedgerFetcher
from backend_eagleeye.ledger_client.client import LedgerClient
from backend_eagleeye.ledger_client.models import NATIVE_COIN_TYPE
from backend_eagleeye.utils.wallet_utils import is_valid_address, validate_address

logger = get_logger(__name__)

PRIORITY_LOW = "low"
PRIORITY_NORMAL = "normal"
PRIORITY_HIGH = "high"

PRIORITY_CONCURRENCY = {
    PRIORITY_LOW: 2,
    PRIORITY_NORMAL: 5,
    PRIORITY_HIGH: 10,
}

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 50
DEFAULT_BATCH_SIZE = 10
DEFAULT_INTER_BATCH_DELAY_SEC = 1.0


@dataclass(frozen=True)
class BatchConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    priority: str = PRIORITY_NORMAL
    include_progress: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise InvalidRequest("batch_size must be an integer")
        if not MIN_BATCH_SIZE <= self.batch_size <= MAX_BATCH_SIZE:
            raise InvalidRequest(f"batch_size must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}")
        if self.priority not in PRIORITY_CONCURRENCY:
            raise InvalidRequest(f"priority must be one of {sorted(PRIORITY_CONCURRENCY)}")

    @property
    def concurrency(self) -> int:
        return min(PRIORITY_CONCURRENCY[self.priority], self.batch_size)


@dataclass
class BatchJob:
    """Mutable bookkeeping for one run_batch call."""

    addresses: list[str]
    config: BatchConfig
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    successes: int = 0
    failures: int = 0
    cache_hits: int = 0
    cache_misses: int = 0

    @property
    def total_batches(self) -> int:
        return math.ceil(len(self.addresses) / self.config.batch_size)


@dataclass(frozen=True)
class BatchProgress:
    batch_number: int
    total_batches: int
    addresses_processed: int
    total_addresses: int
    progress_percentage: float
    batch_processing_time_ms: float
    estimated_time_remaining_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "batchNumber": self.batch_number,
            "totalBatches": self.total_batches,
            "addressesProcessed": self.addresses_processed,
            "totalAddresses": self.total_addresses,
            "progressPercentage": round(self.progress_percentage, 2),
            "batchProcessingTimeMs": round(self.batch_processing_time_ms, 3),
            "estimatedTimeRemainingMs": round(self.estimated_time_remaining_ms, 3),
        }


@dataclass(frozen=True)
class BatchSummary:
    total_addresses: int
    successful: int
    failed: int
    success_rate: float
    total_processing_time_ms: float
    average_processing_time_ms: float
    addresses_per_second: float
    average_batch_time_ms: float
    batch_size: int
    total_batches: int
    priority: str
    cache_hits: int
    cache_misses: int
    cache_hit_ratio: float
    partial_failure: ErrorDescriptor | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalAddresses": self.total_addresses,
            "successfulAnalyses": self.successful,
            "failedAnalyses": self.failed,
            "successRate": round(self.success_rate, 2),
            "totalProcessingTimeMs": round(self.total_processing_time_ms, 3),
            "averageProcessingTimeMs": round(self.average_processing_time_ms, 3),
            "batchSize": self.batch_size,
            "totalBatches": self.total_batches,
            "performance": {
                "addressesPerSecond": round(self.addresses_per_second, 3),
                "averageBatchTimeMs": round(self.average_batch_time_ms, 3),
                "priority": self.priority,
                "cacheHits": self.cache_hits,
                "cacheMisses": self.cache_misses,
                "cacheHitRatio": round(self.cache_hit_ratio, 4),
            },
            "partialFailure": self.partial_failure.to_dict() if self.partial_failure else None,
        }


@dataclass(frozen=True)
class BatchJobResult:
    job_id: str
    results: tuple[WalletAnalysisResult, ...]
    progress: tuple[BatchProgress, ...]
    summary: BatchSummary

    @property
    def successes(self) -> tuple[WalletAnalysisResult, ...]:
        return tuple(r for r in self.results if r.ok)

    @property
    def failures(self) -> tuple[WalletAnalysisResult, ...]:
        return tuple(r for r in self.results if not r.ok)

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "results": [r.to_dict() for r in self.successes],
            "errors": [r.to_dict() for r in self.failures],
            "progress": [p.to_dict() for p in self.progress],
            "summary": self.summary.to_dict(),
        }


class BatchOrchestrator:
    """Runs batch jobs against one shared LedgerClient."""

    def __init__(
        self,
        client: LedgerClient,
        fetcher: LedgerFetcher | None = None,
        inter_batch_delay_sec: float = DEFAULT_INTER_BATCH_DELAY_SEC,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._fetcher = fetcher or LedgerFetcher(client)
        self._inter_batch_delay = max(0.0, inter_batch_delay_sec)
        self._sleep = sleep

    async def run_batch(
        self,
        addresses: Sequence[str],
        token_types: Sequence[str] | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        priority: str = PRIORITY_NORMAL,
        include_progress: bool = True,
        *,
        date_range: DateRange | None = None,
        options: AnalysisOptions | None = None,
    ) -> BatchJobResult:
        """
        Analyze every address and return results in input order.

        Raises InvalidRequest before any network call when the address list is
        empty, holds no valid address, or batch_size / priority are invalid.
        """
        if not addresses:
            raise InvalidRequest("addresses must be a non-empty list")
        config = BatchConfig(batch_size=batch_size, priority=priority, include_progress=include_progress)
        if not any(is_valid_address(a) for a in addresses):
            raise InvalidRequest("no valid addresses supplied")

        token_type = token_types[0] if token_types else NATIVE_COIN_TYPE
        job = BatchJob(addresses=list(addresses), config=config)
        results: list[WalletAnalysisResult | None] = [None] * len(job.addresses)
        progress: list[BatchProgress] = []
        hits_before = self._client.cache_hits
        misses_before = self._client.cache_misses
        semaphore = asyncio.Semaphore(config.concurrency)
        started = time.perf_counter()

        logger.info(
            "batch_job_started",
            job_id=job.job_id,
            total_addresses=len(job.addresses),
            batch_size=config.batch_size,
            total_batches=job.total_batches,
            priority=config.priority,
            concurrency=config.concurrency,
        )

        async def run_one(index: int, address: str, batch_number: int) -> None:
            if not is_valid_address(address):
                try:
                    validate_address(address)
                except InvalidAddress as e:
                    results[index] = failure_result(str(address), token_type, e, batch_number=batch_number)
                return
            async with semaphore:
                results[index] = await analyze_wallet_safe(
                    self._client,
                    address,
                    token_type,
                    fetcher=self._fetcher,
                    date_range=date_range,
                    options=options,
                    batch_number=batch_number,
                )

        for batch_index in range(job.total_batches):
            batch_number = batch_index + 1
            lo = batch_index * config.batch_size
            hi = min(lo + config.batch_size, len(job.addresses))
            batch_started = time.perf_counter()

            await asyncio.gather(*(run_one(i, job.addresses[i], batch_number) for i in range(lo, hi)))

            for r in results[lo:hi]:
                if r is not None and r.ok:
                    job.successes += 1
                else:
                    job.failures += 1
            batch_ms = (time.perf_counter() - batch_started) * 1000
            if config.include_progress:
                record = BatchProgress(
                    batch_number=batch_number,
                    total_batches=job.total_batches,
                    addresses_processed=hi,
                    total_addresses=len(job.addresses),
                    progress_percentage=min(hi / len(job.addresses) * 100, 100.0),
                    batch_processing_time_ms=batch_ms,
                    estimated_time_remaining_ms=batch_ms * (job.total_batches - batch_number),
                )
                progress.append(record)
                logger.info("batch_progress", job_id=job.job_id, **record.to_dict())

            if config.priority != PRIORITY_HIGH and batch_number < job.total_batches and self._inter_batch_delay:
                await self._sleep(self._inter_batch_delay)

        job.cache_hits = self._client.cache_hits - hits_before
        job.cache_misses = self._client.cache_misses - misses_before
        summary = _summarize(job, results, (time.perf_counter() - started) * 1000)

        logger.info(
            "batch_job_finished",
            job_id=job.job_id,
            successful=summary.successful,
            failed=summary.failed,
            success_rate=round(summary.success_rate, 2),
            cache_hit_ratio=round(summary.cache_hit_ratio, 4),
            total_ms=round(summary.total_processing_time_ms, 3),
        )
        return BatchJobResult(
            job_id=job.job_id,
            results=tuple(r for r in results if r is not None),
            progress=tuple(progress),
            summary=summary,
        )


def _summarize(job: BatchJob, results: list[WalletAnalysisResult | None], total_ms: float) -> BatchSummary:
    total = len(job.addresses)
    lookups = job.cache_hits + job.cache_misses
    partial = None
    if 0 < job.failures < total:
        partial = ErrorDescriptor.from_exception(PartialBatchFailure(job.failures, total))
    successful_time = sum(r.processing_time_ms for r in results if r is not None and r.ok)
    return BatchSummary(
        total_addresses=total,
        successful=job.successes,
        failed=job.failures,
        success_rate=job.successes / total * 100,
        total_processing_time_ms=total_ms,
        average_processing_time_ms=successful_time / job.successes if job.successes else 0.0,
        addresses_per_second=total / (total_ms / 1000) if total_ms > 0 else 0.0,
        average_batch_time_ms=total_ms / job.total_batches,
        batch_size=job.config.batch_size,
        total_batches=job.total_batches,
        priority=job.config.priority,
        cache_hits=job.cache_hits,
        cache_misses=job.cache_misses,
        cache_hit_ratio=job.cache_hits / lookups if lookups else 0.0,
        partial_failure=partial,
    )
