"""
Agent worker package: batched, bounded-concurrency wallet analysis.

Splits address lists into batches, runs analyses concurrently per priority,
isolates per-address failures and reports progress and summary statistics.
"""

from backend_eagleeye.agent_worker.batch_orchestrator import (
    BatchConfig,
    BatchJobResult,
    BatchOrchestrator,
    BatchProgress,
)

__all__ = ["BatchConfig", "BatchJobResult", "BatchOrchestrator", "BatchProgress"]
