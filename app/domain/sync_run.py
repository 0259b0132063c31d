"""
app/domain/sync_run.py

Summaries reported by the batch writer and the run controller.
"""

from __future__ import annotations

from dataclasses import dataclass


class SyncRunStatus:
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchWriteSummary:
    """
    Outcome of consuming one result stream.
    """

    results_consumed: int
    results_succeeded: int
    results_failed: int
    batches_flushed: int
    batches_failed: int
    dry_run: bool = False


@dataclass(frozen=True)
class SyncRunSummary:
    """
    End-of-run statistics for one synchronization run.

    Circuit counts are independent of batch write outcomes.
    """

    status: str
    circuits_total: int = 0
    circuits_succeeded: int = 0
    circuits_failed: int = 0
    batches_flushed: int = 0
    batches_failed: int = 0
    duration_seconds: float = 0.0
    error_message: str | None = None
