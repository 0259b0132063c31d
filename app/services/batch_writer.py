"""
app/services/batch_writer.py

Consumes the enrichment result stream and flushes fixed-size batches to the
circuit store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from app.domain.circuit import EnrichedResult
from app.domain.errors import StoreError
from app.domain.ports import CircuitStorePort
from app.domain.sync_run import BatchWriteSummary
from app.logging_utils import mask_secret

logger = logging.getLogger(__name__)

ResultCallback = Callable[[int, EnrichedResult], None]


class BatchWriter:
    """
    Accumulates results in arrival order and writes them in batches.

    A failed batch is logged at CRITICAL and dropped; consumption of the
    stream continues. In dry-run mode batches are logged instead of written.
    """

    def __init__(
        self,
        *,
        store: CircuitStorePort,
        batch_size: int = 100,
        dry_run: bool = False,
    ) -> None:
        self._store = store
        self._batch_size = max(1, batch_size)
        self._dry_run = dry_run

    def consume(
        self,
        results: Iterable[EnrichedResult],
        *,
        on_result: ResultCallback | None = None,
    ) -> BatchWriteSummary:
        """
        Drain `results`, flushing every `batch_size` items and once at the end.

        `on_result` receives the 1-based arrival position and each result
        before it is batched.
        """

        batch: list[EnrichedResult] = []
        consumed = 0
        succeeded = 0
        flushed = 0
        failed_batches = 0

        for result in results:
            consumed += 1
            if result.succeeded:
                succeeded += 1
            if on_result is not None:
                on_result(consumed, result)

            batch.append(result)
            if len(batch) >= self._batch_size:
                flushed += 1
                if not self._flush(batch, final=False):
                    failed_batches += 1
                batch = []

        if batch:
            flushed += 1
            if not self._flush(batch, final=True):
                failed_batches += 1

        return BatchWriteSummary(
            results_consumed=consumed,
            results_succeeded=succeeded,
            results_failed=consumed - succeeded,
            batches_flushed=flushed,
            batches_failed=failed_batches,
            dry_run=self._dry_run,
        )

    def _flush(self, batch: Sequence[EnrichedResult], *, final: bool) -> bool:
        label = "final batch" if final else "batch"

        if self._dry_run:
            logger.info("[DRY-RUN] Would update %s of %s items (not saved)", label, len(batch))
            for item in batch:
                logger.info(
                    "[DRY-RUN]   cid=%s rx_power=%s status_gpon=%s pppoe_user=%s pppoe_pass=%s",
                    item.circuit_id,
                    item.rx_power,
                    item.status_gpon,
                    item.pppoe_username,
                    mask_secret(item.pppoe_password),
                )
            return True

        try:
            self._store.update_batch(batch)
        except StoreError as exc:
            logger.critical("Failed to save %s of %s items: %s", label, len(batch), exc)
            return False
        except Exception:
            logger.critical("Unhandled failure saving %s of %s items", label, len(batch), exc_info=True)
            return False

        logger.info("Saved %s to circuit store (%s items)", label, len(batch))
        return True
