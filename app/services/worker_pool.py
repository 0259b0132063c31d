"""
app/services/worker_pool.py

Bounded thread pool that fans circuits out to the enrichment pipeline and
fans results back in as a stream.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator, Sequence
from typing import Protocol

from app.domain.circuit import Circuit, EnrichedResult
from app.domain.errors import SourceLookupError

logger = logging.getLogger(__name__)


class CircuitEnricher(Protocol):
    def enrich(self, circuit: Circuit) -> EnrichedResult:
        ...


class _WorkerDone:
    """End-of-work marker; each worker posts exactly one."""

    __slots__ = ()


_WORKER_DONE = _WorkerDone()


class EnrichmentWorkerPool:
    """
    Run the enrichment pipeline for every circuit on a fixed number of threads.

    All circuits are queued up front. Each worker dequeues one circuit at a
    time and takes the next as soon as it finishes, so slow circuits do not
    hold up a static partition. Results are yielded in completion order.
    """

    def __init__(self, *, enricher: CircuitEnricher, worker_count: int) -> None:
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}.")
        self._enricher = enricher
        self._worker_count = worker_count

    @property
    def worker_count(self) -> int:
        return self._worker_count

    def run(self, circuits: Sequence[Circuit]) -> Iterator[EnrichedResult]:
        """
        Start the workers and return the result stream.

        The stream yields exactly one result per input circuit and ends only
        after every worker has exited.
        """

        if not circuits:
            return iter(())

        jobs: queue.Queue[Circuit] = queue.Queue()
        for circuit in circuits:
            jobs.put(circuit)

        results: queue.Queue[EnrichedResult | _WorkerDone] = queue.Queue()
        threads = [
            threading.Thread(
                target=self._work,
                args=(jobs, results),
                name=f"enrichment-worker-{index}",
                daemon=True,
            )
            for index in range(self._worker_count)
        ]
        for thread in threads:
            thread.start()

        logger.debug(
            "Enrichment pool started workers=%s circuits=%s",
            self._worker_count,
            len(circuits),
        )
        return self._drain(results, threads)

    def _work(
        self,
        jobs: queue.Queue[Circuit],
        results: queue.Queue[EnrichedResult | _WorkerDone],
    ) -> None:
        try:
            while True:
                try:
                    circuit = jobs.get_nowait()
                except queue.Empty:
                    return
                results.put(self._enrich_one(circuit))
        finally:
            results.put(_WORKER_DONE)

    def _enrich_one(self, circuit: Circuit) -> EnrichedResult:
        try:
            return self._enricher.enrich(circuit)
        except Exception as exc:
            # The pipeline contains lookup failures itself; this covers defects
            # so one circuit cannot take its worker down.
            logger.exception("Enrichment crashed cid=%s", circuit.circuit_id)
            error = SourceLookupError(f"enrichment crashed: {exc}", source="pipeline")
            error.__cause__ = exc
            return EnrichedResult(circuit_id=circuit.circuit_id, error=error)

    @staticmethod
    def _drain(
        results: queue.Queue[EnrichedResult | _WorkerDone],
        threads: list[threading.Thread],
    ) -> Iterator[EnrichedResult]:
        remaining_workers = len(threads)
        while remaining_workers:
            item = results.get()
            if isinstance(item, _WorkerDone):
                remaining_workers -= 1
                continue
            yield item

        for thread in threads:
            thread.join()
