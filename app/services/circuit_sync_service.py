"""
app/services/circuit_sync_service.py

One circuit synchronization run: fetch circuits, enrich them on the worker
pool and write the results back in batches.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from functools import lru_cache
from typing import Protocol

from app.config import (
    get_external_http_settings,
    get_notion_settings,
    get_sync_settings,
    get_ubersmith_settings,
    get_zabbix_settings,
)
from app.connectors import NotionConnector, UbersmithConnector, ZabbixConnector
from app.domain.circuit import EnrichedResult
from app.domain.errors import SourceLookupError, StoreError
from app.domain.ports import CircuitStorePort
from app.domain.sync_run import SyncRunStatus, SyncRunSummary
from app.logging_utils import log_event
from app.repositories.circuit_repository import CircuitRepository
from app.services.batch_writer import BatchWriter
from app.services.enrichment_pipeline import CircuitEnrichmentPipeline
from app.services.worker_pool import EnrichmentWorkerPool
from db.session import SessionLocal

logger = logging.getLogger(__name__)


class SessionAuthenticator(Protocol):
    def authenticate(self) -> object:
        ...


class CircuitSyncService:
    """
    Coordinates one run across the store, the worker pool and the batch writer.

    Lookup failures stay inside each circuit's result and batch write
    failures are logged; only a failed session refresh or circuit fetch
    fails the run.
    """

    def __init__(
        self,
        *,
        store: CircuitStorePort,
        pool: EnrichmentWorkerPool,
        writer: BatchWriter,
        authenticators: dict[str, SessionAuthenticator] | None = None,
    ) -> None:
        self._store = store
        self._pool = pool
        self._writer = writer
        self._authenticators = authenticators or {}

    def run_once(self) -> SyncRunSummary:
        started = time.monotonic()
        logger.info("Circuit sync starting workers=%s", self._pool.worker_count)

        for source, authenticator in self._authenticators.items():
            try:
                authenticator.authenticate()
            except SourceLookupError as exc:
                logger.error("Authentication failed source=%s: %s", source, exc)
                return self._finish(
                    SyncRunSummary(status=SyncRunStatus.FAILED, error_message=str(exc)),
                    started,
                )
            logger.info("Authenticated source=%s", source)

        try:
            circuits = self._store.fetch_pending_circuits()
        except StoreError as exc:
            logger.error("Failed to fetch circuits: %s", exc)
            return self._finish(
                SyncRunSummary(status=SyncRunStatus.FAILED, error_message=str(exc)),
                started,
            )

        if not circuits:
            logger.warning("No pending circuits to process")
            return self._finish(SyncRunSummary(status=SyncRunStatus.SKIPPED), started)

        logger.info("Processing %s circuits", len(circuits))
        written = self._writer.consume(self._pool.run(circuits), on_result=_log_result)

        return self._finish(
            SyncRunSummary(
                status=SyncRunStatus.COMPLETED,
                circuits_total=written.results_consumed,
                circuits_succeeded=written.results_succeeded,
                circuits_failed=written.results_failed,
                batches_flushed=written.batches_flushed,
                batches_failed=written.batches_failed,
            ),
            started,
        )

    @staticmethod
    def _finish(summary: SyncRunSummary, started: float) -> SyncRunSummary:
        duration = round(time.monotonic() - started, 3)
        finished = replace(summary, duration_seconds=duration)
        log_event(
            logger,
            logging.ERROR if finished.status == SyncRunStatus.FAILED else logging.INFO,
            "circuit_sync_summary",
            status=finished.status,
            total=finished.circuits_total,
            succeeded=finished.circuits_succeeded,
            with_errors=finished.circuits_failed,
            batches_flushed=finished.batches_flushed,
            batches_failed=finished.batches_failed,
            duration_seconds=finished.duration_seconds,
            error=finished.error_message,
        )
        return finished


def _log_result(position: int, result: EnrichedResult) -> None:
    if result.error is not None:
        logger.error("[ERROR] #%s cid=%s: %s", position, result.circuit_id, result.error)
    else:
        logger.info("[OK] #%s cid=%s", position, result.circuit_id)
    logger.debug(
        "[DETAIL] cid=%s pppoe_user=%s status_gpon=%s rx_power=%s vlan=%s",
        result.circuit_id,
        result.pppoe_username,
        result.status_gpon,
        result.rx_power,
        result.vlan,
    )


def build_circuit_sync_service(
    *,
    dry_run: bool | None = None,
    worker_count: int | None = None,
) -> CircuitSyncService:
    """
    Wire connectors, pool, writer and repository from environment settings.
    """

    sync_settings = get_sync_settings()
    http_settings = get_external_http_settings()

    notion = NotionConnector(settings=get_notion_settings(), http_settings=http_settings)
    zabbix = ZabbixConnector(settings=get_zabbix_settings(), http_settings=http_settings)
    ubersmith = UbersmithConnector(settings=get_ubersmith_settings(), http_settings=http_settings)

    pipeline = CircuitEnrichmentPipeline(
        network_info=notion,
        service_detail=ubersmith,
        optical_info=zabbix,
        use_stored_routing=sync_settings.use_stored_routing,
    )
    store = CircuitRepository(SessionLocal)
    return CircuitSyncService(
        store=store,
        pool=EnrichmentWorkerPool(
            enricher=pipeline,
            worker_count=worker_count if worker_count is not None else sync_settings.worker_count,
        ),
        writer=BatchWriter(
            store=store,
            batch_size=sync_settings.batch_size,
            dry_run=sync_settings.dry_run if dry_run is None else dry_run,
        ),
        authenticators={zabbix.source: zabbix},
    )


@lru_cache(maxsize=1)
def get_circuit_sync_service() -> CircuitSyncService:
    """
    Build and cache the circuit sync service.
    """

    return build_circuit_sync_service()
