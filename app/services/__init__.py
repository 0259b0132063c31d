"""
app/services package marker.
"""

from app.services.batch_writer import BatchWriter
from app.services.circuit_sync_service import (
    CircuitSyncService,
    build_circuit_sync_service,
    get_circuit_sync_service,
)
from app.services.enrichment_pipeline import CircuitEnrichmentPipeline, EnrichmentStep
from app.services.worker_pool import EnrichmentWorkerPool

__all__ = [
    "BatchWriter",
    "CircuitEnrichmentPipeline",
    "CircuitSyncService",
    "EnrichmentStep",
    "EnrichmentWorkerPool",
    "build_circuit_sync_service",
    "get_circuit_sync_service",
]
