"""
app/domain package marker.
"""

from app.domain.circuit import Circuit, EnrichedResult, NetworkInfo, OpticalInfo, ServiceDetails
from app.domain.errors import (
    CompositeLookupError,
    SourceLookupError,
    StoreError,
    combine_lookup_errors,
)
from app.domain.sync_run import BatchWriteSummary, SyncRunStatus, SyncRunSummary

__all__ = [
    "BatchWriteSummary",
    "Circuit",
    "CompositeLookupError",
    "EnrichedResult",
    "NetworkInfo",
    "OpticalInfo",
    "ServiceDetails",
    "SourceLookupError",
    "StoreError",
    "SyncRunStatus",
    "SyncRunSummary",
    "combine_lookup_errors",
]
