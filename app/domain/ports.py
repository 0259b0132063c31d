"""
app/domain/ports.py

Capabilities consumed by the enrichment core.

Implementations are shared by every pool worker and must be safe for
concurrent use.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from app.domain.circuit import Circuit, EnrichedResult, NetworkInfo, OpticalInfo, ServiceDetails


class NetworkInfoPort(Protocol):
    """Resolve the OLT host and ONT address serving a circuit."""

    def resolve(self, circuit_id: str) -> NetworkInfo:
        ...


class OpticalInfoPort(Protocol):
    """Resolve link status and receive power for one ONT."""

    def resolve(self, olt_host: str, ont_address: str) -> OpticalInfo:
        ...


class ServiceDetailPort(Protocol):
    """Resolve PPPoE credentials (and VLAN where available) for a circuit."""

    def resolve(self, circuit_id: str) -> ServiceDetails:
        ...


class CircuitStorePort(Protocol):
    def fetch_pending_circuits(self) -> list[Circuit]:
        ...

    def update_batch(self, results: Sequence[EnrichedResult]) -> None:
        ...
