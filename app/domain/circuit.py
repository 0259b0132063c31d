"""
app/domain/circuit.py

Domain models for one circuit enrichment run.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.domain.errors import SourceLookupError


@dataclass(frozen=True)
class Circuit:
    """
    A circuit pending enrichment, as read from the circuit store.

    Routing hints are optional; when absent the OLT host and ONT address
    are resolved through the network-info lookup.
    """

    circuit_id: str
    olt_host: str | None = None
    ont_address: str | None = None

    @property
    def has_routing_hints(self) -> bool:
        return bool(self.olt_host and self.ont_address)


@dataclass(frozen=True)
class NetworkInfo:
    olt_host: str
    ont_address: str


@dataclass(frozen=True)
class OpticalInfo:
    status: str | None
    rx_power: str | None


@dataclass(frozen=True)
class ServiceDetails:
    username: str | None
    password: str | None
    vlan: str | None = None


@dataclass(frozen=True)
class EnrichedResult:
    """
    Consolidated enrichment outcome for one circuit.

    A result with an error may still carry the fields of the lookups
    that succeeded.
    """

    circuit_id: str
    vlan: str | None = None
    pppoe_username: str | None = None
    pppoe_password: str | None = None
    status_gpon: str | None = None
    rx_power: str | None = None
    error: SourceLookupError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error is not None else None
