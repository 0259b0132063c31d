"""
app/services/enrichment_pipeline.py

Per-circuit enrichment workflow.

Each circuit runs three lookups in a fixed order:

  1. network-info  : OLT host + ONT address (Notion), or stored routing hints
  2. service-detail: PPPoE credentials and VLAN (Ubersmith), independent of 1
  3. optical-info  : GPON status + rx power (Zabbix), needs the output of 1

A failing step never aborts an independent one. Every failure is tagged
with its step and accumulated on the circuit's result; the workflow always
returns exactly one result and never raises lookup failures.
"""

from __future__ import annotations

import logging

from app.domain.circuit import Circuit, EnrichedResult, NetworkInfo, OpticalInfo, ServiceDetails
from app.domain.errors import SourceLookupError, combine_lookup_errors
from app.domain.ports import NetworkInfoPort, OpticalInfoPort, ServiceDetailPort

logger = logging.getLogger(__name__)


class EnrichmentStep:
    NETWORK_INFO = "network-info"
    SERVICE_DETAIL = "service-detail"
    OPTICAL_INFO = "optical-info"


class CircuitEnrichmentPipeline:
    """
    Orchestrates the three enrichment lookups for one circuit at a time.

    The pipeline holds no per-circuit state and can be shared by all workers.
    """

    def __init__(
        self,
        *,
        network_info: NetworkInfoPort,
        service_detail: ServiceDetailPort,
        optical_info: OpticalInfoPort,
        use_stored_routing: bool = False,
    ) -> None:
        self._network_info = network_info
        self._service_detail = service_detail
        self._optical_info = optical_info
        self._use_stored_routing = use_stored_routing

    def enrich(self, circuit: Circuit) -> EnrichedResult:
        errors: list[SourceLookupError] = []

        network = self._resolve_network(circuit, errors)
        details = self._resolve_service_details(circuit, errors)

        optical: OpticalInfo | None = None
        if network is not None:
            optical = self._resolve_optical(circuit, network, errors)

        return EnrichedResult(
            circuit_id=circuit.circuit_id,
            vlan=details.vlan if details else None,
            pppoe_username=details.username if details else None,
            pppoe_password=details.password if details else None,
            status_gpon=optical.status if optical else None,
            rx_power=optical.rx_power if optical else None,
            error=combine_lookup_errors(errors),
        )

    def _resolve_network(
        self,
        circuit: Circuit,
        errors: list[SourceLookupError],
    ) -> NetworkInfo | None:
        if self._use_stored_routing and circuit.has_routing_hints:
            return NetworkInfo(olt_host=circuit.olt_host or "", ont_address=circuit.ont_address or "")

        try:
            return self._network_info.resolve(circuit.circuit_id)
        except Exception as exc:
            errors.append(self._record_failure(circuit, EnrichmentStep.NETWORK_INFO, exc))
            return None

    def _resolve_service_details(
        self,
        circuit: Circuit,
        errors: list[SourceLookupError],
    ) -> ServiceDetails | None:
        try:
            return self._service_detail.resolve(circuit.circuit_id)
        except Exception as exc:
            errors.append(self._record_failure(circuit, EnrichmentStep.SERVICE_DETAIL, exc))
            return None

    def _resolve_optical(
        self,
        circuit: Circuit,
        network: NetworkInfo,
        errors: list[SourceLookupError],
    ) -> OpticalInfo | None:
        try:
            return self._optical_info.resolve(network.olt_host, network.ont_address)
        except Exception as exc:
            errors.append(
                self._record_failure(
                    circuit,
                    EnrichmentStep.OPTICAL_INFO,
                    exc,
                    olt=network.olt_host,
                    ont=network.ont_address,
                )
            )
            return None

    @staticmethod
    def _record_failure(
        circuit: Circuit,
        step: str,
        exc: Exception,
        **context: str,
    ) -> SourceLookupError:
        """
        Log one step failure and convert it into a step-tagged lookup error.
        """

        detail = " ".join(f"{key}={value}" for key, value in context.items())
        if isinstance(exc, SourceLookupError):
            logger.warning(
                "Enrichment step failed cid=%s step=%s %s error=%s",
                circuit.circuit_id,
                step,
                detail,
                exc,
            )
            return exc.tagged(step)

        logger.exception(
            "Unhandled enrichment step failure cid=%s step=%s %s",
            circuit.circuit_id,
            step,
            detail,
        )
        wrapped = SourceLookupError(f"unexpected {type(exc).__name__}: {exc}", source=step)
        wrapped.__cause__ = exc
        return wrapped
