"""
app/repositories/circuit_repository.py

Circuit store persistence: pending circuit reads and batched enrichment
write-back.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import bindparam, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.circuit import Circuit, EnrichedResult
from app.domain.errors import StoreError
from db.models.circuit import Circuit as CircuitRow

SessionFactory = Callable[[], Session]

_ENRICHED_COLUMNS = ("vlan", "pppoe_username", "pppoe_password", "status_gpon", "rx_power")


class CircuitRepository:
    """
    Repository responsible for reading circuits and storing enrichment results.

    Each call opens its own session, so one instance can serve a whole run.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def fetch_pending_circuits(self) -> list[Circuit]:
        """
        Return every circuit with its routing hints, ordered by CID.
        """

        stmt = select(CircuitRow.cid, CircuitRow.olt_hostname, CircuitRow.ont_address).order_by(CircuitRow.cid)
        try:
            with self._session_factory() as session:
                rows = session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to fetch circuits: {exc}") from exc

        return [
            Circuit(
                circuit_id=row.cid,
                olt_host=(row.olt_hostname or "").strip() or None,
                ont_address=(row.ont_address or "").strip() or None,
            )
            for row in rows
            if row.cid and row.cid.strip()
        ]

    def update_batch(self, results: Sequence[EnrichedResult]) -> None:
        """
        Write one batch of results in a single transaction.

        Enriched columns that came back empty keep their stored value; the
        sync error and timestamp are always overwritten.
        """

        if not results:
            return

        synced_at = datetime.now(timezone.utc)
        payloads: list[dict[str, Any]] = [
            {
                "b_cid": result.circuit_id,
                "b_vlan": result.vlan or None,
                "b_pppoe_username": result.pppoe_username or None,
                "b_pppoe_password": result.pppoe_password or None,
                "b_status_gpon": result.status_gpon or None,
                "b_rx_power": result.rx_power or None,
                "b_last_sync_error": result.error_message,
                "b_last_synced_at": synced_at,
                "b_updated_at": synced_at,
            }
            for result in results
        ]

        table = CircuitRow.__table__
        values: dict[str, Any] = {
            column: func.coalesce(bindparam(f"b_{column}", type_=table.c[column].type), table.c[column])
            for column in _ENRICHED_COLUMNS
        }
        for column in ("last_sync_error", "last_synced_at", "updated_at"):
            values[column] = bindparam(f"b_{column}", type_=table.c[column].type)
        stmt = update(table).where(table.c.cid == bindparam("b_cid", type_=table.c.cid.type)).values(**values)

        session = self._session_factory()
        try:
            session.execute(stmt, payloads)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"failed to update batch of {len(results)} circuits: {exc}") from exc
        finally:
            session.close()
