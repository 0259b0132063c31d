"""
db/models/circuit.py

Circuit model: one GPON service instance tracked by the sync worker.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class Circuit(Base, TimestampMixin):
    """
    A subscriber circuit keyed by its CID.

    olt_hostname / ont_address are optional routing hints; when empty they are
    resolved through the network-info lookup on every run. The enrichment
    columns are owned by the sync worker and overwritten in batches.
    """

    __tablename__ = "circuits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    cid: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Customer/service code used as the join key with upstream systems",
    )

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    plan_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # ── Routing hints ─────────────────────────────────────────────────────────

    olt_hostname: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ont_address: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="frame/slot/index style ONT address, e.g. 1/2/3",
    )

    # ── Enrichment results ────────────────────────────────────────────────────

    vlan: Mapped[str | None] = mapped_column(String(32), nullable=True)
    pppoe_username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    pppoe_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status_gpon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rx_power: Mapped[str | None] = mapped_column(String(32), nullable=True)
    last_sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("cid", name="uq_circuits_cid"),
        Index("ix_circuits_olt_hostname", "olt_hostname"),
    )

    def __repr__(self) -> str:
        return f"<Circuit id={self.id} cid={self.cid!r} olt={self.olt_hostname!r}>"
