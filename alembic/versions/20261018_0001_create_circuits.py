"""create circuits table

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "circuits",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("cid", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("plan_name", sa.String(length=255), nullable=True),
        sa.Column("olt_hostname", sa.String(length=255), nullable=True),
        sa.Column("ont_address", sa.String(length=64), nullable=True),
        sa.Column("vlan", sa.String(length=32), nullable=True),
        sa.Column("pppoe_username", sa.String(length=255), nullable=True),
        sa.Column("pppoe_password", sa.String(length=255), nullable=True),
        sa.Column("status_gpon", sa.String(length=64), nullable=True),
        sa.Column("rx_power", sa.String(length=32), nullable=True),
        sa.Column("last_sync_error", sa.Text(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("cid", name="uq_circuits_cid"),
    )
    op.create_index("ix_circuits_olt_hostname", "circuits", ["olt_hostname"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_circuits_olt_hostname", table_name="circuits")
    op.drop_table("circuits")
