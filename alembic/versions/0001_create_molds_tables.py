"""Create molds and mold_logs tables.

Revision ID: 0001_create_molds_tables
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_molds_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the mold registry and its append-only audit log."""
    op.create_table(
        "molds",
        sa.Column("id", sa.String(length=200), primary_key=True),
        sa.Column("model", sa.String(length=200), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("max_shots", sa.Integer(), nullable=False),
        sa.Column("current_shots", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=11), nullable=False, server_default="available"),
        sa.Column("operator_name", sa.String(length=200), nullable=True),
        sa.Column("machine", sa.String(length=200), nullable=True),
        sa.Column("last_maintenance", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("max_shots > 0", name="ck_molds_max_shots_positive"),
        sa.CheckConstraint("current_shots >= 0", name="ck_molds_current_shots_non_negative"),
        sa.CheckConstraint(
            "status IN ('available', 'in-use', 'maintenance')",
            name="ck_molds_status",
        ),
        sa.CheckConstraint(
            "(status = 'in-use' AND operator_name IS NOT NULL AND machine IS NOT NULL) "
            "OR (status <> 'in-use' AND operator_name IS NULL AND machine IS NULL)",
            name="ck_molds_assignment_matches_status",
        ),
    )
    op.create_table(
        "mold_logs",
        sa.Column("log_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("mold_id", sa.String(length=200), nullable=False),
        sa.Column("action", sa.String(length=11), nullable=False),
        sa.Column("operator_name", sa.String(length=200), nullable=True),
        sa.Column("machine", sa.String(length=200), nullable=True),
        sa.Column("shots_added", sa.Integer(), nullable=True),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "action IN ('create', 'checkout', 'return', 'maintenance', 'delete')",
            name="ck_mold_logs_action",
        ),
        sa.CheckConstraint(
            "shots_added IS NULL OR shots_added >= 0",
            name="ck_mold_logs_shots_added_non_negative",
        ),
    )
    op.create_index("ix_mold_logs_mold_id", "mold_logs", ["mold_id"])
    op.create_index("ix_mold_logs_timestamp", "mold_logs", ["timestamp"])


def downgrade() -> None:
    """Drop the mold registry tables."""
    op.drop_index("ix_mold_logs_timestamp", table_name="mold_logs")
    op.drop_index("ix_mold_logs_mold_id", table_name="mold_logs")
    op.drop_table("mold_logs")
    op.drop_table("molds")
