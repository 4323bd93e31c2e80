"""Mappings table: slug/type <-> uuid

Revision ID: 0001
Revises: None
Create Date: 2025-01-01 00:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    # Guarded so a DB first built by SQLModel.metadata.create_all() can be
    # upgraded after being stamped.
    if sa.inspect(op.get_bind()).has_table("mappings"):
        return

    op.create_table(
        "mappings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("uuid", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("slug", "type", name="uq_mappings_slug_type"),
    )
    op.create_index("ix_mappings_uuid", "mappings", ["uuid"], unique=True)
    op.create_index("ix_mappings_slug", "mappings", ["slug"])


def downgrade() -> None:
    op.drop_index("ix_mappings_slug", table_name="mappings")
    op.drop_index("ix_mappings_uuid", table_name="mappings")
    op.drop_table("mappings")
