"""scene_entries (scene store)

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18

Key/value store for scenes: temp_<id> rows are staged, scene_<id> rows are saved.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261018_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "scene_entries",
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column(
            "payload",
            sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("status IN ('STAGED','FINAL')", name="chk_scene_entry_status"),
        sa.PrimaryKeyConstraint("key"),
    )
    op.create_index("idx_scene_entries_status", "scene_entries", ["status"])


def downgrade() -> None:
    op.drop_index("idx_scene_entries_status", table_name="scene_entries")
    op.drop_table("scene_entries")
