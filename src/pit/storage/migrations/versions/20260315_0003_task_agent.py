"""Add per-task agent identifier."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20260315_0003"
down_revision = "20260308_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "tasks",
        sa.Column("agent", sa.String(), nullable=False, server_default="claude"),
    )


def downgrade() -> None:
    raise NotImplementedError("pit schema migrations are forward-only")
