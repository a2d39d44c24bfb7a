"""Add agent prompt and issue reference to tasks."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20260308_0002"
down_revision = "20260301_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "tasks",
        sa.Column("prompt", sa.Text(), nullable=False, server_default=""),
    )
    op.add_column(
        "tasks",
        sa.Column("issue_ref", sa.String(), nullable=False, server_default=""),
    )


def downgrade() -> None:
    raise NotImplementedError("pit schema migrations are forward-only")
