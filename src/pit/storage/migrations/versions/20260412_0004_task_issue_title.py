"""Add issue display title so listings do not re-query the tracker."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20260412_0004"
down_revision = "20260315_0003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "tasks",
        sa.Column("issue_title", sa.String(), nullable=False, server_default=""),
    )
    op.execute(
        sa.text(
            """
            UPDATE tasks
            SET issue_title = issue_ref
            WHERE issue_title = '' AND issue_ref != ''
            """,
        ),
    )


def downgrade() -> None:
    raise NotImplementedError("pit schema migrations are forward-only")
