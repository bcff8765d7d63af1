"""Initial stories table with one story per date."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20250421_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "stories",
        sa.Column("story_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("story_date", sa.Date(), nullable=False),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("story_id"),
    )
    op.create_index("uq_stories_story_date", "stories", ["story_date"], unique=True)


def downgrade() -> None:
    op.drop_index("uq_stories_story_date", table_name="stories")
    op.drop_table("stories")
