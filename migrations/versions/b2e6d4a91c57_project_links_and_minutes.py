"""project_links_and_minutes

Adds the two project side tables:
  - project_links   (named URLs shared with the client)
  - project_minutes (unique project_id + meeting_date)

Revision ID: b2e6d4a91c57
Revises: 7f3a9c2d1e40
Create Date: 2026-10-19 14:03:21.518902
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'b2e6d4a91c57'
down_revision = '7f3a9c2d1e40'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing = set(sa_inspect(bind).get_table_names())

    if "project_links" not in existing:
        op.create_table(
            "project_links",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("url", sa.String(length=2000), nullable=False),
            sa.Column("created_by", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_links_project_id", "project_links", ["project_id"])

    if "project_minutes" not in existing:
        op.create_table(
            "project_minutes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("meeting_date", sa.Date(), nullable=False),
            sa.Column("content_markdown", sa.Text(), nullable=False, server_default=""),
            sa.Column("created_by", sa.String(length=64), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "meeting_date", name="uq_project_minutes_project_date"),
        )
        op.create_index("ix_project_minutes_project_id", "project_minutes", ["project_id"])


def downgrade():
    op.drop_table("project_minutes")
    op.drop_table("project_links")
