"""initial_projecthub_schema

Creates the delivery-tracker schema:
  - projects, project_members
  - stages          (unique project_id + order)
  - stage_components (unique stage_id + sort_order)
  - comments        (stage_id and component_id never both set)
  - approvals, notifications, activity_log

Tables are created conditionally so databases that already received them
through db.create_all() in development can still be stamped and upgraded.

Revision ID: 7f3a9c2d1e40
Revises:
Create Date: 2026-10-18 09:12:44.201337
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '7f3a9c2d1e40'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    existing = set(sa_inspect(bind).get_table_names())

    # ── Projects ──────────────────────────────────────────────────────────
    if "projects" not in existing:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="planned",
                      comment="planned | in_progress | on_hold | done | archived"),
            sa.Column("client_id", sa.String(length=64), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("deadline", sa.Date(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_client_id", "projects", ["client_id"])

    if "project_members" not in existing:
        op.create_table(
            "project_members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="client_viewer",
                      comment="client_viewer | client_editor"),
            sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "email", name="uq_project_members_project_email"),
        )
        op.create_index("ix_project_members_project_id", "project_members", ["project_id"])

    # ── Stages & components ───────────────────────────────────────────────
    if "stages" not in existing:
        op.create_table(
            "stages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("order", sa.Integer(), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="custom"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="todo",
                      comment="todo | waiting_client | in_review | approved | blocked | done"),
            sa.Column("owner", sa.String(length=10), nullable=False, server_default="provider"),
            sa.Column("planned_start", sa.Date(), nullable=True),
            sa.Column("planned_end", sa.Date(), nullable=True),
            sa.Column("deadline", sa.Date(), nullable=True),
            sa.Column("completion_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completion_note", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "order", name="uq_stages_project_order"),
        )
        op.create_index("ix_stages_project_id", "stages", ["project_id"])

    if "stage_components" not in existing:
        op.create_table(
            "stage_components",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("stage_id", sa.Integer(), nullable=False),
            sa.Column("component_type", sa.String(length=30), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=True),
            sa.Column("config", sa.JSON(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="todo"),
            sa.Column("sort_order", sa.Integer(), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True, comment='{"feature_flag": "prototype"}'),
            *_timestamps(),
            sa.ForeignKeyConstraint(["stage_id"], ["stages.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("stage_id", "sort_order", name="uq_stage_components_stage_sort"),
        )
        op.create_index("ix_stage_components_stage_id", "stage_components", ["stage_id"])

    # ── Comments ──────────────────────────────────────────────────────────
    if "comments" not in existing:
        op.create_table(
            "comments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("stage_id", sa.Integer(), nullable=True),
            sa.Column("component_id", sa.Integer(), nullable=True),
            sa.Column("author_type", sa.String(length=10), nullable=False),
            sa.Column("body", sa.Text(), nullable=False),
            sa.Column("created_by", sa.String(length=64), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["stage_id"], ["stages.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["component_id"], ["stage_components.id"], ondelete="CASCADE"),
            sa.CheckConstraint("stage_id IS NULL OR component_id IS NULL", name="ck_comments_single_scope"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_comments_project_created", "comments", ["project_id", "created_at"])
        op.create_index("ix_comments_stage_id", "comments", ["stage_id"])
        op.create_index("ix_comments_component_id", "comments", ["component_id"])
        op.create_index("ix_comments_created_by", "comments", ["created_by"])

    # ── Approvals & notifications ─────────────────────────────────────────
    if "approvals" not in existing:
        op.create_table(
            "approvals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("stage_id", sa.Integer(), nullable=True),
            sa.Column("component_id", sa.Integer(), nullable=True),
            sa.Column("requested_by", sa.String(length=10), nullable=False, server_default="provider"),
            sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("approved_by", sa.String(length=64), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="requested",
                      comment="requested | approved | changes_requested"),
            sa.Column("feedback", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["stage_id"], ["stages.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["component_id"], ["stage_components.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_approvals_project_id", "approvals", ["project_id"])

    if "notifications" not in existing:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("user_email", sa.String(length=255), nullable=False),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("payload", sa.JSON(), nullable=False),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_project_id", "notifications", ["project_id"])
        op.create_index("idx_notifications_email_read", "notifications", ["user_email", "read_at"])

    # ── Activity log ──────────────────────────────────────────────────────
    if "activity_log" not in existing:
        op.create_table(
            "activity_log",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=True),
            sa.Column("actor_type", sa.String(length=10), nullable=False, server_default="system"),
            sa.Column("actor_id", sa.String(length=64), nullable=True),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_activity_project_created", "activity_log", ["project_id", "created_at"])
        op.create_index("idx_activity_action", "activity_log", ["action"])


def downgrade():
    for table in (
        "activity_log",
        "notifications",
        "approvals",
        "comments",
        "stage_components",
        "stages",
        "project_members",
        "projects",
    ):
        op.drop_table(table)
