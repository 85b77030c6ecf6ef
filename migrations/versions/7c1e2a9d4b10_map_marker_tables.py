"""map_marker_tables

Creates the marker map schema:
  - forum_users / forums / forum_threads / forum_posts: local forum backing the thread gateway
  - xf_map_markers            : published markers, optional event window and thread link
  - xf_map_marker_suggestions : visitor suggestions awaiting review
  - scheduled_jobs            : job registry + last-run bookkeeping

Tables created conditionally (IF NOT EXISTS semantics) so the migration is
idempotent against databases that already received them via db.create_all().

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-19 09:12:40.118302
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '7c1e2a9d4b10'
down_revision = None
branch_labels = None
depends_on = None


def _marker_columns():
    """Columns shared by markers and suggestions."""
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=50), nullable=True),
        sa.Column("icon_variant", sa.String(length=20), nullable=True,
                  comment="solid, regular, light, brands, duotone"),
        sa.Column("icon_color", sa.String(length=30), nullable=True),
        sa.Column("marker_color", sa.String(length=30), nullable=True),
        sa.Column("type", sa.String(length=50), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("create_thread", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("thread_lock", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("create_date", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Forum ─────────────────────────────────────────────────────────────
    if "forum_users" not in existing:
        op.create_table(
            "forum_users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=50), nullable=False),
            sa.Column("is_moderator", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
        )

    if "forums" not in existing:
        op.create_table(
            "forums",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=150), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    if "forum_threads" not in existing:
        op.create_table(
            "forum_threads",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("forum_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(length=150), nullable=False),
            sa.Column("discussion_open", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["forum_id"], ["forums.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["forum_users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_forum_threads_forum_id", "forum_threads", ["forum_id"])

    if "forum_posts" not in existing:
        op.create_table(
            "forum_posts",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("thread_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["thread_id"], ["forum_threads.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["forum_users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_forum_posts_thread_id", "forum_posts", ["thread_id"])

    # ── Markers ───────────────────────────────────────────────────────────
    if "xf_map_markers" not in existing:
        op.create_table(
            "xf_map_markers",
            *_marker_columns(),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("thread_id", sa.Integer(), nullable=True),
            sa.Column("update_date", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_xf_map_markers_active", "xf_map_markers", ["active"])
        op.create_index("ix_xf_map_markers_type", "xf_map_markers", ["type"])
        op.create_index("ix_xf_map_markers_user_id", "xf_map_markers", ["user_id"])

    # ── Suggestions ───────────────────────────────────────────────────────
    if "xf_map_marker_suggestions" not in existing:
        op.create_table(
            "xf_map_marker_suggestions",
            *_marker_columns(),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending",
                      comment="pending, approved, rejected"),
            sa.Column("reviewed_by", sa.Integer(), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_xf_map_marker_suggestions_status",
                        "xf_map_marker_suggestions", ["status"])
        op.create_index("ix_xf_map_marker_suggestions_create_date",
                        "xf_map_marker_suggestions", ["create_date"])
        op.create_index("ix_xf_map_marker_suggestions_user_id",
                        "xf_map_marker_suggestions", ["user_id"])

    # ── Scheduled jobs ────────────────────────────────────────────────────
    if "scheduled_jobs" not in existing:
        op.create_table(
            "scheduled_jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("schedule_config", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("is_enabled", sa.Boolean(), nullable=True),
            sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_run_status", sa.String(length=20), nullable=True),
            sa.Column("last_run_duration_ms", sa.Integer(), nullable=True),
            sa.Column("last_run_result", sa.JSON(), nullable=True),
            sa.Column("run_count", sa.Integer(), nullable=True),
            sa.Column("error_count", sa.Integer(), nullable=True),
            sa.Column("last_error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_name"),
        )


def downgrade():
    for table in ("scheduled_jobs", "xf_map_marker_suggestions", "xf_map_markers",
                  "forum_posts", "forum_threads", "forums", "forum_users"):
        op.drop_table(table)
