"""Initial schema: notifications, engagement and nudge audit tables.

Revision ID: 0001
Revises:
Create Date: 2026-10-16

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- Notifications --
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(32), server_default="reminder"),
        sa.Column("priority", sa.String(16), server_default="medium"),
        sa.Column("title", sa.String(512), server_default=""),
        sa.Column("message", sa.Text, server_default=""),
        sa.Column("action_ref", sa.String(512), nullable=True),
        sa.Column("action_label", sa.String(128), nullable=True),
        sa.Column("category", sa.String(64), server_default="general"),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dismissed", sa.Boolean, server_default=sa.false()),
        sa.Column("dismissed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_entity_created", "notifications", ["entity_id", "created_at"])
    op.create_index(
        "ix_notifications_entity_category_created",
        "notifications",
        ["entity_id", "category", "created_at"],
    )
    op.create_index("ix_notifications_scheduled_for", "notifications", ["scheduled_for"])
    op.create_index("ix_notifications_expires_at", "notifications", ["expires_at"])

    # -- Engagement --
    op.create_table(
        "notification_engagement",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("notification_id", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("details", sa.JSON, nullable=False),
    )
    op.create_index(
        "ix_notification_engagement_notification_id",
        "notification_engagement",
        ["notification_id"],
    )
    op.create_index("ix_notification_engagement_entity_id", "notification_engagement", ["entity_id"])

    # -- Nudge logs --
    op.create_table(
        "nudge_logs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("rule_id", sa.String(64), nullable=False),
        sa.Column("rule_name", sa.String(128), server_default=""),
        sa.Column("notification_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(512), server_default=""),
        sa.Column("message", sa.Text, server_default=""),
        sa.Column("triggered_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_nudge_logs_entity_triggered", "nudge_logs", ["entity_id", "triggered_at"])

    # -- Nudge runs --
    op.create_table(
        "nudge_runs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("job_type", sa.String(64), server_default="smart_nudge_analysis"),
        sa.Column("total_entities", sa.Integer, server_default="0"),
        sa.Column("processed", sa.Integer, server_default="0"),
        sa.Column("errors", sa.Integer, server_default="0"),
        sa.Column("notifications_created", sa.Integer, server_default="0"),
        sa.Column("duplicates_suppressed", sa.Integer, server_default="0"),
        sa.Column("duration_seconds", sa.Float, server_default="0"),
        sa.Column("failed_entities", sa.JSON, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_nudge_runs_completed_at", "nudge_runs", ["completed_at"])


def downgrade() -> None:
    op.drop_table("nudge_runs")
    op.drop_table("nudge_logs")
    op.drop_table("notification_engagement")
    op.drop_table("notifications")
