"""add webhook_events and sync_jobs tables

Revision ID: add_ingestion_tracking
Revises: initial_schema
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


revision = "add_ingestion_tracking"
down_revision = "initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "webhook_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("shop_domain", sa.String(), nullable=True),
        sa.Column("topic", sa.String(), nullable=False),
        sa.Column("payload_summary", sa.String(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("error", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_webhook_events_shop_domain", "webhook_events", ["shop_domain"])
    op.create_index("ix_webhook_events_topic", "webhook_events", ["topic"])
    op.create_index("ix_webhook_events_created_at", "webhook_events", ["created_at"])

    op.create_table(
        "sync_jobs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("RUNNING", "SUCCESS", "FAILED", name="syncjobstatus"),
            nullable=False,
        ),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("records_processed", sa.Integer(), nullable=True),
        sa.Column("records_skipped", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_jobs_store_id", "sync_jobs", ["store_id"])


def downgrade() -> None:
    op.drop_table("sync_jobs")
    op.drop_table("webhook_events")
    sa.Enum(name="syncjobstatus").drop(op.get_bind(), checkfirst=True)
