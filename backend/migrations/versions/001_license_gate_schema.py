"""Create license directory, usage ledger, and webhook ledger tables.

Revision ID: 001_license_gate_schema
Revises:
Create Date: 2026-10-19

users: one row per license key holder (tier + subscription state)
usage_records: append-only ledger of completed AI calls
webhook_events: one row per processed Stripe event id
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_license_gate_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # License directory
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("license_key", sa.String(24), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("tier", sa.String(10), nullable=False, server_default="free"),
        sa.Column(
            "subscription_status",
            sa.String(20),
            nullable=False,
            server_default="inactive",
        ),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("last_validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("license_key", name="uq_users_license_key"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("tier IN ('free', 'pro')", name="ck_users_tier"),
        sa.CheckConstraint(
            "subscription_status IN ('inactive', 'active', 'past_due', 'cancelled')",
            name="ck_users_subscription_status",
        ),
    )
    op.create_index(
        "ix_users_stripe_customer_id", "users", ["stripe_customer_id"]
    )
    op.create_index(
        "ix_users_stripe_subscription_id", "users", ["stripe_subscription_id"]
    )

    # Usage ledger - append-only, quota windows count rows per user
    op.create_table(
        "usage_records",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column("prompt_type", sa.String(20), nullable=False),
        sa.Column("model", sa.String(20), nullable=False),
        sa.Column("input_method", sa.String(10), nullable=False),
        sa.Column("tokens_used", sa.Integer(), nullable=False),
        sa.Column("input_tokens", sa.Integer(), nullable=False),
        sa.Column("output_tokens", sa.Integer(), nullable=False),
        sa.Column("reasoning_tokens", sa.Integer(), nullable=False),
        sa.Column("cached_tokens", sa.Integer(), nullable=False),
        sa.Column("total_cost", sa.Numeric(14, 10), nullable=False),
        sa.Column("response_time_ms", sa.Integer(), nullable=False),
        sa.Column("cached", sa.Boolean(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("input_tokens >= 0", name="ck_usage_input_tokens_nonneg"),
        sa.CheckConstraint(
            "output_tokens >= 0", name="ck_usage_output_tokens_nonneg"
        ),
        sa.CheckConstraint("total_cost >= 0", name="ck_usage_total_cost_nonneg"),
    )
    op.create_index(
        "ix_usage_records_user_created",
        "usage_records",
        ["user_id", "created_at"],
    )

    # Webhook ledger - unique event_id makes processing at-most-once
    op.create_table(
        "webhook_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=True),
        sa.Column("provider_timestamp", sa.BigInteger(), nullable=False),
        sa.Column(
            "processed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("event_id", name="uq_webhook_events_event_id"),
    )


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_index("ix_usage_records_user_created", table_name="usage_records")
    op.drop_table("usage_records")
    op.drop_index("ix_users_stripe_subscription_id", table_name="users")
    op.drop_index("ix_users_stripe_customer_id", table_name="users")
    op.drop_table("users")
