"""User model - the license directory.

One row per license key holder. Rows are created on free-key issuance or
on the first completed checkout, mutated only by the subscription state
machine and key validation, and never deleted.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

TIER_FREE = "free"
TIER_PRO = "pro"

STATUS_INACTIVE = "inactive"
STATUS_ACTIVE = "active"
STATUS_PAST_DUE = "past_due"
STATUS_CANCELLED = "cancelled"


class User(Base, TimestampMixin):
    """License key holder.

    Attributes:
        id: UUID primary key.
        license_key: Unique bearer credential (XXXX-XXXX-XXXX-XXXX-XXXX).
        email: Unique, lowercase email. NULL only for legacy keys.
        tier: "free" or "pro".
        subscription_status: inactive, active, past_due, or cancelled.
        stripe_customer_id: Stripe customer (cus_...) once known.
        stripe_subscription_id: Stripe subscription (sub_...) once known.
        last_validated_at: Last successful POST /auth/validate-key.
        created_at: Creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("tier IN ('free', 'pro')", name="ck_users_tier"),
        CheckConstraint(
            "subscription_status IN ('inactive', 'active', 'past_due', 'cancelled')",
            name="ck_users_subscription_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    license_key: Mapped[str] = mapped_column(
        String(24),
        unique=True,
        nullable=False,
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )
    tier: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=TIER_FREE,
        server_default=TIER_FREE,
    )
    subscription_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=STATUS_INACTIVE,
        server_default=STATUS_INACTIVE,
    )
    stripe_customer_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    stripe_subscription_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    last_validated_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
