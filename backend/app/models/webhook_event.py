"""Webhook ledger ORM model.

One row per distinct Stripe event id. The unique constraint on event_id is
what makes webhook processing at-most-once: the ledger row is inserted in
the same transaction as the subscription changes it guards.
"""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow


class WebhookEvent(Base):
    """Processed webhook event.

    Attributes:
        id: UUID primary key.
        event_id: Stripe event id (evt_...). Unique.
        event_type: Stripe event type, for auditing.
        provider_timestamp: Unix seconds from the signature header.
        processed_at: When the event was accepted.
    """

    __tablename__ = "webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    event_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    event_type: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    provider_timestamp: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
