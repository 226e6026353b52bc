"""Repository for the webhook ledger (webhook_events table).

The insert relies on the unique constraint on event_id: a concurrent
delivery that loses the race gets an IntegrityError instead of silently
double-applying the event.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.webhook_event import WebhookEvent


class WebhookEventRepository:
    """Stateless repository for WebhookEvent table operations.

    All methods are static: no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def exists(db: AsyncSession, event_id: str) -> bool:
        """Check whether an event id is already in the ledger."""
        stmt = select(WebhookEvent.id).where(WebhookEvent.event_id == event_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        event_id: str,
        provider_timestamp: int,
        event_type: str | None = None,
    ) -> WebhookEvent:
        """Insert a ledger entry and flush it so the unique constraint is checked now.

        Args:
            db: Async database session.
            event_id: Stripe event id.
            provider_timestamp: Unix seconds from the signature header.
            event_type: Stripe event type.

        Returns:
            Created WebhookEvent.

        Raises:
            sqlalchemy.exc.IntegrityError: If event_id is already recorded.
        """
        event = WebhookEvent(
            event_id=event_id,
            provider_timestamp=provider_timestamp,
            event_type=event_type,
        )
        db.add(event)
        await db.flush()
        await db.refresh(event)
        return event
