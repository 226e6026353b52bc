"""Applies verified Stripe events to the license directory.

Each user is in a (tier, subscription_status) state. Supported events:

- checkout.session.completed: upgrade or create a pro/active user
- invoice.payment_succeeded: pro/active, matched by email
- invoice.payment_failed: past_due (tier unchanged), matched by email
- customer.subscription.deleted: free/cancelled, matched by subscription id
- customer.subscription.updated: pro/active if Stripe says active,
  else free/inactive, matched by subscription id

Unknown event types are ignored. Events that match no user are logged
no-ops. Database errors and key generation exhaustion propagate so the
transaction (including the webhook ledger row) rolls back and Stripe
retries the delivery.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import (
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_INACTIVE,
    STATUS_PAST_DUE,
    TIER_FREE,
    TIER_PRO,
)
from app.providers.errors import ProviderError
from app.providers.stripe_client import StripeClient
from app.repositories.user_repository import UserRepository
from app.services.license_service import LicenseService

logger = logging.getLogger(__name__)

ACTION_IGNORED = "ignored"
ACTION_NO_MATCH = "no_match"
ACTION_CREATED = "created"
ACTION_UPGRADED = "upgraded"
ACTION_UPDATED = "updated"


@dataclass(frozen=True)
class LicenseNotification:
    """License key email to send once the transaction has committed."""

    email: str
    license_key: str
    tier: str


@dataclass(frozen=True)
class SubscriptionOutcome:
    """What applying an event did.

    Attributes:
        event_type: Stripe event type.
        action: ignored, no_match, created, upgraded, or updated.
        user_id: Affected user, if any.
        notification: Email to send after commit, if any.
    """

    event_type: str
    action: str
    user_id: uuid.UUID | None = None
    notification: LicenseNotification | None = None


class SubscriptionStateMachine:
    """Dispatches Stripe events to per-type handlers.

    Args:
        db: Async database session shared with the webhook ledger insert.
        stripe: Client used to resolve a customer's email when the checkout
            session omits it. None disables the lookup.
        license_service: Key issuer for new Pro users.
    """

    def __init__(
        self,
        db: AsyncSession,
        stripe: StripeClient | None = None,
        license_service: LicenseService | None = None,
    ) -> None:
        self._db = db
        self._stripe = stripe
        self._licenses = license_service or LicenseService(db)
        self._handlers: dict[
            str, Callable[[str, dict[str, Any]], Awaitable[SubscriptionOutcome]]
        ] = {
            "checkout.session.completed": self._checkout_completed,
            "invoice.payment_succeeded": self._payment_succeeded,
            "invoice.payment_failed": self._payment_failed,
            "customer.subscription.deleted": self._subscription_deleted,
            "customer.subscription.updated": self._subscription_updated,
        }

    async def apply(self, event: dict[str, Any]) -> SubscriptionOutcome:
        """Apply one verified event.

        An event whose ``data.object`` is not a JSON object is a logged
        no-op: it can never be applied, so retrying it would loop forever.

        Args:
            event: Parsed Stripe event (``type`` and ``data.object``).

        Returns:
            SubscriptionOutcome describing the change.
        """
        event_type = str(event.get("type", ""))
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("Ignoring unhandled webhook event type %s", event_type)
            return SubscriptionOutcome(event_type=event_type, action=ACTION_IGNORED)

        data = event.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        if obj is None:
            obj = {}
        if not isinstance(obj, dict):
            logger.warning(
                "Ignoring %s event %s: data.object is not an object",
                event_type,
                event.get("id"),
            )
            return SubscriptionOutcome(event_type=event_type, action=ACTION_IGNORED)
        return await handler(event_type, obj)

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _resolve_checkout_email(self, session: dict[str, Any]) -> str | None:
        email = session.get("customer_email") or (
            session.get("customer_details") or {}
        ).get("email")
        if email:
            return str(email).lower()

        customer_id = session.get("customer")
        if not customer_id or self._stripe is None:
            return None
        try:
            customer = await self._stripe.get_customer(customer_id)
        except ProviderError:
            logger.warning(
                "Could not fetch Stripe customer %s for checkout", customer_id, exc_info=True
            )
            return None
        email = customer.get("email")
        return str(email).lower() if email else None

    async def _checkout_completed(
        self, event_type: str, session: dict[str, Any]
    ) -> SubscriptionOutcome:
        customer_id = session.get("customer")
        subscription_id = session.get("subscription")

        email = await self._resolve_checkout_email(session)
        if not email:
            logger.error("Checkout session %s has no resolvable email", session.get("id"))
            return SubscriptionOutcome(event_type=event_type, action=ACTION_NO_MATCH)

        user = await UserRepository.get_by_email_or_customer_id(
            self._db, email, customer_id
        )
        if user is not None:
            user = await UserRepository.update(
                self._db,
                user,
                tier=TIER_PRO,
                subscription_status=STATUS_ACTIVE,
                stripe_customer_id=customer_id or user.stripe_customer_id,
                stripe_subscription_id=subscription_id or user.stripe_subscription_id,
            )
            logger.info("Upgraded user %s to Pro", user.id)
            return SubscriptionOutcome(
                event_type=event_type,
                action=ACTION_UPGRADED,
                user_id=user.id,
                notification=LicenseNotification(
                    email=user.email or email,
                    license_key=user.license_key,
                    tier=TIER_PRO,
                ),
            )

        license_key = await self._licenses.generate_unique_key()
        user = await UserRepository.create(
            self._db,
            license_key=license_key,
            email=email,
            tier=TIER_PRO,
            subscription_status=STATUS_ACTIVE,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
        )
        logger.info("Created Pro user %s from checkout", user.id)
        return SubscriptionOutcome(
            event_type=event_type,
            action=ACTION_CREATED,
            user_id=user.id,
            notification=LicenseNotification(
                email=email, license_key=license_key, tier=TIER_PRO
            ),
        )

    async def _update_by_email(
        self, event_type: str, invoice: dict[str, Any], **changes: str
    ) -> SubscriptionOutcome:
        email = invoice.get("customer_email")
        user = await UserRepository.get_by_email(self._db, email) if email else None
        if user is None:
            logger.warning("No user for %s (invoice %s)", event_type, invoice.get("id"))
            return SubscriptionOutcome(event_type=event_type, action=ACTION_NO_MATCH)
        await UserRepository.update(self._db, user, **changes)
        return SubscriptionOutcome(
            event_type=event_type, action=ACTION_UPDATED, user_id=user.id
        )

    async def _update_by_subscription(
        self, event_type: str, subscription: dict[str, Any], **changes: str
    ) -> SubscriptionOutcome:
        subscription_id = subscription.get("id")
        user = (
            await UserRepository.get_by_subscription_id(self._db, subscription_id)
            if subscription_id
            else None
        )
        if user is None:
            logger.warning("No user for %s (subscription %s)", event_type, subscription_id)
            return SubscriptionOutcome(event_type=event_type, action=ACTION_NO_MATCH)
        await UserRepository.update(self._db, user, **changes)
        return SubscriptionOutcome(
            event_type=event_type, action=ACTION_UPDATED, user_id=user.id
        )

    async def _payment_succeeded(
        self, event_type: str, invoice: dict[str, Any]
    ) -> SubscriptionOutcome:
        return await self._update_by_email(
            event_type, invoice, tier=TIER_PRO, subscription_status=STATUS_ACTIVE
        )

    async def _payment_failed(
        self, event_type: str, invoice: dict[str, Any]
    ) -> SubscriptionOutcome:
        return await self._update_by_email(
            event_type, invoice, subscription_status=STATUS_PAST_DUE
        )

    async def _subscription_deleted(
        self, event_type: str, subscription: dict[str, Any]
    ) -> SubscriptionOutcome:
        return await self._update_by_subscription(
            event_type, subscription, tier=TIER_FREE, subscription_status=STATUS_CANCELLED
        )

    async def _subscription_updated(
        self, event_type: str, subscription: dict[str, Any]
    ) -> SubscriptionOutcome:
        if subscription.get("status") == STATUS_ACTIVE:
            changes = {"tier": TIER_PRO, "subscription_status": STATUS_ACTIVE}
        else:
            changes = {"tier": TIER_FREE, "subscription_status": STATUS_INACTIVE}
        return await self._update_by_subscription(event_type, subscription, **changes)
