"""Subscription and billing endpoints.

- POST /subscription/create-checkout: Stripe Checkout session for Pro
- GET /subscription/portal: Stripe billing portal for the current user
- POST /subscription/verify-payment: confirm a Checkout Session was paid
- GET /subscription/plans: plan catalogue
- POST /subscription/webhook: Stripe webhook receiver

The webhook route authenticates via HMAC signature (Stripe-Signature
header), not via license key. The ledger insert and the subscription change
share the request transaction, so a failure in either leaves the event
unrecorded and Stripe retries it.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, BackgroundTasks, Header, Request

from app.api.deps import CurrentUser, DbSession, StateMachine, Stripe, Verifier
from app.core.config import settings
from app.core.email import send_license_key_email
from app.core.errors import (
    ConfigurationError,
    UpstreamError,
    ValidationError,
    WebhookAlreadyProcessedError,
    WebhookVerificationError,
)
from app.core.rate_limiting import limiter
from app.core.responses import DataResponse
from app.models.user import TIER_FREE, TIER_PRO
from app.providers.errors import ProviderError
from app.repositories.user_repository import UserRepository
from app.schemas.auth import EmailRequest
from app.schemas.subscription import (
    CheckoutResponse,
    Plan,
    PlansResponse,
    PortalResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookAck,
)

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# POST /create-checkout
# =============================================================================


@router.post("/create-checkout")
@limiter.limit(settings.rate_limit_checkout)
async def create_checkout(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    db: DbSession,
    stripe: Stripe,
) -> DataResponse[CheckoutResponse]:
    """Create a Stripe Checkout session for the Pro subscription.

    Reuses the Stripe customer already linked to the email, if any.

    Rate limit: 5 per hour per IP.

    Raises:
        ConfigurationError: If STRIPE_PRICE_PRO is not set.
        UpstreamError: If Stripe rejects or fails the request.
    """
    if not settings.stripe_price_pro:
        raise ConfigurationError("STRIPE_PRICE_PRO")

    user = await UserRepository.get_by_email(db, body.email)
    base_url = settings.extension_url.rstrip("/")

    try:
        customer_id = user.stripe_customer_id if user else None
        if not customer_id:
            customer = await stripe.create_customer(body.email)
            customer_id = customer["id"]
        session = await stripe.create_checkout_session(
            price_id=settings.stripe_price_pro,
            customer_id=customer_id,
            success_url=f"{base_url}/payment-success.html?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base_url}/activate.html",
        )
    except ProviderError as e:
        raise UpstreamError("Stripe", str(e)) from e

    logger.info("checkout_session_created", session_id=session["id"])
    return DataResponse(data=CheckoutResponse(url=session["url"], session_id=session["id"]))


# =============================================================================
# GET /portal
# =============================================================================


@router.get("/portal")
async def get_portal(user: CurrentUser, stripe: Stripe) -> DataResponse[PortalResponse]:
    """Open the Stripe billing portal for the authenticated user.

    Raises:
        ValidationError: If the user has no Stripe customer.
        UpstreamError: If Stripe rejects or fails the request.
    """
    if not user.stripe_customer_id:
        raise ValidationError("No subscription found")

    try:
        session = await stripe.create_billing_portal_session(
            user.stripe_customer_id,
            return_url=f"{settings.extension_url.rstrip('/')}/activate.html",
        )
    except ProviderError as e:
        raise UpstreamError("Stripe", str(e)) from e

    return DataResponse(data=PortalResponse(url=session["url"]))


# =============================================================================
# POST /verify-payment
# =============================================================================


@router.post("/verify-payment")
@limiter.limit(settings.rate_limit_verify_payment)
async def verify_payment(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerifyPaymentRequest,
    stripe: Stripe,
) -> DataResponse[VerifyPaymentResponse]:
    """Confirm that a Checkout Session has been paid.

    Polled by the payment-success page, which retries until the session is
    paid. Read-only: the license is issued by the checkout webhook.

    Raises:
        ValidationError: If the session is unknown or not paid yet.
        UpstreamError: If Stripe fails the request.
    """
    try:
        session = await stripe.get_checkout_session(body.session_id)
    except ProviderError as e:
        if e.status_code == 404:
            raise ValidationError("Payment session not found", field="sessionId") from e
        raise UpstreamError("Stripe", str(e)) from e

    payment_status = session.get("payment_status") or "unknown"
    if payment_status != "paid":
        logger.info(
            "payment_not_completed",
            session_id=body.session_id,
            payment_status=payment_status,
        )
        raise ValidationError("Payment not completed", field="sessionId")

    details = session.get("customer_details") or {}
    email = details.get("email") or session.get("customer_email")
    return DataResponse(
        data=VerifyPaymentResponse(
            session_id=body.session_id,
            payment_status=payment_status,
            email=email,
        )
    )


# =============================================================================
# GET /plans
# =============================================================================


@router.get("/plans")
async def get_plans() -> DataResponse[PlansResponse]:
    """List the Free and Pro plans with their current limits."""
    free_limit = settings.free_tier_daily_limit
    pro_limit = settings.pro_tier_rate_limit_per_minute
    plans = [
        Plan(
            tier=TIER_FREE,
            name="Free",
            price=0,
            daily_limit=free_limit,
            features=[
                f"{free_limit} AI requests per day",
                "Screenshot and OCR questions",
                "Standard reasoning",
            ],
        ),
        Plan(
            tier=TIER_PRO,
            name="Pro",
            price=settings.pro_plan_price,
            daily_limit=None,
            rate_limit=f"{pro_limit} per minute",
            features=[
                "Unlimited daily AI requests",
                f"Up to {pro_limit} requests per minute",
                "All reasoning levels",
                "Usage analytics",
            ],
            recommended=True,
        ),
    ]
    return DataResponse(data=PlansResponse(plans=plans))


# =============================================================================
# POST /webhook
# =============================================================================


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    verifier: Verifier,
    state_machine: StateMachine,
    stripe_signature: Annotated[str | None, Header()] = None,
) -> WebhookAck:
    """Receive a Stripe webhook delivery.

    Returns a bare acknowledgement (no ``data`` envelope) because Stripe
    only inspects the status code. Duplicates are acknowledged with 200 so
    Stripe stops retrying.

    Raises:
        WebhookVerificationError: Signature, freshness, or payload failure (400).
        ConfigurationError: If the webhook secret is not configured (500).
    """
    raw_body = await request.body()

    try:
        event = await verifier.verify(raw_body, stripe_signature)
    except WebhookAlreadyProcessedError as e:
        logger.info("webhook_duplicate", event_id=e.event_id)
        return WebhookAck(duplicate=True)
    except WebhookVerificationError as e:
        logger.warning("webhook_rejected", code=e.code, reason=e.message)
        raise

    outcome = await state_machine.apply(event)
    logger.info(
        "webhook_processed",
        event_id=event["id"],
        event_type=outcome.event_type,
        action=outcome.action,
        user_id=str(outcome.user_id) if outcome.user_id else None,
    )

    if outcome.notification is not None:
        background_tasks.add_task(
            send_license_key_email,
            to_email=outcome.notification.email,
            license_key=outcome.notification.license_key,
            tier=outcome.notification.tier,
        )

    return WebhookAck(action=outcome.action)
