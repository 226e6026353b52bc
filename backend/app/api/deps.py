"""Shared dependencies for API endpoints.

This is the only module that reads ``settings`` on behalf of services:
limits, secrets, and client configuration are passed into constructors
here, so services stay free of global state.

WHY DEPENDENCY INJECTION:
- Consistent auth across all endpoints
- Tests override clients and clocks via app.dependency_overrides
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import ConfigurationError, UnauthorizedError
from app.models.user import User
from app.providers.gateway_client import GatewayClient
from app.providers.stripe_client import StripeClient
from app.services.authenticator import Authenticator
from app.services.cost_accountant import CostAccountant
from app.services.license_service import LicenseService
from app.services.subscription_state_machine import SubscriptionStateMachine
from app.services.usage_meter import UsageMeter
from app.services.webhook_verifier import WebhookVerifier

# Reusable type alias for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    db: DbSession,
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the ``Authorization: LicenseKey <KEY>`` header to a user.

    Args:
        db: Database session (injected).
        authorization: Raw Authorization header.

    Returns:
        The authenticated User.

    Raises:
        UnauthorizedError: For a missing, malformed, or unknown key. The
            message never says which.
    """
    user = await Authenticator(db).authenticate(authorization)
    if user is None:
        raise UnauthorizedError()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


@lru_cache(maxsize=1)
def get_gateway_client() -> GatewayClient:
    """Process-wide gateway client (the SDK client pools connections).

    Raises:
        ConfigurationError: If the gateway account or API key is missing.
    """
    if not settings.gateway_account_id:
        raise ConfigurationError("GATEWAY_ACCOUNT_ID")
    api_key = settings.openai_api_key.get_secret_value()
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY")
    return GatewayClient(
        base_url=settings.gateway_base_url,
        api_key=api_key,
        gateway_token=settings.gateway_token.get_secret_value() or None,
        timeout=settings.gateway_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_stripe_client() -> StripeClient:
    """Process-wide Stripe client (the SDK's httpx client pools connections).

    Raises:
        ConfigurationError: If STRIPE_SECRET_KEY is not set.
    """
    secret_key = settings.stripe_secret_key.get_secret_value()
    if not secret_key:
        raise ConfigurationError("STRIPE_SECRET_KEY")
    return StripeClient(secret_key, timeout=settings.stripe_timeout_seconds)


def get_optional_stripe_client() -> StripeClient | None:
    """Stripe client if configured; webhooks still process without one."""
    if not settings.stripe_secret_key.get_secret_value():
        return None
    return get_stripe_client()


Gateway = Annotated[GatewayClient, Depends(get_gateway_client)]
Stripe = Annotated[StripeClient, Depends(get_stripe_client)]
OptionalStripe = Annotated[StripeClient | None, Depends(get_optional_stripe_client)]


def get_authenticator(db: DbSession) -> Authenticator:
    return Authenticator(db)


def get_usage_meter(db: DbSession) -> UsageMeter:
    """Usage meter configured with the tier limits from settings."""
    return UsageMeter(
        db,
        free_daily_limit=settings.free_tier_daily_limit,
        pro_per_minute_limit=settings.pro_tier_rate_limit_per_minute,
    )


def get_cost_accountant(db: DbSession) -> CostAccountant:
    return CostAccountant(db)


def get_license_service(db: DbSession) -> LicenseService:
    return LicenseService(db)


def get_webhook_verifier(db: DbSession) -> WebhookVerifier:
    """Webhook verifier with the signing secret and tolerances from settings."""
    return WebhookVerifier(
        db,
        settings.stripe_webhook_secret.get_secret_value(),
        max_age_seconds=settings.webhook_max_age_seconds,
        max_future_seconds=settings.webhook_max_future_seconds,
    )


def get_subscription_state_machine(
    db: DbSession,
    stripe: OptionalStripe,
) -> SubscriptionStateMachine:
    return SubscriptionStateMachine(db, stripe=stripe)


AuthenticatorDep = Annotated[Authenticator, Depends(get_authenticator)]
Meter = Annotated[UsageMeter, Depends(get_usage_meter)]
Accountant = Annotated[CostAccountant, Depends(get_cost_accountant)]
Licenses = Annotated[LicenseService, Depends(get_license_service)]
Verifier = Annotated[WebhookVerifier, Depends(get_webhook_verifier)]
StateMachine = Annotated[SubscriptionStateMachine, Depends(get_subscription_state_machine)]
