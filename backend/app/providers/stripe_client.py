"""Stripe API client.

Async wrapper over the handful of Stripe calls the billing flow needs,
built on the official SDK's ``StripeClient`` with its httpx transport.
SDK errors are translated into the provider error taxonomy so routes only
ever see ProviderError subclasses.

Webhook signatures are not checked here: see services.webhook_verifier.
"""

import logging
from typing import Any

import stripe

from app.providers.errors import (
    AuthenticationError,
    ProviderError,
    RateLimitError,
    TransientError,
)

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0


def _classify_error(e: stripe.StripeError) -> ProviderError:
    """Map an SDK exception onto the provider error taxonomy.

    Args:
        e: Exception raised by the Stripe SDK.

    Returns:
        ProviderError subclass carrying Stripe's message and HTTP status.
    """
    message = e.user_message or str(e)
    status = e.http_status
    if isinstance(e, (stripe.AuthenticationError, stripe.PermissionError)):
        return AuthenticationError(message, status_code=status)
    if isinstance(e, stripe.RateLimitError):
        return RateLimitError(message, status_code=status or 429)
    if isinstance(e, stripe.APIConnectionError):
        return TransientError(f"Stripe connection failed: {message}", status_code=status)
    if isinstance(e, stripe.APIError) or (status is not None and status >= 500):
        return TransientError(message, status_code=status)
    return ProviderError(message, status_code=status)


class StripeClient:
    """Async Stripe client for customers, Checkout, and the billing portal.

    Args:
        secret_key: Stripe secret key (sk_...).
        timeout: Per-request deadline in seconds.
        client: Preconfigured SDK client. Tests pass a mock.
    """

    def __init__(
        self,
        secret_key: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        client: stripe.StripeClient | None = None,
    ) -> None:
        self._sdk = client or stripe.StripeClient(
            secret_key,
            http_client=stripe.HTTPXClient(timeout=timeout),
        )

    async def _call(self, operation: str, coro) -> dict[str, Any]:
        try:
            return await coro
        except stripe.StripeError as e:
            error = _classify_error(e)
            logger.warning(
                "Stripe %s failed (%s): %s",
                operation,
                e.http_status or "no response",
                error,
            )
            raise error from e

    async def get_customer(self, customer_id: str) -> dict[str, Any]:
        """Fetch a customer object (used to resolve a checkout's email)."""
        return await self._call(
            "customers.retrieve",
            self._sdk.v1.customers.retrieve_async(customer_id),
        )

    async def create_customer(self, email: str) -> dict[str, Any]:
        """Create a customer for an email."""
        return await self._call(
            "customers.create",
            self._sdk.v1.customers.create_async(params={"email": email}),
        )

    async def create_checkout_session(
        self,
        *,
        price_id: str,
        success_url: str,
        cancel_url: str,
        customer_id: str | None = None,
        customer_email: str | None = None,
    ) -> dict[str, Any]:
        """Create a subscription-mode Checkout Session.

        Args:
            price_id: Stripe price for the Pro plan.
            success_url: Redirect after payment (may contain {CHECKOUT_SESSION_ID}).
            cancel_url: Redirect if the user abandons checkout.
            customer_id: Existing customer, preferred when known.
            customer_email: Used only when there is no customer id.

        Returns:
            Session object with ``id`` and ``url``.
        """
        params: dict[str, Any] = {
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_id:
            params["customer"] = customer_id
        elif customer_email:
            params["customer_email"] = customer_email
        return await self._call(
            "checkout.sessions.create",
            self._sdk.v1.checkout.sessions.create_async(params=params),
        )

    async def get_checkout_session(self, session_id: str) -> dict[str, Any]:
        """Fetch a Checkout Session (``payment_status``, ``customer``, ...)."""
        return await self._call(
            "checkout.sessions.retrieve",
            self._sdk.v1.checkout.sessions.retrieve_async(session_id),
        )

    async def create_billing_portal_session(
        self, customer_id: str, return_url: str
    ) -> dict[str, Any]:
        """Create a customer billing portal session."""
        return await self._call(
            "billing_portal.sessions.create",
            self._sdk.v1.billing_portal.sessions.create_async(
                params={"customer": customer_id, "return_url": return_url}
            ),
        )
