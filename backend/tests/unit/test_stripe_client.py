"""Tests for the Stripe client wrapper.

The SDK client is a MagicMock; SDK exceptions are real stripe classes so
the error mapping is exercised against the library's own hierarchy.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import stripe

from app.providers.errors import (
    AuthenticationError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from app.providers.stripe_client import StripeClient

_SECRET_KEY = "sk_test_123"  # nosec B105


@pytest.fixture
def sdk() -> MagicMock:
    """SDK client with canned v1 service responses."""
    sdk = MagicMock()
    sdk.v1.customers.retrieve_async = AsyncMock(
        return_value={"id": "cus_1", "email": "a@gmail.com"}
    )
    sdk.v1.customers.create_async = AsyncMock(return_value={"id": "cus_2"})
    sdk.v1.checkout.sessions.create_async = AsyncMock(
        return_value={"id": "cs_1", "url": "https://checkout.test"}
    )
    sdk.v1.checkout.sessions.retrieve_async = AsyncMock(
        return_value={"id": "cs_1", "payment_status": "paid"}
    )
    sdk.v1.billing_portal.sessions.create_async = AsyncMock(
        return_value={"url": "https://billing.test"}
    )
    return sdk


def _client(sdk: MagicMock) -> StripeClient:
    return StripeClient(_SECRET_KEY, client=sdk)


class TestConstruction:
    def test_builds_sdk_client_with_httpx_transport(self):
        client = StripeClient(_SECRET_KEY, timeout=3.0)
        assert isinstance(client._sdk, stripe.StripeClient)


class TestRequests:
    """Parameters passed to each SDK call."""

    @pytest.mark.asyncio
    async def test_get_customer(self, sdk: MagicMock):
        customer = await _client(sdk).get_customer("cus_1")

        assert customer["email"] == "a@gmail.com"
        sdk.v1.customers.retrieve_async.assert_awaited_once_with("cus_1")

    @pytest.mark.asyncio
    async def test_create_customer(self, sdk: MagicMock):
        customer = await _client(sdk).create_customer("a@gmail.com")

        assert customer["id"] == "cus_2"
        sdk.v1.customers.create_async.assert_awaited_once_with(
            params={"email": "a@gmail.com"}
        )

    @pytest.mark.asyncio
    async def test_checkout_session_prefers_customer_id(self, sdk: MagicMock):
        session = await _client(sdk).create_checkout_session(
            price_id="price_pro",
            success_url="https://ext.test/ok",
            cancel_url="https://ext.test/cancel",
            customer_id="cus_1",
            customer_email="a@gmail.com",
        )

        assert session["url"] == "https://checkout.test"
        params = sdk.v1.checkout.sessions.create_async.await_args.kwargs["params"]
        assert params == {
            "line_items": [{"price": "price_pro", "quantity": 1}],
            "mode": "subscription",
            "success_url": "https://ext.test/ok",
            "cancel_url": "https://ext.test/cancel",
            "customer": "cus_1",
        }

    @pytest.mark.asyncio
    async def test_checkout_session_falls_back_to_email(self, sdk: MagicMock):
        await _client(sdk).create_checkout_session(
            price_id="price_pro",
            success_url="https://ext.test/ok",
            cancel_url="https://ext.test/cancel",
            customer_email="a@gmail.com",
        )

        params = sdk.v1.checkout.sessions.create_async.await_args.kwargs["params"]
        assert params["customer_email"] == "a@gmail.com"
        assert "customer" not in params

    @pytest.mark.asyncio
    async def test_get_checkout_session(self, sdk: MagicMock):
        session = await _client(sdk).get_checkout_session("cs_1")

        assert session["payment_status"] == "paid"
        sdk.v1.checkout.sessions.retrieve_async.assert_awaited_once_with("cs_1")

    @pytest.mark.asyncio
    async def test_billing_portal_session(self, sdk: MagicMock):
        portal = await _client(sdk).create_billing_portal_session(
            "cus_1", "https://ext.test/activate.html"
        )

        assert portal["url"] == "https://billing.test"
        sdk.v1.billing_portal.sessions.create_async.assert_awaited_once_with(
            params={"customer": "cus_1", "return_url": "https://ext.test/activate.html"}
        )


class TestErrors:
    """SDK exceptions map onto the provider error taxonomy."""

    @pytest.mark.parametrize(
        ("sdk_error", "error_cls", "status"),
        [
            (stripe.AuthenticationError("nope", http_status=401), AuthenticationError, 401),
            (stripe.PermissionError("nope", http_status=403), AuthenticationError, 403),
            (stripe.RateLimitError("nope", http_status=429), RateLimitError, 429),
            (stripe.APIError("nope", http_status=500), TransientError, 500),
            (stripe.APIConnectionError("nope"), TransientError, None),
        ],
    )
    @pytest.mark.asyncio
    async def test_error_mapping(self, sdk: MagicMock, sdk_error, error_cls, status):
        sdk.v1.customers.retrieve_async = AsyncMock(side_effect=sdk_error)

        with pytest.raises(error_cls) as exc_info:
            await _client(sdk).get_customer("cus_1")

        assert exc_info.value.status_code == status
        assert "nope" in str(exc_info.value)
        assert exc_info.value.__cause__ is sdk_error

    @pytest.mark.asyncio
    async def test_missing_resource_is_plain_provider_error(self, sdk: MagicMock):
        sdk.v1.checkout.sessions.retrieve_async = AsyncMock(
            side_effect=stripe.InvalidRequestError(
                "No such checkout.session: cs_missing", param="id", http_status=404
            )
        )

        with pytest.raises(ProviderError) as exc_info:
            await _client(sdk).get_checkout_session("cs_missing")

        assert type(exc_info.value) is ProviderError
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_non_stripe_errors_propagate(self, sdk: MagicMock):
        sdk.v1.customers.create_async = AsyncMock(side_effect=RuntimeError("bug"))

        with pytest.raises(RuntimeError):
            await _client(sdk).create_customer("a@gmail.com")
