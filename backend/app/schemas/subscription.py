"""Billing request/response schemas."""

from pydantic import Field

from app.schemas.base import CamelSchema


class CheckoutResponse(CamelSchema):
    """Response for POST /subscription/create-checkout."""

    url: str
    session_id: str


class PortalResponse(CamelSchema):
    """Response for GET /subscription/portal."""

    url: str


class Plan(CamelSchema):
    tier: str
    name: str
    price: float
    daily_limit: int | None
    rate_limit: str | None = None
    features: list[str]
    recommended: bool = False


class PlansResponse(CamelSchema):
    """Response for GET /subscription/plans."""

    plans: list[Plan]


class WebhookAck(CamelSchema):
    """Response for POST /subscription/webhook."""

    received: bool = True
    duplicate: bool = False
    action: str | None = None


class VerifyPaymentRequest(CamelSchema):
    """Request body for POST /subscription/verify-payment."""

    session_id: str = Field(min_length=1, max_length=255)


class VerifyPaymentResponse(CamelSchema):
    """Response for POST /subscription/verify-payment.

    The license key itself is only ever delivered by email.
    """

    session_id: str
    payment_status: str
    email: str | None = None
