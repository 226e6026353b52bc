"""Pydantic request/response schemas for API endpoints."""

from app.schemas.ai import (
    AnalyticsResponse,
    CompletionRequestBody,
    CompletionResponse,
    ModelsResponse,
    UsageSnapshotResponse,
)
from app.schemas.auth import (
    EmailRequest,
    FreeKeyResponse,
    UserSummary,
    ValidateKeyRequest,
)
from app.schemas.subscription import (
    CheckoutResponse,
    PlansResponse,
    PortalResponse,
    WebhookAck,
)

__all__ = [
    # AI
    "AnalyticsResponse",
    "CompletionRequestBody",
    "CompletionResponse",
    "ModelsResponse",
    "UsageSnapshotResponse",
    # Auth
    "EmailRequest",
    "FreeKeyResponse",
    "UserSummary",
    "ValidateKeyRequest",
    # Subscription
    "CheckoutResponse",
    "PlansResponse",
    "PortalResponse",
    "WebhookAck",
]
