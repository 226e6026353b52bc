"""External service clients.

Exports:
    Error classes for provider error handling
    GatewayClient for AI completions
    StripeClient for billing
"""

from app.providers.errors import (
    AuthenticationError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from app.providers.gateway_client import CompletionResult, GatewayClient
from app.providers.stripe_client import StripeClient

__all__ = [
    # Errors
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "TransientError",
    # Clients
    "CompletionResult",
    "GatewayClient",
    "StripeClient",
]
