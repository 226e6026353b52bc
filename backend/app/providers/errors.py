"""Provider error taxonomy.

Error classes raised by the AI gateway and Stripe clients. Routes translate
them into UpstreamError (502) at the API boundary.

WHY SEPARATE ERROR CLASSES:
- Enables callers to handle errors differently based on type
- Clear distinction between retryable and non-retryable errors
- Provider-agnostic error handling (clients map to these)
"""


__all__ = [
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "TransientError",
]


class ProviderError(Exception):
    """Base class for all provider errors.

    All provider-specific exceptions inherit from this class,
    allowing callers to catch all provider errors with a single handler.

    Attributes:
        status_code: HTTP status returned by the provider, when there was one.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(ProviderError):
    """Provider rate limit exceeded.

    WHY SEPARATE FROM TRANSIENT:
    - May have specific retry_after_seconds hint from provider
    """

    def __init__(
        self,
        message: str,
        retry_after_seconds: float | None = None,
        status_code: int | None = 429,
    ):
        """Initialize RateLimitError.

        Args:
            message: Error description from the provider.
            retry_after_seconds: Optional hint from provider on when to retry.
            status_code: HTTP status from the provider.
        """
        super().__init__(message, status_code=status_code)
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(ProviderError):
    """Invalid or missing provider credentials.

    WHY NOT RETRYABLE:
    - Requires operator intervention (new API key)
    """

    pass


class TransientError(ProviderError):
    """Temporary failure (network, timeout, 5xx).

    WHY SEPARATE:
    - Safe to retry later
    """

    pass
