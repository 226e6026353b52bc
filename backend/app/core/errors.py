"""API error classes.

Every failure the API reports is an APIError subclass carrying a
machine-readable code, a message, an HTTP status, and optional details.
The exception handler in app.main renders them into the error envelope.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Type-safe error handling in services/repositories
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "UNAUTHORIZED").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors. ``field`` names the offending
    input and is echoed in details.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=[{"field": field}] if field else None,
        )
        self.field = field


class UnauthorizedError(APIError):
    """Authentication required (401).

    The message is always the same regardless of why authentication failed
    (missing header, malformed key, unknown key).
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class QuotaExceededError(APIError):
    """Usage quota exhausted for the current window (429).

    Details carry limit/used/limitType/tier so clients can back off.

    Args:
        limit: Configured limit for the window.
        used: Requests already counted in the window.
        limit_type: "per_day" or "per_minute".
        tier: Caller's tier.
    """

    def __init__(self, *, limit: int, used: int, limit_type: str, tier: str) -> None:
        if limit_type == "per_minute":
            message = "Rate limit reached. Please wait a moment before trying again."
        else:
            message = "Daily limit reached"
        super().__init__(
            code="QUOTA_EXCEEDED",
            message=message,
            status_code=429,
            details=[
                {
                    "limit": limit,
                    "used": used,
                    "limitType": limit_type,
                    "tier": tier,
                }
            ],
        )
        self.limit = limit
        self.used = used
        self.limit_type = limit_type


class WebhookVerificationError(APIError):
    """Webhook rejected: forged, stale, or malformed (400).

    Returned as 400 so the payment provider does not retry a delivery
    that can never succeed.
    """

    def __init__(
        self,
        message: str = "Webhook verification failed",
        code: str = "WEBHOOK_VERIFICATION_FAILED",
    ) -> None:
        super().__init__(code=code, message=message, status_code=400)


class MalformedSignatureError(WebhookVerificationError):
    """Signature header missing, incomplete, or unparseable."""

    def __init__(self, message: str = "Invalid signature header format") -> None:
        super().__init__(message=message, code="WEBHOOK_MALFORMED_SIGNATURE")


class StaleTimestampError(WebhookVerificationError):
    """Signature timestamp outside the accepted window."""

    def __init__(self, message: str = "Webhook timestamp too old") -> None:
        super().__init__(message=message, code="WEBHOOK_STALE_TIMESTAMP")


class FutureTimestampError(WebhookVerificationError):
    """Signature timestamp too far in the future."""

    def __init__(self, message: str = "Webhook timestamp is in the future") -> None:
        super().__init__(message=message, code="WEBHOOK_FUTURE_TIMESTAMP")


class InvalidSignatureError(WebhookVerificationError):
    """HMAC did not match."""

    def __init__(self) -> None:
        super().__init__(
            message="Invalid webhook signature",
            code="WEBHOOK_INVALID_SIGNATURE",
        )


class MalformedPayloadError(WebhookVerificationError):
    """Signed body is not a JSON object with an id."""

    def __init__(self, message: str = "Invalid webhook payload") -> None:
        super().__init__(message=message, code="WEBHOOK_MALFORMED_PAYLOAD")


class WebhookAlreadyProcessedError(WebhookVerificationError):
    """Event id already present in the webhook ledger.

    The webhook route treats this as a no-op success, not a failure.
    """

    def __init__(self, event_id: str) -> None:
        super().__init__(
            message=f"Webhook event '{event_id}' already processed",
            code="WEBHOOK_ALREADY_PROCESSED",
        )
        self.event_id = event_id


class UpstreamError(APIError):
    """Completion provider or payment provider failed (502).

    The provider's message is passed through for diagnostics.
    """

    def __init__(self, service: str, message: str) -> None:
        super().__init__(
            code="UPSTREAM_ERROR",
            message=f"{service} request failed: {message}",
            status_code=502,
        )
        self.service = service


class PersistenceError(APIError):
    """Store unavailable (500).

    Raised by the usage meter so quota checks fail closed.
    """

    def __init__(self, message: str = "Usage store unavailable") -> None:
        super().__init__(
            code="PERSISTENCE_ERROR",
            message=message,
            status_code=500,
        )


class LicenseKeyGenerationError(APIError):
    """No unique license key found within the attempt budget (500)."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            code="LICENSE_KEY_GENERATION_FAILED",
            message=f"Failed to generate a unique license key after {attempts} attempts",
            status_code=500,
        )
        self.attempts = attempts


class ConfigurationError(APIError):
    """Required server configuration is missing (500)."""

    def __init__(self, setting: str) -> None:
        super().__init__(
            code="CONFIGURATION_ERROR",
            message=f"Server misconfigured: {setting} is not set",
            status_code=500,
        )
        self.setting = setting
