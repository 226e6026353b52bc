"""Rate limiting configuration using slowapi.

Security: Limits brute-force license key guessing and free-key farming on
the unauthenticated auth and checkout endpoints. Completion quotas are
enforced separately by the usage meter against the usage ledger.

Usage in routers:
    from app.core.rate_limiting import limiter

    @router.post("/validate-key")
    @limiter.limit(settings.rate_limit_validate_key)
    async def validate_key(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from app.core.config import settings
from app.core.responses import ErrorDetail, ErrorResponse

_DEFAULT_RETRY_AFTER_SECONDS = 60


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Keys on the client IP. The limited endpoints are all reachable without
    a license key, so there is no stable user identity to key on.

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    return f"ip:{get_remote_address(request)}"


# Process-wide limiter
# In-memory storage: counters are per process, so limits are per instance
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def _retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window, e.g. 3600 for "3/hour".

    slowapi wraps the ``limits`` item that tripped; anything without one
    falls back to a minute.
    """
    try:
        return int(exc.limit.limit.get_expiry())
    except (AttributeError, TypeError, ValueError):
        return _DEFAULT_RETRY_AFTER_SECONDS


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Security: Returns 429 Too Many Requests with standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and a Retry-After header set to the
        limit's window.
    """
    return JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="RATE_LIMITED",
                message=f"Rate limit exceeded: {exc.detail}",
            )
        ).model_dump(),
        headers={"Retry-After": str(_retry_after_seconds(exc))},
    )
