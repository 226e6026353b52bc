"""AI gateway client.

Sends chat completions through an OpenAI-compatible AI gateway using the
OpenAI SDK. The gateway tags each request with the caller's user id and
reports cache hits in the ``cf-cache-status`` response header.
"""

import contextlib
import time
import uuid
from dataclasses import dataclass
from typing import Any

import openai
import structlog
from openai import AsyncOpenAI

from app.providers.errors import (
    AuthenticationError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from app.services.cost_accountant import TokenUsage

logger = structlog.get_logger()

_NO_RESPONSE = "No response found"


@dataclass(frozen=True)
class CompletionResult:
    """Parsed gateway response.

    Attributes:
        content: Assistant message text, stripped.
        usage: Token counts reported by the provider.
        cached: True if the gateway served the response from its cache.
        latency_ms: Round trip time in milliseconds.
    """

    content: str
    usage: TokenUsage
    cached: bool
    latency_ms: int


def _classify_openai_error(error: Exception) -> ProviderError:
    """Map OpenAI SDK exceptions to internal error taxonomy.

    Returns a ProviderError subclass instance (does not raise).
    The caller is responsible for raising via ``raise _classify_openai_error(e) from e``.
    """
    status_code = getattr(error, "status_code", None)

    if isinstance(error, openai.RateLimitError):
        retry_after = None
        if getattr(error, "response", None) is not None:
            retry_header = error.response.headers.get("retry-after")
            if retry_header is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(retry_header)
        return RateLimitError(str(error), retry_after_seconds=retry_after)

    if isinstance(error, openai.AuthenticationError | openai.PermissionDeniedError):
        return AuthenticationError(str(error), status_code=status_code)

    if isinstance(error, openai.APIConnectionError):
        return TransientError(str(error))

    if isinstance(error, openai.InternalServerError):
        return TransientError(str(error), status_code=status_code)

    return ProviderError(str(error), status_code=status_code)


def _extract_usage(usage: Any) -> TokenUsage:
    """Pull token counts from a completion's usage block; missing fields count as 0."""
    if usage is None:
        return TokenUsage()
    completion_details = getattr(usage, "completion_tokens_details", None)
    prompt_details = getattr(usage, "prompt_tokens_details", None)
    return TokenUsage(
        total_tokens=getattr(usage, "total_tokens", 0) or 0,
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        reasoning_tokens=getattr(completion_details, "reasoning_tokens", 0) or 0,
        cached_tokens=getattr(prompt_details, "cached_tokens", 0) or 0,
    )


def _extract_content(completion: Any) -> str:
    choices = getattr(completion, "choices", None) or []
    if not choices:
        return _NO_RESPONSE
    content = (choices[0].message.content or "").strip()
    return content or _NO_RESPONSE


class GatewayClient:
    """OpenAI-compatible gateway client with an explicit request timeout.

    Args:
        base_url: Gateway compat base URL (``.../compat``).
        api_key: Provider API key forwarded through the gateway.
        gateway_token: Optional gateway authentication token.
        timeout: Per-request deadline in seconds.
        client: Pre-built SDK client (tests).
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        gateway_token: str | None = None,
        timeout: float = 30.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._gateway_token = gateway_token
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    def _headers(self, user_id: uuid.UUID) -> dict[str, str]:
        headers = {"cf-aig-metadata-user": str(user_id)}
        if self._gateway_token:
            headers["cf-aig-authorization"] = f"Bearer {self._gateway_token}"
        return headers

    async def complete(
        self, payload: dict[str, Any], user_id: uuid.UUID
    ) -> CompletionResult:
        """Send a chat completion through the gateway.

        Args:
            payload: Chat completions request body (model, messages, limits).
            user_id: Caller, attached as gateway metadata.

        Returns:
            CompletionResult with the answer, token usage, and cache flag.

        Raises:
            ProviderError: On any SDK or HTTP failure, including timeouts.
        """
        model = payload.get("model")
        logger.info("gateway_request_start", model=model, user_id=str(user_id))
        start_time = time.monotonic()

        try:
            raw = await self.client.chat.completions.with_raw_response.create(
                **payload,
                extra_headers=self._headers(user_id),
            )
        except openai.OpenAIError as e:
            logger.error(
                "gateway_request_failed",
                model=model,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise _classify_openai_error(e) from e

        latency_ms = int((time.monotonic() - start_time) * 1000)
        completion = raw.parse()
        usage = _extract_usage(getattr(completion, "usage", None))
        cached = raw.headers.get("cf-cache-status", "").upper() == "HIT"

        logger.info(
            "gateway_request_complete",
            model=model,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cached=cached,
            latency_ms=latency_ms,
        )

        return CompletionResult(
            content=_extract_content(completion),
            usage=usage,
            cached=cached,
            latency_ms=latency_ms,
        )
