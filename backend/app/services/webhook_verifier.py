"""Stripe webhook authentication, freshness, and replay protection.

Verification runs in a fixed order and stops at the first failure:

1. Parse the ``Stripe-Signature`` header (``t=<unix>,v1=<hex>``).
2. Reject timestamps more than ``max_age`` seconds old or more than
   ``max_future`` seconds ahead of the server clock.
3. Recompute HMAC-SHA256 over ``"{t}.{raw_body}"`` and compare in
   constant time.
4. Parse the body, then insert the event id into the webhook ledger. An id
   that is already there (or loses an insert race on the unique constraint)
   is reported as already processed.

The ledger row is flushed but not committed; the caller applies the
subscription changes in the same transaction, so either both persist or
neither does.
"""

import hashlib
import hmac
import json
import logging
import re
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    ConfigurationError,
    FutureTimestampError,
    InvalidSignatureError,
    MalformedPayloadError,
    MalformedSignatureError,
    StaleTimestampError,
    WebhookAlreadyProcessedError,
)
from app.models.base import utcnow
from app.repositories.webhook_event_repository import WebhookEventRepository

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 120
DEFAULT_MAX_FUTURE_SECONDS = 30

_HEX = re.compile(r"^[0-9a-fA-F]+$")


def parse_signature_header(header: str | None) -> tuple[int, list[str]]:
    """Split a signature header into its timestamp and v1 signatures.

    Args:
        header: Raw ``Stripe-Signature`` header value.

    Returns:
        Tuple of (timestamp, list of v1 hex signatures).

    Raises:
        MalformedSignatureError: If the header is missing, has fewer than two
            parts, contains a part without ``key=value``, lacks ``t`` or
            ``v1``, or carries a non-hex signature or non-positive timestamp.
    """
    if not header:
        raise MalformedSignatureError("Missing signature header")

    parts = header.split(",")
    if len(parts) < 2:
        raise MalformedSignatureError()

    timestamp: str | None = None
    signatures: list[str] = []
    for part in parts:
        key, sep, value = part.strip().partition("=")
        if not sep or not key or not value:
            raise MalformedSignatureError()
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if timestamp is None or not signatures:
        raise MalformedSignatureError("Signature header must contain t and v1")
    if not all(_HEX.match(sig) for sig in signatures):
        raise MalformedSignatureError("Signature is not hex encoded")
    if not (timestamp.isascii() and timestamp.isdigit()) or int(timestamp) <= 0:
        raise MalformedSignatureError("Invalid signature timestamp")

    return int(timestamp), signatures


def compute_signature(secret: str, timestamp: int, raw_body: bytes) -> str:
    """Hex HMAC-SHA256 of ``"{timestamp}.{raw_body}"`` keyed by the webhook secret."""
    signed_payload = f"{timestamp}.".encode() + raw_body
    return hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()


def signatures_match(expected: str, provided: str) -> bool:
    """Constant-time comparison; differing lengths fail without comparing content."""
    if len(expected) != len(provided):
        return False
    return hmac.compare_digest(expected.encode(), provided.encode())


class WebhookVerifier:
    """Verifies Stripe webhook deliveries and records them in the ledger.

    Args:
        db: Async database session shared with the subscription update.
        secret: Stripe webhook signing secret (whsec_...).
        max_age_seconds: Oldest accepted timestamp, relative to now.
        max_future_seconds: Furthest-ahead accepted timestamp.
        clock: Source of "now".
    """

    def __init__(
        self,
        db: AsyncSession,
        secret: str,
        *,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
        max_future_seconds: int = DEFAULT_MAX_FUTURE_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._secret = secret
        self._max_age = max_age_seconds
        self._max_future = max_future_seconds
        self._clock = clock

    def check_signature(self, raw_body: bytes, signature_header: str | None) -> int:
        """Run the header, freshness, and HMAC checks.

        Args:
            raw_body: Request body exactly as received.
            signature_header: ``Stripe-Signature`` header value.

        Returns:
            The verified signature timestamp.

        Raises:
            ConfigurationError: If no webhook secret is configured.
            MalformedSignatureError: If the header cannot be parsed.
            StaleTimestampError: If the timestamp is too old.
            FutureTimestampError: If the timestamp is too far ahead.
            InvalidSignatureError: If no v1 signature matches.
        """
        if not self._secret:
            raise ConfigurationError("STRIPE_WEBHOOK_SECRET")

        timestamp, signatures = parse_signature_header(signature_header)

        diff = int(self._clock().timestamp()) - timestamp
        if diff > self._max_age:
            raise StaleTimestampError(
                f"Webhook timestamp too old ({diff}s > {self._max_age}s)"
            )
        if diff < -self._max_future:
            raise FutureTimestampError(
                f"Webhook timestamp is {-diff}s in the future"
            )

        expected = compute_signature(self._secret, timestamp, raw_body)
        if not any(signatures_match(expected, sig) for sig in signatures):
            raise InvalidSignatureError()

        return timestamp

    async def verify(
        self, raw_body: bytes, signature_header: str | None
    ) -> dict[str, Any]:
        """Authenticate a delivery and claim its event id.

        Args:
            raw_body: Request body exactly as received.
            signature_header: ``Stripe-Signature`` header value.

        Returns:
            The parsed event object.

        Raises:
            WebhookVerificationError: Any signature, freshness, or payload failure.
            WebhookAlreadyProcessedError: If the event id is already in the ledger.
            ConfigurationError: If no webhook secret is configured.
        """
        timestamp = self.check_signature(raw_body, signature_header)

        try:
            event = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedPayloadError("Webhook body is not valid JSON") from exc
        if not isinstance(event, dict):
            raise MalformedPayloadError("Webhook body must be a JSON object")
        event_id = event.get("id")
        if not isinstance(event_id, str) or not event_id:
            raise MalformedPayloadError("Webhook event has no id")

        if await WebhookEventRepository.exists(self._db, event_id):
            raise WebhookAlreadyProcessedError(event_id)

        event_type = event.get("type")
        try:
            await WebhookEventRepository.create(
                self._db,
                event_id=event_id,
                provider_timestamp=timestamp,
                event_type=event_type if isinstance(event_type, str) else None,
            )
        except IntegrityError as exc:
            # Lost the race against a concurrent delivery of the same event
            await self._db.rollback()
            raise WebhookAlreadyProcessedError(event_id) from exc

        logger.info("Accepted webhook event %s (%s)", event_id, event_type)
        return event
