"""License key request/response schemas.

Covers free-key issuance, key validation, and the current-user summary.
"""

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from app.schemas.base import CamelSchema

# Throwaway inbox providers rejected at free-key issuance
DISPOSABLE_EMAIL_DOMAINS: frozenset[str] = frozenset(
    {
        "tempmail.com",
        "throwaway.email",
        "guerrillamail.com",
        "10minutemail.com",
        "10minutemail.net",
        "mailinator.com",
        "maildrop.cc",
        "temp-mail.org",
        "getnada.com",
        "trashmail.com",
        "sharklasers.com",
        "guerrillamailblock.com",
        "grr.la",
        "fakeinbox.com",
        "yopmail.com",
        "mohmal.com",
        "dispostable.com",
        "emailondeck.com",
        "mintemail.com",
        "mytemp.email",
        "tempmail.net",
        "spamgourmet.com",
        "mailnesia.com",
        "throwawaymail.com",
        "temp-mail.io",
        "guerrillamail.de",
        "inboxkitten.com",
        "getairmail.com",
        "anonbox.net",
    }
)


def is_disposable_email(email: str) -> bool:
    """True if the email's domain is, or is a subdomain of, a disposable provider."""
    domain = email.rsplit("@", 1)[-1].lower()
    return any(
        domain == blocked or domain.endswith(f".{blocked}")
        for blocked in DISPOSABLE_EMAIL_DOMAINS
    )


class EmailRequest(CamelSchema):
    """Request body carrying a single email address.

    Used by POST /auth/create-free-key and POST /subscription/create-checkout.
    The email is trimmed, validated, and lowercased.
    """

    email: EmailStr = Field(max_length=320)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        if is_disposable_email(value):
            msg = "Disposable email addresses are not allowed"
            raise ValueError(msg)
        return value.lower()


class ValidateKeyRequest(CamelSchema):
    """Request body for POST /auth/validate-key."""

    license_key: str = Field(min_length=1, max_length=64)


class FreeKeyResponse(CamelSchema):
    """Response for POST /auth/create-free-key.

    ``license_key`` is only returned for newly issued keys. For an email
    that already has a key, the key is re-sent by email instead so the
    endpoint cannot be used to look up someone else's key.
    """

    license_key: str | None
    tier: str
    existing: bool
    message: str


class UserSummary(CamelSchema):
    """License holder as seen by the extension."""

    id: UUID
    email: str | None
    tier: str
    subscription_status: str
    license_key: str
    created_at: datetime | None = None
    last_validated_at: datetime | None = None
