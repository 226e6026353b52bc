"""Email sending via Resend API.

Plain-text license key delivery for free-key issuance and Pro upgrades.
Sending is fire-and-forget: failures are logged, never raised, so a mail
outage cannot fail a request or a webhook that has already committed.
"""

import logging

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 5.0

_SUBJECTS = {
    "free": "Your free license key",
    "pro": "Welcome to Pro - your license key",
}


def _build_body(license_key: str, tier: str) -> str:
    if tier == "pro":
        intro = (
            "Thanks for upgrading to Pro! Your subscription is active and "
            "your license key now has Pro access."
        )
    else:
        intro = "Here is your free license key."
    return (
        f"{intro}\n\n"
        f"License key: {license_key}\n\n"
        "Paste this key into the extension settings to activate it. "
        "Keep it private: anyone with the key can use your quota."
    )


async def send_license_key_email(*, to_email: str, license_key: str, tier: str) -> bool:
    """Send a license key email via Resend.

    Skipped (returns False) when no Resend API key is configured.

    Args:
        to_email: Recipient email address.
        license_key: Key to deliver.
        tier: ``"free"`` or ``"pro"``; selects subject and copy.

    Returns:
        True if Resend accepted the message, False otherwise.
    """
    api_key = settings.resend_api_key.get_secret_value()
    if not api_key:
        logger.info("Resend not configured; skipping license key email")
        return False

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": _SUBJECTS.get(tier, _SUBJECTS["free"]),
                    "text": _build_body(license_key, tier),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except Exception:
        logger.warning("Failed to send license key email", exc_info=True)
        return False
    return True
