"""License key authentication.

Turns an ``Authorization: LicenseKey <KEY>`` header value into a User.
Lookup goes through the unique index on license_key, so no constant-time
comparison is needed here (contrast with WebhookVerifier).
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.license_keys import is_valid_license_key, normalize_license_key
from app.models.base import utcnow
from app.models.user import User
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

AUTH_SCHEME = "LicenseKey "


def extract_license_key(credential: str | None) -> str | None:
    """Pull a normalized, well-formed key out of an Authorization value.

    Args:
        credential: Raw header value, e.g. ``"LicenseKey abcd-efgh-..."``.

    Returns:
        Normalized key, or None if the scheme is missing or the key is malformed.
    """
    if not credential or not credential.startswith(AUTH_SCHEME):
        return None
    key = normalize_license_key(credential[len(AUTH_SCHEME) :])
    if not is_valid_license_key(key):
        return None
    return key


class Authenticator:
    """Resolves license keys to users.

    Args:
        db: Async database session.
        clock: Source of "now" for validation timestamps.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._clock = clock

    async def authenticate(self, credential: str | None) -> User | None:
        """Resolve an Authorization header value to a user.

        Missing, malformed, and unknown credentials all return None; the
        caller turns that into a 401. Has no side effects.

        Args:
            credential: Raw Authorization header value.

        Returns:
            Matching User, or None.
        """
        key = extract_license_key(credential)
        if key is None:
            return None
        return await UserRepository.get_by_license_key(self._db, key)

    async def validate(self, license_key: str) -> User | None:
        """Look up a bare license key and stamp last_validated_at.

        Args:
            license_key: User-supplied key (any case, any whitespace).

        Returns:
            Matching User with last_validated_at updated, or None.
        """
        key = normalize_license_key(license_key)
        if not is_valid_license_key(key):
            return None
        user = await UserRepository.get_by_license_key(self._db, key)
        if user is None:
            logger.info("License key validation failed")
            return None
        user = await UserRepository.update(
            self._db, user, last_validated_at=self._clock()
        )
        logger.info("License key validated for user %s", user.id)
        return user
