"""License key issuance.

Generates keys that are unique in the license directory and provisions
free-tier identities. Generation retries a bounded number of times and
fails loudly rather than ever returning a colliding key.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import LicenseKeyGenerationError
from app.core.license_keys import generate_license_key
from app.models.user import STATUS_INACTIVE, TIER_FREE, User
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

MAX_KEY_ATTEMPTS = 10


@dataclass(frozen=True)
class FreeKeyResult:
    """Outcome of a free-key request.

    Attributes:
        user: The new or already-registered user for the email.
        existing: True if the email was already registered.
    """

    user: User
    existing: bool


class LicenseService:
    """Issues license keys and provisions identities.

    Args:
        db: Async database session.
        key_generator: Random key source. Injectable for collision tests.
    """

    def __init__(
        self,
        db: AsyncSession,
        key_generator: Callable[[], str] = generate_license_key,
    ) -> None:
        self._db = db
        self._key_generator = key_generator

    async def generate_unique_key(self) -> str:
        """Generate a key not yet present in the license directory.

        Returns:
            An unused license key.

        Raises:
            LicenseKeyGenerationError: If every attempt collided.
        """
        for _ in range(MAX_KEY_ATTEMPTS):
            key = self._key_generator()
            if not await UserRepository.license_key_exists(self._db, key):
                return key
        logger.error("License key generation exhausted %d attempts", MAX_KEY_ATTEMPTS)
        raise LicenseKeyGenerationError(MAX_KEY_ATTEMPTS)

    async def create_free_key(self, email: str) -> FreeKeyResult:
        """Provision a free identity for an email, or return the existing one.

        Args:
            email: Validated email address.

        Returns:
            FreeKeyResult; ``existing`` is True when the email already had a key.
        """
        existing = await UserRepository.get_by_email(self._db, email)
        if existing is not None:
            return FreeKeyResult(user=existing, existing=True)

        license_key = await self.generate_unique_key()
        user = await UserRepository.create(
            self._db,
            license_key=license_key,
            email=email,
            tier=TIER_FREE,
            subscription_status=STATUS_INACTIVE,
        )
        logger.info("Created free license key for user %s", user.id)
        return FreeKeyResult(user=user, existing=False)
