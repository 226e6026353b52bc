"""Repository for the license directory (users table).

Lookups by license key, email, Stripe customer id, and Stripe subscription
id, plus creation and allow-listed field updates. Users are never deleted.
"""

from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import STATUS_INACTIVE, TIER_FREE, User

# Fields that may be updated via UserRepository.update().
# Security: Never add 'id', 'license_key', 'email', or the timestamps.
# - id/license_key: identity and bearer credential, immutable
# - email: identity used to match Stripe events
# - created_at/updated_at: managed by TimestampMixin
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "tier",
        "subscription_status",
        "stripe_customer_id",
        "stripe_subscription_id",
        "last_validated_at",
    }
)


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static: no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_license_key(db: AsyncSession, license_key: str) -> User | None:
        """Fetch a user by exact (already normalized) license key.

        Args:
            db: Async database session.
            license_key: Uppercase key with dashes.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.license_key == license_key)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def license_key_exists(db: AsyncSession, license_key: str) -> bool:
        """Check whether a license key is already issued."""
        stmt = select(User.id).where(User.license_key == license_key)
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email_or_customer_id(
        db: AsyncSession,
        email: str,
        customer_id: str | None,
    ) -> User | None:
        """Fetch a user matching either the email or the Stripe customer id.

        An email match wins when the two identify different users.
        """
        conditions = [User.email == email.lower()]
        if customer_id:
            conditions.append(User.stripe_customer_id == customer_id)
        stmt = select(User).where(or_(*conditions))
        result = await db.execute(stmt)
        users = list(result.scalars().all())
        if not users:
            return None
        for user in users:
            if user.email == email.lower():
                return user
        return users[0]

    @staticmethod
    async def get_by_subscription_id(
        db: AsyncSession, subscription_id: str
    ) -> User | None:
        """Fetch the user holding a Stripe subscription."""
        stmt = select(User).where(User.stripe_subscription_id == subscription_id)
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        license_key: str,
        email: str | None,
        tier: str = TIER_FREE,
        subscription_status: str = STATUS_INACTIVE,
        stripe_customer_id: str | None = None,
        stripe_subscription_id: str | None = None,
    ) -> User:
        """Create a new user.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            license_key: Pre-generated unique license key.
            email: User email address.
            tier: "free" or "pro".
            subscription_status: Initial subscription status.
            stripe_customer_id: Stripe customer, if known.
            stripe_subscription_id: Stripe subscription, if known.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email or license key already exists.
        """
        user = User(
            license_key=license_key,
            email=email.lower() if email else None,
            tier=tier,
            subscription_status=subscription_status,
            stripe_customer_id=stripe_customer_id,
            stripe_subscription_id=stripe_subscription_id,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def update(
        db: AsyncSession,
        user: User,
        **kwargs: str | datetime | None,
    ) -> User:
        """Update user fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            user: Loaded user to modify.
            **kwargs: Field names and values to update.

        Returns:
            The updated User.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        for field, value in kwargs.items():
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user
