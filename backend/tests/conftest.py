"""Shared test fixtures.

Database tests run against in-memory SQLite through aiosqlite. StaticPool
keeps a single connection, so every session in a test sees the same
database. API tests drive the ASGI app through httpx with the database,
gateway, and Stripe dependencies overridden.
"""

import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.models.base import Base
from app.models.usage import UsageRecord
from app.models.user import STATUS_ACTIVE, STATUS_INACTIVE, TIER_FREE, TIER_PRO, User
from app.models.webhook_event import WebhookEvent
from app.providers.gateway_client import CompletionResult
from app.services.cost_accountant import TokenUsage

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FREE_LICENSE_KEY = "FREE-AAAA-BBBB-CCCC-DDDD"
PRO_LICENSE_KEY = "PRRR-AAAA-BBBB-CCCC-DDDD"

# Security: test-only signing secret
TEST_WEBHOOK_SECRET = "whsec_test_secret"  # nosec B105  # gitleaks:allow

FIXED_NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=UTC)


def auth_header(license_key: str) -> dict[str, str]:
    """Authorization header for a license key."""
    return {"Authorization": f"LicenseKey {license_key}"}


async def webhook_event_count(db: AsyncSession, event_id: str) -> int:
    """Number of ledger rows for an event id."""
    result = await db.execute(
        select(func.count())
        .select_from(WebhookEvent)
        .where(WebhookEvent.event_id == event_id)
    )
    return result.scalar_one()


async def usage_records_for(db: AsyncSession, user_id: uuid.UUID) -> list[UsageRecord]:
    """A user's usage records, newest first."""
    result = await db.execute(
        select(UsageRecord)
        .where(UsageRecord.user_id == user_id)
        .order_by(UsageRecord.created_at.desc())
    )
    return list(result.scalars().all())


def make_completion_result(
    content: str = "42",
    *,
    cached: bool = False,
    input_tokens: int = 1000,
    output_tokens: int = 500,
    cached_tokens: int = 200,
    reasoning_tokens: int = 100,
) -> CompletionResult:
    """Build a gateway result with a plausible usage block."""
    return CompletionResult(
        content=content,
        usage=TokenUsage(
            total_tokens=input_tokens + output_tokens,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            reasoning_tokens=reasoning_tokens,
            cached_tokens=cached_tokens,
        ),
        cached=cached,
        latency_ms=250,
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create an in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def free_user(db_session: AsyncSession) -> User:
    """Free-tier user with a known license key."""
    user = User(
        license_key=FREE_LICENSE_KEY,
        email="alice@gmail.com",
        tier=TIER_FREE,
        subscription_status=STATUS_INACTIVE,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def pro_user(db_session: AsyncSession) -> User:
    """Pro user with an active subscription and Stripe ids."""
    user = User(
        license_key=PRO_LICENSE_KEY,
        email="bob@gmail.com",
        tier=TIER_PRO,
        subscription_status=STATUS_ACTIVE,
        stripe_customer_id="cus_bob",
        stripe_subscription_id="sub_bob",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest.fixture
def mock_gateway() -> MagicMock:
    """Gateway client whose complete() returns a canned result."""
    gateway = MagicMock()
    gateway.complete = AsyncMock(return_value=make_completion_result())
    return gateway


@pytest.fixture
def mock_stripe() -> MagicMock:
    """Stripe client with canned checkout, customer, and portal responses."""
    stripe = MagicMock()
    stripe.create_customer = AsyncMock(return_value={"id": "cus_new"})
    stripe.get_customer = AsyncMock(return_value={"id": "cus_new", "email": None})
    stripe.create_checkout_session = AsyncMock(
        return_value={"id": "cs_test_1", "url": "https://checkout.stripe.com/c/cs_test_1"}
    )
    stripe.get_checkout_session = AsyncMock(
        return_value={
            "id": "cs_test_1",
            "payment_status": "paid",
            "customer_details": {"email": "carol@gmail.com"},
        }
    )
    stripe.create_billing_portal_session = AsyncMock(
        return_value={"url": "https://billing.stripe.com/p/session_1"}
    )
    return stripe


@pytest_asyncio.fixture
async def client(
    db_engine,
    mock_gateway: MagicMock,
    mock_stripe: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with database, gateway, and Stripe overridden.

    The webhook secret is set to TEST_WEBHOOK_SECRET for the duration of
    the test.

    Yields:
        AsyncClient for making API requests.
    """
    from pydantic import SecretStr

    from app.api.deps import (
        get_gateway_client,
        get_optional_stripe_client,
        get_stripe_client,
    )
    from app.core.config import settings
    from app.core.database import get_db
    from app.main import app

    test_session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    # Same commit/rollback contract as the real get_db
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_client] = lambda: mock_gateway
    app.dependency_overrides[get_stripe_client] = lambda: mock_stripe
    app.dependency_overrides[get_optional_stripe_client] = lambda: mock_stripe

    original_secret = settings.stripe_webhook_secret
    original_price = settings.stripe_price_pro
    settings.stripe_webhook_secret = SecretStr(TEST_WEBHOOK_SECRET)
    settings.stripe_price_pro = "price_pro_test"

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    settings.stripe_webhook_secret = original_secret
    settings.stripe_price_pro = original_price
    app.dependency_overrides.clear()


# =============================================================================
# Autouse Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Rate limiting is tested separately; disable for other tests to avoid
    flaky failures from rate limit triggers.

    Yields:
        None (autouse fixture).
    """
    from app.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled


@pytest.fixture(autouse=True)
def no_outbound_email(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    """Replace the license key email sender in the routes with a mock."""
    sender = AsyncMock(return_value=True)
    monkeypatch.setattr("app.api.v1.auth.send_license_key_email", sender)
    monkeypatch.setattr("app.api.v1.subscription.send_license_key_email", sender)
    return sender
