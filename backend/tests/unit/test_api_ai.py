"""Tests for the AI completion endpoints.

POST /api/v1/ai/complete (and /solve), GET /api/v1/ai/usage,
GET /api/v1/ai/models, GET /api/v1/ai/analytics.

The gateway is a mock (see conftest.mock_gateway); quota, pricing, and
usage recording run against the real in-memory database.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.user import User
from app.providers.errors import TransientError
from app.repositories.usage_repository import UsageRepository
from tests.conftest import (
    FREE_LICENSE_KEY,
    PRO_LICENSE_KEY,
    auth_header,
    usage_records_for,
)

_COMPLETE_URL = "/api/v1/ai/complete"
_IMAGE = "data:image/png;base64,iVBORw0KGgo="


# =============================================================================
# Helpers
# =============================================================================


async def _fill_usage(db: AsyncSession, user: User, count: int) -> None:
    for _ in range(count):
        await UsageRepository.create(
            db,
            user_id=user.id,
            prompt_type="answer",
            model="low",
            input_method="image",
            tokens_used=10,
            input_tokens=5,
            output_tokens=5,
            reasoning_tokens=0,
            cached_tokens=0,
            total_cost=Decimal("0.000002"),
            response_time_ms=100,
            cached=False,
            created_at=utcnow(),
        )
    await db.commit()


# =============================================================================
# POST /complete
# =============================================================================


class TestComplete:
    """Tests for the completion endpoint."""

    @pytest.mark.asyncio
    async def test_free_user_completion(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        free_user: User,
        mock_gateway: MagicMock,
    ):
        response = await client.post(
            _COMPLETE_URL,
            json={"imageData": _IMAGE, "promptType": "answer", "reasoningLevel": 1},
            headers=auth_header(FREE_LICENSE_KEY),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["answer"] == "42"
        assert data["model"] == "openai/gpt-5-nano"
        assert data["cached"] is False
        assert data["responseTime"] == 250
        assert data["usage"] == {
            "tokensUsed": 1500,
            "remainingToday": 9,
            "dailyLimit": 10,
            "usedToday": 1,
            "limitType": "per_day",
        }

        payload, user_id = mock_gateway.complete.await_args.args
        assert user_id == free_user.id
        assert payload["reasoning_effort"] == "low"

        records = await usage_records_for(db_session, free_user.id)
        assert len(records) == 1
        assert records[0].model == "low"
        assert records[0].input_method == "image"
        assert records[0].total_cost == Decimal("0.000241")

    @pytest.mark.asyncio
    async def test_solve_alias(self, client: AsyncClient, free_user: User):  # noqa: ARG002
        response = await client.post(
            "/api/v1/ai/solve",
            json={"ocrText": "2 + 2 = ?"},
            headers=auth_header(FREE_LICENSE_KEY),
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_pro_user_usage_block_has_no_daily_fields(
        self, client: AsyncClient, pro_user: User  # noqa: ARG002
    ):
        response = await client.post(
            _COMPLETE_URL,
            json={"question": "Explain TCP", "promptType": "ask"},
            headers=auth_header(PRO_LICENSE_KEY),
        )

        usage = response.json()["data"]["usage"]
        assert usage["limitType"] == "per_minute"
        assert usage["remainingToday"] is None
        assert usage["dailyLimit"] is None
        assert usage["usedToday"] is None

    @pytest.mark.asyncio
    async def test_eleventh_free_request_is_429_and_gateway_not_called(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        free_user: User,
        mock_gateway: MagicMock,
    ):
        await _fill_usage(db_session, free_user, 10)

        response = await client.post(
            _COMPLETE_URL,
            json={"imageData": _IMAGE},
            headers=auth_header(FREE_LICENSE_KEY),
        )

        assert response.status_code == 429
        error = response.json()["error"]
        assert error["code"] == "QUOTA_EXCEEDED"
        assert error["details"] == [
            {"limit": 10, "used": 10, "limitType": "per_day", "tier": "free"}
        ]
        mock_gateway.complete.assert_not_awaited()
        assert len(await usage_records_for(db_session, free_user.id)) == 10

    @pytest.mark.asyncio
    async def test_unauthenticated_is_401(self, client: AsyncClient, mock_gateway: MagicMock):
        response = await client.post(_COMPLETE_URL, json={"imageData": _IMAGE})
        assert response.status_code == 401
        mock_gateway.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_request_is_400(
        self, client: AsyncClient, free_user: User  # noqa: ARG002
    ):
        response = await client.post(
            _COMPLETE_URL, json={"question": "  "}, headers=auth_header(FREE_LICENSE_KEY)
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_gateway_failure_is_502_and_not_recorded(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        free_user: User,
        mock_gateway: MagicMock,
    ):
        mock_gateway.complete = AsyncMock(side_effect=TransientError("upstream timeout"))

        response = await client.post(
            _COMPLETE_URL,
            json={"imageData": _IMAGE},
            headers=auth_header(FREE_LICENSE_KEY),
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "UPSTREAM_ERROR"
        assert await usage_records_for(db_session, free_user.id) == []


# =============================================================================
# GET /usage
# =============================================================================


class TestUsage:
    """Tests for the usage snapshot endpoint."""

    @pytest.mark.asyncio
    async def test_free_usage(
        self, client: AsyncClient, db_session: AsyncSession, free_user: User
    ):
        await _fill_usage(db_session, free_user, 4)

        response = await client.get("/api/v1/ai/usage", headers=auth_header(FREE_LICENSE_KEY))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["tier"] == "free"
        assert data["limitType"] == "per_day"
        assert data["today"] == {"used": 4, "limit": 10, "remaining": 6, "percentage": 40}
        assert data["lastMinute"] is None

    @pytest.mark.asyncio
    async def test_pro_usage_includes_last_minute(
        self, client: AsyncClient, db_session: AsyncSession, pro_user: User
    ):
        await _fill_usage(db_session, pro_user, 3)

        response = await client.get("/api/v1/ai/usage", headers=auth_header(PRO_LICENSE_KEY))

        data = response.json()["data"]
        assert data["limitType"] == "per_minute"
        assert data["today"]["limit"] is None
        assert data["lastMinute"] == {"used": 3, "limit": 30, "remaining": 27, "percentage": 10}


# =============================================================================
# GET /models and GET /analytics
# =============================================================================


class TestModels:
    @pytest.mark.asyncio
    async def test_lists_models(self, client: AsyncClient):
        response = await client.get("/api/v1/ai/models")
        assert response.status_code == 200
        ids = [m["id"] for m in response.json()["data"]["models"]]
        assert "gpt-5-nano" in ids


class TestAnalytics:
    """Tests for the cost analytics endpoint."""

    @pytest.mark.asyncio
    async def test_analytics_after_completions(
        self, client: AsyncClient, free_user: User  # noqa: ARG002
    ):
        for _ in range(2):
            await client.post(
                _COMPLETE_URL,
                json={"imageData": _IMAGE},
                headers=auth_header(FREE_LICENSE_KEY),
            )

        response = await client.get(
            "/api/v1/ai/analytics", params={"days": 7}, headers=auth_header(FREE_LICENSE_KEY)
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["periodDays"] == 7
        overall = data["overall"]
        assert overall["totalRequests"] == 2
        assert overall["totalInputTokens"] == 2000
        assert Decimal(str(overall["totalCost"])) == Decimal("0.000482")
        assert overall["avgInputTokens"] == 1000
        assert overall["avgResponseTime"] == 250
        assert [m["model"] for m in data["byModel"]] == ["low"]
        assert data["byModel"][0]["requests"] == 2
        assert len(data["dailyUsage"]) == 1
        assert data["dailyUsage"][0]["requests"] == 2

    @pytest.mark.asyncio
    async def test_empty_analytics(self, client: AsyncClient, free_user: User):  # noqa: ARG002
        response = await client.get(
            "/api/v1/ai/analytics", headers=auth_header(FREE_LICENSE_KEY)
        )

        data = response.json()["data"]
        assert data["periodDays"] == 30
        assert data["overall"]["totalRequests"] == 0
        assert data["overall"]["avgInputTokens"] == 0
        assert data["dailyUsage"] == []

    @pytest.mark.asyncio
    async def test_days_out_of_range_is_400(
        self, client: AsyncClient, free_user: User  # noqa: ARG002
    ):
        response = await client.get(
            "/api/v1/ai/analytics",
            params={"days": 0},
            headers=auth_header(FREE_LICENSE_KEY),
        )
        assert response.status_code == 400
