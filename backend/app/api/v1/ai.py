"""AI completion endpoints.

- POST /ai/complete (alias POST /ai/solve): quota-checked completion
- GET /ai/usage: current quota usage
- GET /ai/models: models offered to clients
- GET /ai/analytics: cost and token analytics

Completion flow: authenticate -> check quota -> build payload -> gateway ->
price and record usage -> respond. Recording happens in the request
transaction; if it fails the request fails, so no completion escapes the
quota.
"""

from decimal import Decimal
from typing import Annotated

import structlog
from fastapi import APIRouter, Query

from app.api.deps import Accountant, CurrentUser, Gateway, Meter
from app.core.errors import QuotaExceededError, UpstreamError
from app.core.responses import DataResponse
from app.providers.errors import ProviderError
from app.repositories.usage_repository import GroupBreakdown
from app.schemas.ai import (
    AnalyticsResponse,
    CompletionRequestBody,
    CompletionResponse,
    CompletionUsage,
    DailyStats,
    ModelInfo,
    ModelsResponse,
    ModelStats,
    OverallStats,
    PromptTypeStats,
    UsageSnapshotResponse,
    UsageWindow,
)
from app.services.prompt_builder import build_completion_request
from app.services.usage_meter import LIMIT_PER_DAY, WindowUsage

logger = structlog.get_logger()

router = APIRouter()

_AVAILABLE_MODELS = [
    ModelInfo(
        id="gpt-5-nano",
        name="GPT-5 Nano",
        description="Fast and efficient reasoning",
        tier="all",
    ),
    ModelInfo(
        id="gpt-4.1-nano",
        name="GPT-4.1 Nano",
        description="Lowest latency, no reasoning",
        tier="all",
    ),
]

AnalyticsDays = Annotated[
    int,
    Query(ge=1, le=365, description="Length of the analytics period in days"),
]


# =============================================================================
# POST /complete
# =============================================================================


@router.post("/complete")
@router.post("/solve")
async def complete(
    body: CompletionRequestBody,
    user: CurrentUser,
    meter: Meter,
    accountant: Accountant,
    gateway: Gateway,
) -> DataResponse[CompletionResponse]:
    """Run one AI completion for the authenticated user.

    Raises:
        QuotaExceededError: If the user's window is full (429).
        ValidationError: If there is nothing to send (400).
        UpstreamError: If the gateway call fails (502).
        PersistenceError: If usage cannot be counted (500, fail closed).
    """
    check = await meter.check_limit(user.id, user.tier)
    if not check.allowed:
        logger.info(
            "quota_exceeded",
            user_id=str(user.id),
            tier=user.tier,
            used=check.used,
            limit=check.limit,
            limit_type=check.limit_type,
        )
        raise QuotaExceededError(
            limit=check.limit,
            used=check.used,
            limit_type=check.limit_type,
            tier=user.tier,
        )

    completion = build_completion_request(
        question=body.question,
        image_data=body.image_data,
        ocr_text=body.ocr_text,
        prompt_type=body.prompt_type,
        reasoning_level=body.reasoning_level,
    )

    try:
        result = await gateway.complete(completion.payload, user.id)
    except ProviderError as e:
        raise UpstreamError("AI gateway", str(e)) from e

    await accountant.record(
        user_id=user.id,
        prompt_type=completion.prompt_type,
        model=completion.model_label,
        input_method=completion.input_method,
        usage=result.usage,
        response_time_ms=result.latency_ms,
        cached=result.cached,
    )

    per_day = check.limit_type == LIMIT_PER_DAY
    return DataResponse(
        data=CompletionResponse(
            answer=result.content,
            usage=CompletionUsage(
                tokens_used=result.usage.total_tokens,
                remaining_today=max(0, check.limit - check.used - 1) if per_day else None,
                daily_limit=check.limit if per_day else None,
                used_today=check.used + 1 if per_day else None,
                limit_type=check.limit_type,
            ),
            cached=result.cached,
            response_time=result.latency_ms,
            model=completion.payload["model"],
        )
    )


# =============================================================================
# GET /usage
# =============================================================================


def _window(usage: WindowUsage) -> UsageWindow:
    return UsageWindow(
        used=usage.used,
        limit=usage.limit,
        remaining=usage.remaining,
        percentage=usage.percentage,
    )


@router.get("/usage")
async def get_usage(
    user: CurrentUser,
    meter: Meter,
) -> DataResponse[UsageSnapshotResponse]:
    """Return today's usage, plus the trailing minute for Pro users."""
    snapshot = await meter.snapshot(user.id, user.tier)
    return DataResponse(
        data=UsageSnapshotResponse(
            today=_window(snapshot.today),
            last_minute=_window(snapshot.last_minute) if snapshot.last_minute else None,
            tier=snapshot.tier,
            limit_type=snapshot.limit_type,
        )
    )


# =============================================================================
# GET /models
# =============================================================================


@router.get("/models")
async def get_models() -> DataResponse[ModelsResponse]:
    """List the models clients can select through reasoning levels."""
    return DataResponse(data=ModelsResponse(models=_AVAILABLE_MODELS))


# =============================================================================
# GET /analytics
# =============================================================================


def _average(total: Decimal | int, count: int) -> Decimal:
    if count == 0:
        return Decimal(0)
    return Decimal(total) / Decimal(count)


def _group_stats(group: GroupBreakdown) -> dict:
    requests = group["requests"]
    return {
        "requests": requests,
        "avg_input_tokens": float(_average(group["input_tokens"], requests)),
        "avg_output_tokens": float(_average(group["output_tokens"], requests)),
        "avg_cost": _average(group["total_cost"], requests),
        "total_cost": group["total_cost"],
    }


@router.get("/analytics")
async def get_analytics(
    user: CurrentUser,
    accountant: Accountant,
    days: AnalyticsDays = 30,
) -> DataResponse[AnalyticsResponse]:
    """Return cost and token analytics for the last ``days`` days.

    The daily breakdown always covers the last 7 days.
    """
    analytics = await accountant.summarize(user.id, days=days)
    summary = analytics.summary
    count = summary["total_requests"]

    return DataResponse(
        data=AnalyticsResponse(
            period_days=analytics.period_days,
            overall=OverallStats(
                total_requests=count,
                total_input_tokens=summary["total_input_tokens"],
                total_output_tokens=summary["total_output_tokens"],
                total_reasoning_tokens=summary["total_reasoning_tokens"],
                total_cached_tokens=summary["total_cached_tokens"],
                total_cost=summary["total_cost"],
                avg_input_tokens=float(_average(summary["total_input_tokens"], count)),
                avg_output_tokens=float(_average(summary["total_output_tokens"], count)),
                avg_cost_per_request=_average(summary["total_cost"], count),
                avg_response_time=float(
                    _average(summary["total_response_time_ms"], count)
                ),
            ),
            by_prompt_type=[
                PromptTypeStats(prompt_type=group["key"], **_group_stats(group))
                for group in summary["by_prompt_type"]
            ],
            by_model=[
                ModelStats(model=group["key"], **_group_stats(group))
                for group in summary["by_model"]
            ],
            daily_usage=[
                DailyStats(
                    date=day["date"].isoformat(),
                    requests=day["requests"],
                    input_tokens=day["input_tokens"],
                    output_tokens=day["output_tokens"],
                    cost=day["cost"],
                )
                for day in analytics.daily
            ],
        )
    )
