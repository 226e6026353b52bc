"""AI completion, usage, and analytics schemas."""

from decimal import Decimal

from pydantic import Field

from app.schemas.base import CamelSchema


class CompletionRequestBody(CamelSchema):
    """Request body for POST /ai/complete.

    At least one of question, image_data, or ocr_text must be non-empty.
    """

    question: str | None = Field(default=None, max_length=20_000)
    image_data: str | None = Field(default=None, max_length=10_000_000)
    ocr_text: str | None = Field(default=None, max_length=50_000)
    ocr_confidence: float | None = None
    prompt_type: str | None = Field(
        default=None, pattern=r"^(ask|auto_solve|answer)$"
    )
    reasoning_level: int | None = None


class CompletionUsage(CamelSchema):
    """Usage block returned with each completion.

    The daily fields are only set for free-tier users.
    """

    tokens_used: int
    remaining_today: int | None
    daily_limit: int | None
    used_today: int | None
    limit_type: str


class CompletionResponse(CamelSchema):
    """Response for POST /ai/complete."""

    answer: str
    usage: CompletionUsage
    cached: bool
    response_time: int
    model: str


class UsageWindow(CamelSchema):
    used: int
    limit: int | None
    remaining: int | None
    percentage: int


class UsageSnapshotResponse(CamelSchema):
    """Response for GET /ai/usage."""

    today: UsageWindow
    last_minute: UsageWindow | None = None
    tier: str
    limit_type: str


class ModelInfo(CamelSchema):
    id: str
    name: str
    description: str
    tier: str


class ModelsResponse(CamelSchema):
    """Response for GET /ai/models."""

    models: list[ModelInfo]


class OverallStats(CamelSchema):
    total_requests: int
    total_input_tokens: int
    total_output_tokens: int
    total_reasoning_tokens: int
    total_cached_tokens: int
    total_cost: Decimal
    avg_input_tokens: float
    avg_output_tokens: float
    avg_cost_per_request: Decimal
    avg_response_time: float


class GroupStats(CamelSchema):
    requests: int
    avg_input_tokens: float
    avg_output_tokens: float
    avg_cost: Decimal
    total_cost: Decimal


class PromptTypeStats(GroupStats):
    prompt_type: str


class ModelStats(GroupStats):
    model: str


class DailyStats(CamelSchema):
    date: str
    requests: int
    input_tokens: int
    output_tokens: int
    cost: Decimal


class AnalyticsResponse(CamelSchema):
    """Response for GET /ai/analytics."""

    period_days: int
    overall: OverallStats
    by_prompt_type: list[PromptTypeStats]
    by_model: list[ModelStats]
    daily_usage: list[DailyStats]
