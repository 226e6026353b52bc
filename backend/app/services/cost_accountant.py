"""Completion pricing and usage recording.

Prices are USD per one million tokens, keyed by reasoning-tier label rather
than provider model id. Cost is computed once, when the usage record is
written, and never recomputed.
"""

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.usage import UsageRecord
from app.repositories.usage_repository import (
    DailyBreakdown,
    UsageRepository,
    UsageSummary,
)

logger = logging.getLogger(__name__)

_MILLION = Decimal(1_000_000)
_DAILY_BREAKDOWN_DAYS = 7


@dataclass(frozen=True)
class TokenPrice:
    """USD per 1M tokens for each priced token category."""

    input: Decimal
    output: Decimal
    cached: Decimal


DEFAULT_PRICING: dict[str, TokenPrice] = {
    # gpt-4.1-nano, no reasoning
    "none": TokenPrice(
        input=Decimal("0.10"), output=Decimal("0.40"), cached=Decimal("0.025")
    ),
    # gpt-5-nano, low reasoning effort
    "low": TokenPrice(
        input=Decimal("0.05"), output=Decimal("0.40"), cached=Decimal("0.005")
    ),
    # gpt-5-nano, medium reasoning effort
    "medium": TokenPrice(
        input=Decimal("0.05"), output=Decimal("0.40"), cached=Decimal("0.005")
    ),
}

FALLBACK_LABEL = "low"


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by the completion provider.

    Attributes:
        total_tokens: Provider-reported total.
        input_tokens: Prompt tokens, cached ones included.
        output_tokens: Completion tokens, reasoning ones included.
        reasoning_tokens: Reasoning subset of output tokens.
        cached_tokens: Cached subset of input tokens.
    """

    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    cached_tokens: int = 0


@dataclass(frozen=True)
class CostAnalytics:
    """Aggregated cost analytics for one user."""

    period_days: int
    summary: UsageSummary
    daily: list[DailyBreakdown]


class CostAccountant:
    """Prices completions and appends them to the usage ledger.

    Args:
        db: Async database session.
        pricing: Price table keyed by reasoning-tier label. Must contain the
            fallback label.
    """

    def __init__(
        self,
        db: AsyncSession,
        pricing: Mapping[str, TokenPrice] = DEFAULT_PRICING,
    ) -> None:
        if FALLBACK_LABEL not in pricing:
            msg = f"Pricing table must contain the '{FALLBACK_LABEL}' label"
            raise ValueError(msg)
        self._db = db
        self._pricing = pricing

    def price_for(self, model: str) -> TokenPrice:
        """Price row for a label; unknown labels use the fallback row."""
        price = self._pricing.get(model)
        if price is None:
            logger.warning("No pricing for model label %r; using %r", model, FALLBACK_LABEL)
            return self._pricing[FALLBACK_LABEL]
        return price

    def compute_cost(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int,
        cached_tokens: int = 0,
    ) -> Decimal:
        """Compute the USD cost of one completion.

        Cached input tokens are billed at the cached rate and the rest of the
        input at the regular rate. Reasoning tokens are already part of
        output_tokens and are not priced separately.

        Args:
            model: Reasoning-tier label (none, low, medium).
            input_tokens: Prompt tokens including cached ones.
            output_tokens: Completion tokens.
            cached_tokens: Cached subset of input tokens.

        Returns:
            Cost in USD.
        """
        price = self.price_for(model)
        regular_input = max(input_tokens - cached_tokens, 0)
        return (
            Decimal(regular_input) * price.input
            + Decimal(cached_tokens) * price.cached
            + Decimal(output_tokens) * price.output
        ) / _MILLION

    async def record(
        self,
        *,
        user_id: uuid.UUID,
        prompt_type: str,
        model: str,
        input_method: str,
        usage: TokenUsage,
        response_time_ms: int,
        cached: bool,
    ) -> UsageRecord:
        """Price a completion and append it to the usage ledger.

        Errors propagate: a completion that cannot be recorded must not be
        reported as a success, or it would escape the quota.

        Returns:
            The created UsageRecord.
        """
        cost = self.compute_cost(
            model,
            usage.input_tokens,
            usage.output_tokens,
            usage.cached_tokens,
        )
        return await UsageRepository.create(
            self._db,
            user_id=user_id,
            prompt_type=prompt_type,
            model=model,
            input_method=input_method,
            tokens_used=usage.total_tokens,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            reasoning_tokens=usage.reasoning_tokens,
            cached_tokens=usage.cached_tokens,
            total_cost=cost,
            response_time_ms=response_time_ms,
            cached=cached,
        )

    async def summarize(
        self,
        user_id: uuid.UUID,
        *,
        days: int,
        now: datetime | None = None,
    ) -> CostAnalytics:
        """Cost and token analytics for the trailing ``days`` days.

        The daily breakdown always covers the last 7 days regardless of
        ``days``.

        Args:
            user_id: User to summarize.
            days: Length of the summary period.
            now: Reference time. Defaults to the current UTC time.

        Returns:
            CostAnalytics with totals, averages, and breakdowns.
        """
        now = now or utcnow()
        summary = await UsageRepository.get_summary(
            self._db, user_id, now - timedelta(days=days)
        )
        daily = await UsageRepository.get_daily_breakdown(
            self._db, user_id, now - timedelta(days=_DAILY_BREAKDOWN_DAYS)
        )
        return CostAnalytics(period_days=days, summary=summary, daily=daily)
