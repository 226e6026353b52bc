"""Repository for usage ledger operations.

Provides database access for the usage_records table: append, window
counts for quota checks, listing, and cost aggregation for analytics.
There is deliberately no update or delete.
"""

import uuid
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import TypedDict

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.usage import UsageRecord

# =============================================================================
# Return types
# =============================================================================


class GroupBreakdown(TypedDict):
    key: str
    requests: int
    input_tokens: int
    output_tokens: int
    total_cost: Decimal


class DailyBreakdown(TypedDict):
    date: date
    requests: int
    input_tokens: int
    output_tokens: int
    cost: Decimal


class UsageSummary(TypedDict):
    """Typed return value for UsageRepository.get_summary()."""

    total_requests: int
    total_input_tokens: int
    total_output_tokens: int
    total_reasoning_tokens: int
    total_cached_tokens: int
    total_cost: Decimal
    total_response_time_ms: int
    by_prompt_type: list[GroupBreakdown]
    by_model: list[GroupBreakdown]


# =============================================================================
# Label constants (shared between SQL .label() and dict keys)
# =============================================================================

_LABEL_REQUESTS = "requests"
_LABEL_INPUT = "input_tokens"
_LABEL_OUTPUT = "output_tokens"
_LABEL_COST = "total_cost"


class UsageRepository:
    """Stateless repository for UsageRecord table operations.

    All methods are static: no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        prompt_type: str,
        model: str,
        input_method: str,
        tokens_used: int,
        input_tokens: int,
        output_tokens: int,
        reasoning_tokens: int,
        cached_tokens: int,
        total_cost: Decimal,
        response_time_ms: int,
        cached: bool,
        created_at: datetime | None = None,
    ) -> UsageRecord:
        """Append a usage record.

        Args:
            db: Async database session.
            user_id: User who made the call.
            prompt_type: ask, auto_solve, or answer.
            model: Reasoning-tier label used for pricing.
            input_method: image, ocr, or text.
            tokens_used: Provider-reported total tokens.
            input_tokens: Prompt tokens (including cached).
            output_tokens: Completion tokens (including reasoning).
            reasoning_tokens: Reasoning subset of output tokens.
            cached_tokens: Cached subset of input tokens.
            total_cost: Cost in USD, computed by the caller.
            response_time_ms: Gateway round trip.
            cached: Gateway cache hit.
            created_at: Override for the record time. Defaults to now.

        Returns:
            Created UsageRecord with database-generated fields.
        """
        record = UsageRecord(
            user_id=user_id,
            prompt_type=prompt_type,
            model=model,
            input_method=input_method,
            tokens_used=tokens_used,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            reasoning_tokens=reasoning_tokens,
            cached_tokens=cached_tokens,
            total_cost=total_cost,
            response_time_ms=response_time_ms,
            cached=cached,
        )
        if created_at is not None:
            record.created_at = created_at
        db.add(record)
        await db.flush()
        await db.refresh(record)
        return record

    @staticmethod
    async def count_since(
        db: AsyncSession,
        user_id: uuid.UUID,
        since: datetime,
    ) -> int:
        """Count a user's records created strictly after ``since``.

        Used for the rolling per-minute window.
        """
        stmt = (
            select(func.count())
            .select_from(UsageRecord)
            .where(
                UsageRecord.user_id == user_id,
                UsageRecord.created_at > since,
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def count_between(
        db: AsyncSession,
        user_id: uuid.UUID,
        start: datetime,
        end: datetime,
    ) -> int:
        """Count a user's records in [start, end).

        Used for the calendar-day window.
        """
        stmt = (
            select(func.count())
            .select_from(UsageRecord)
            .where(
                UsageRecord.user_id == user_id,
                UsageRecord.created_at >= start,
                UsageRecord.created_at < end,
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def _group_by(
        db: AsyncSession,
        column,
        conditions: list,
    ) -> list[GroupBreakdown]:
        stmt = (
            select(
                column,
                func.count().label(_LABEL_REQUESTS),
                func.coalesce(func.sum(UsageRecord.input_tokens), 0).label(_LABEL_INPUT),
                func.coalesce(func.sum(UsageRecord.output_tokens), 0).label(_LABEL_OUTPUT),
                func.coalesce(func.sum(UsageRecord.total_cost), 0).label(_LABEL_COST),
            )
            .where(*conditions)
            .group_by(column)
            .order_by(column)
        )
        result = await db.execute(stmt)
        return [
            GroupBreakdown(
                key=row[0],
                requests=row.requests,
                input_tokens=int(row.input_tokens),
                output_tokens=int(row.output_tokens),
                total_cost=Decimal(str(row.total_cost)),
            )
            for row in result.all()
        ]

    @staticmethod
    async def get_summary(
        db: AsyncSession,
        user_id: uuid.UUID,
        since: datetime,
    ) -> UsageSummary:
        """Aggregate a user's usage since a point in time.

        Args:
            db: Async database session.
            user_id: User to aggregate for.
            since: Start of period (inclusive).

        Returns:
            Totals plus breakdowns by prompt type and by model label.
        """
        conditions = [
            UsageRecord.user_id == user_id,
            UsageRecord.created_at >= since,
        ]

        totals_stmt = select(
            func.count().label("total_requests"),
            func.coalesce(func.sum(UsageRecord.input_tokens), 0).label(
                "total_input_tokens"
            ),
            func.coalesce(func.sum(UsageRecord.output_tokens), 0).label(
                "total_output_tokens"
            ),
            func.coalesce(func.sum(UsageRecord.reasoning_tokens), 0).label(
                "total_reasoning_tokens"
            ),
            func.coalesce(func.sum(UsageRecord.cached_tokens), 0).label(
                "total_cached_tokens"
            ),
            func.coalesce(func.sum(UsageRecord.total_cost), 0).label("total_cost"),
            func.coalesce(func.sum(UsageRecord.response_time_ms), 0).label(
                "total_response_time_ms"
            ),
        ).where(*conditions)
        totals_row = (await db.execute(totals_stmt)).one()

        return {
            "total_requests": totals_row.total_requests,
            "total_input_tokens": int(totals_row.total_input_tokens),
            "total_output_tokens": int(totals_row.total_output_tokens),
            "total_reasoning_tokens": int(totals_row.total_reasoning_tokens),
            "total_cached_tokens": int(totals_row.total_cached_tokens),
            "total_cost": Decimal(str(totals_row.total_cost)),
            "total_response_time_ms": int(totals_row.total_response_time_ms),
            "by_prompt_type": await UsageRepository._group_by(
                db, UsageRecord.prompt_type, conditions
            ),
            "by_model": await UsageRepository._group_by(
                db, UsageRecord.model, conditions
            ),
        }

    @staticmethod
    async def get_daily_breakdown(
        db: AsyncSession,
        user_id: uuid.UUID,
        since: datetime,
    ) -> list[DailyBreakdown]:
        """Per-day request counts, tokens, and cost since ``since``, newest day first.

        Bucketed in Python on the UTC date of created_at so the result is the
        same across database dialects.
        """
        stmt = select(
            UsageRecord.created_at,
            UsageRecord.input_tokens,
            UsageRecord.output_tokens,
            UsageRecord.total_cost,
        ).where(
            UsageRecord.user_id == user_id,
            UsageRecord.created_at >= since,
        )
        result = await db.execute(stmt)

        buckets: dict[date, DailyBreakdown] = defaultdict(
            lambda: DailyBreakdown(
                date=date.min,
                requests=0,
                input_tokens=0,
                output_tokens=0,
                cost=Decimal(0),
            )
        )
        for created_at, input_tokens, output_tokens, total_cost in result.all():
            day = created_at.date()
            bucket = buckets[day]
            bucket["date"] = day
            bucket["requests"] += 1
            bucket["input_tokens"] += input_tokens
            bucket["output_tokens"] += output_tokens
            bucket["cost"] += Decimal(str(total_cost))

        return [buckets[day] for day in sorted(buckets, reverse=True)]
