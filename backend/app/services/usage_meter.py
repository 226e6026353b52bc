"""Quota enforcement against the usage ledger.

Free users get a fixed number of completions per UTC calendar day; Pro
users get a rolling per-minute rate. Counts are read fresh from
usage_records on every check; there is no separate counter to drift.

The check and the later usage insert are not atomic, so concurrent requests
at the boundary can each pass the check. That window is accepted.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import PersistenceError
from app.models.base import utcnow
from app.models.user import TIER_PRO
from app.repositories.usage_repository import UsageRepository

logger = logging.getLogger(__name__)

LIMIT_PER_DAY = "per_day"
LIMIT_PER_MINUTE = "per_minute"

_MINUTE = timedelta(seconds=60)


@dataclass(frozen=True)
class UsageCheck:
    """Outcome of a quota check.

    Attributes:
        allowed: True if another request fits in the window.
        used: Requests already counted in the window.
        limit: Window limit for the caller's tier.
        limit_type: "per_day" or "per_minute".
    """

    allowed: bool
    used: int
    limit: int
    limit_type: str


@dataclass(frozen=True)
class WindowUsage:
    """Usage inside one window, for display."""

    used: int
    limit: int | None

    @property
    def remaining(self) -> int | None:
        if self.limit is None:
            return None
        return max(0, self.limit - self.used)

    @property
    def percentage(self) -> int:
        if not self.limit:
            return 0
        return round(self.used / self.limit * 100)


@dataclass(frozen=True)
class UsageSnapshot:
    """Usage for GET /ai/usage.

    ``last_minute`` is only set for Pro users.
    """

    tier: str
    limit_type: str
    today: WindowUsage
    last_minute: WindowUsage | None = None


class UsageMeter:
    """Counts usage windows and compares them against tier limits.

    Args:
        db: Async database session.
        free_daily_limit: Completions per UTC day for free users.
        pro_per_minute_limit: Completions per trailing minute for Pro users.
        clock: Source of "now" (timezone-aware UTC).
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        free_daily_limit: int,
        pro_per_minute_limit: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._free_daily_limit = free_daily_limit
        self._pro_per_minute_limit = pro_per_minute_limit
        self._clock = clock

    def _day_bounds(self, now: datetime) -> tuple[datetime, datetime]:
        start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        return start, start + timedelta(days=1)

    async def _count_today(self, user_id: uuid.UUID, now: datetime) -> int:
        start, end = self._day_bounds(now)
        return await UsageRepository.count_between(self._db, user_id, start, end)

    async def _count_last_minute(self, user_id: uuid.UUID, now: datetime) -> int:
        return await UsageRepository.count_since(self._db, user_id, now - _MINUTE)

    async def check_limit(self, user_id: uuid.UUID, tier: str) -> UsageCheck:
        """Decide whether the user may make another completion now.

        Args:
            user_id: User making the request.
            tier: User's tier; anything other than "pro" is treated as free.

        Returns:
            UsageCheck with allowed = used < limit.

        Raises:
            PersistenceError: If the ledger cannot be read. Callers must deny
                the request rather than let it through unmetered.
        """
        now = self._clock()
        try:
            if tier == TIER_PRO:
                used = await self._count_last_minute(user_id, now)
                limit = self._pro_per_minute_limit
                limit_type = LIMIT_PER_MINUTE
            else:
                used = await self._count_today(user_id, now)
                limit = self._free_daily_limit
                limit_type = LIMIT_PER_DAY
        except SQLAlchemyError as exc:
            logger.error("Usage count failed for user %s", user_id, exc_info=True)
            raise PersistenceError() from exc

        return UsageCheck(
            allowed=used < limit,
            used=used,
            limit=limit,
            limit_type=limit_type,
        )

    async def snapshot(self, user_id: uuid.UUID, tier: str) -> UsageSnapshot:
        """Current usage for display.

        Free users see today's count against the daily limit. Pro users see
        today's count with no daily limit plus the trailing-minute window.

        Raises:
            PersistenceError: If the ledger cannot be read.
        """
        now = self._clock()
        try:
            used_today = await self._count_today(user_id, now)
            if tier != TIER_PRO:
                return UsageSnapshot(
                    tier=tier,
                    limit_type=LIMIT_PER_DAY,
                    today=WindowUsage(used=used_today, limit=self._free_daily_limit),
                )
            used_minute = await self._count_last_minute(user_id, now)
        except SQLAlchemyError as exc:
            logger.error("Usage snapshot failed for user %s", user_id, exc_info=True)
            raise PersistenceError() from exc

        return UsageSnapshot(
            tier=tier,
            limit_type=LIMIT_PER_MINUTE,
            today=WindowUsage(used=used_today, limit=None),
            last_minute=WindowUsage(used=used_minute, limit=self._pro_per_minute_limit),
        )
