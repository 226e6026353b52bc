"""Usage ledger ORM model - append-only, no TimestampMixin.

Every completed AI call writes exactly one UsageRecord. Rows are never
updated or deleted; quota checks and cost analytics are computed from this
table alone. Cost is priced once at write time from the reasoning-tier label.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, utcnow


class UsageRecord(Base):
    """One completed AI call.

    Attributes:
        id: UUID primary key.
        user_id: FK to users table.
        prompt_type: ask, auto_solve, or answer.
        model: Reasoning-tier label (none, low, medium), not the provider model id.
        input_method: image, ocr, or text.
        tokens_used: Provider-reported total tokens.
        input_tokens: Prompt tokens, including cached ones.
        output_tokens: Completion tokens, including reasoning ones.
        reasoning_tokens: Reasoning subset of output tokens (not priced).
        cached_tokens: Prompt tokens served from the provider cache.
        total_cost: USD cost computed at write time.
        response_time_ms: Gateway round trip in milliseconds.
        cached: Whether the gateway served the whole response from cache.
        created_at: When the call completed.
    """

    __tablename__ = "usage_records"
    __table_args__ = (
        CheckConstraint("input_tokens >= 0", name="ck_usage_input_tokens_nonneg"),
        CheckConstraint("output_tokens >= 0", name="ck_usage_output_tokens_nonneg"),
        CheckConstraint("total_cost >= 0", name="ck_usage_total_cost_nonneg"),
        Index("ix_usage_records_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id"),
        nullable=False,
    )
    prompt_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    model: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    input_method: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="text",
    )
    tokens_used: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    input_tokens: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    output_tokens: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    reasoning_tokens: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    cached_tokens: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    total_cost: Mapped[Decimal] = mapped_column(
        Numeric(14, 10),
        nullable=False,
    )
    response_time_ms: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    cached: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
