"""SQLAlchemy ORM models.

All models are exported from this module for convenient imports:
    from app.models import User, UsageRecord, WebhookEvent

Models are organized by domain:
- user.py: User (license directory)
- usage.py: UsageRecord (append-only usage ledger)
- webhook_event.py: WebhookEvent (processed webhook ledger)
"""

from app.models.base import Base, TimestampMixin
from app.models.usage import UsageRecord
from app.models.user import User
from app.models.webhook_event import WebhookEvent

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "UsageRecord",
    "WebhookEvent",
]
