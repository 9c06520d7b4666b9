"""
Schemas for the admin activity feed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


class ActivitySource(str, Enum):
    DEAL_ACTIVITY = "deal_activity"
    NOTIFICATION = "notification"
    SUPPORT_TICKET = "support_ticket"


class FeedDateRange(str, Enum):
    ALL = "all"
    TODAY = "today"
    YESTERDAY = "yesterday"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"


class ActivityEntry(BaseModel):
    id: str
    source: ActivitySource
    activity_type: str | None = None
    description: str
    user_id: str | None = None
    user_type: str
    related_id: str | None = None
    related_name: str | None = None
    related_company: str | None = None
    related_value: Decimal | None = None
    created_at: datetime


class ActivityFeed(BaseModel):
    entries: list[ActivityEntry]
    total: int
    counts: dict[str, int]
    page: int = 1
    per_page: int = 50
    has_next: bool
    has_prev: bool
