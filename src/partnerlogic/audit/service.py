"""
Admin activity feed.

Combines deal activities, notifications and support ticket messages into
one timeline, newest first.
"""

from datetime import UTC, date, datetime, time, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import CurrentUser
from ..deals.models import Deal, DealActivity
from ..exceptions import PermissionDeniedError
from ..invoices.models import DateRange
from ..invoices.service import range_start
from ..notifications.models import Notification
from ..support.models import SupportTicket, SupportTicketMessage
from .models import ActivityEntry, ActivityFeed, ActivitySource, FeedDateRange

logger = structlog.get_logger(__name__)

DEAL_ACTIVITY_LIMIT = 1000
NOTIFICATION_LIMIT = 500
TICKET_MESSAGE_LIMIT = 500
PREVIEW_LENGTH = 100


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes. Every stored timestamp is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def preview(text: str | None, length: int = PREVIEW_LENGTH) -> str:
    text = text or ""
    return text[:length] + ("..." if len(text) > length else "")


def _matches(entry: ActivityEntry, term: str) -> bool:
    haystack = (
        entry.description,
        entry.related_name,
        entry.related_company,
        entry.activity_type,
    )
    return any(term in value.lower() for value in haystack if value)


def _within(
    entry: ActivityEntry,
    date_range: FeedDateRange,
    start_date: date | None,
    end_date: date | None,
    now: datetime,
) -> bool:
    created = as_utc(entry.created_at)
    if date_range == FeedDateRange.YESTERDAY:
        day_start = datetime.combine(now.date() - timedelta(days=1), time.min, tzinfo=UTC)
        if not (day_start <= created < day_start + timedelta(days=1)):
            return False
    elif date_range != FeedDateRange.ALL:
        start = range_start(DateRange(date_range.value), now)
        if start is not None and created < start:
            return False
    if start_date and created < datetime.combine(start_date, time.min, tzinfo=UTC):
        return False
    if end_date and created > datetime.combine(end_date, time.max, tzinfo=UTC):
        return False
    return True


class ActivityFeedService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _deal_activities(self) -> list[ActivityEntry]:
        result = await self.session.execute(
            select(DealActivity, Deal)
            .outerjoin(Deal, DealActivity.deal_id == Deal.id)
            .order_by(DealActivity.created_at.desc())
            .limit(DEAL_ACTIVITY_LIMIT)
        )
        return [
            ActivityEntry(
                id=f"deal_{activity.id}",
                source=ActivitySource.DEAL_ACTIVITY,
                activity_type=activity.activity_type,
                description=activity.description,
                user_id=activity.user_id,
                # Deal activities are recorded on behalf of partners
                user_type="partner",
                related_id=str(activity.deal_id),
                related_name=deal.customer_name if deal else "Unknown",
                related_company=deal.customer_company if deal else None,
                related_value=deal.deal_value if deal else None,
                created_at=as_utc(activity.created_at),
            )
            for activity, deal in result.all()
        ]

    async def _notifications(self) -> list[ActivityEntry]:
        result = await self.session.execute(
            select(Notification).order_by(Notification.created_at.desc()).limit(NOTIFICATION_LIMIT)
        )
        return [
            ActivityEntry(
                id=f"notif_{notification.id}",
                source=ActivitySource.NOTIFICATION,
                activity_type=notification.type,
                description=notification.message,
                user_id=notification.user_id,
                user_type="system",
                related_id=notification.reference_id,
                related_name=notification.title,
                created_at=as_utc(notification.created_at),
            )
            for notification in result.scalars().all()
        ]

    async def _ticket_messages(self) -> list[ActivityEntry]:
        result = await self.session.execute(
            select(SupportTicketMessage, SupportTicket.subject)
            .outerjoin(SupportTicket, SupportTicketMessage.ticket_id == SupportTicket.id)
            .order_by(SupportTicketMessage.created_at.desc())
            .limit(TICKET_MESSAGE_LIMIT)
        )
        return [
            ActivityEntry(
                id=f"ticket_{message.id}",
                source=ActivitySource.SUPPORT_TICKET,
                activity_type="ticket_message",
                description=preview(message.message),
                user_id=message.sender_id,
                user_type=message.sender_type or "unknown",
                related_id=str(message.ticket_id),
                related_name=subject or "Support Ticket",
                created_at=as_utc(message.created_at),
            )
            for message, subject in result.all()
        ]

    async def list_activity_feed(
        self,
        actor: CurrentUser,
        source: ActivitySource | None = None,
        search: str | None = None,
        user_type: str | None = None,
        date_range: FeedDateRange = FeedDateRange.ALL,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        per_page: int = 50,
    ) -> ActivityFeed:
        if not actor.is_admin:
            raise PermissionDeniedError("Forbidden: Admin access required")

        entries = (
            await self._deal_activities()
            + await self._notifications()
            + await self._ticket_messages()
        )
        entries.sort(key=lambda e: e.created_at, reverse=True)

        now = datetime.now(UTC)
        if search:
            term = search.lower()
            entries = [e for e in entries if _matches(e, term)]
        if source:
            entries = [e for e in entries if e.source == source]
        if user_type:
            entries = [e for e in entries if e.user_type == user_type]
        entries = [e for e in entries if _within(e, date_range, start_date, end_date, now)]

        counts = {s.value: 0 for s in ActivitySource}
        for entry in entries:
            counts[entry.source.value] += 1

        total = len(entries)
        offset = (page - 1) * per_page
        logger.debug("audit.feed.listed", total=total, source=source.value if source else None)
        return ActivityFeed(
            entries=entries[offset : offset + per_page],
            total=total,
            counts=counts,
            page=page,
            per_page=per_page,
            has_next=offset + per_page < total,
            has_prev=page > 1,
        )
