"""
Admin activity log API router.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import require_admin
from ..auth.models import CurrentUser
from ..db import get_async_session
from .models import ActivityFeed, ActivitySource, FeedDateRange
from .service import ActivityFeedService

router = APIRouter(tags=["Activity Logs"])


def get_activity_feed_service(
    session: AsyncSession = Depends(get_async_session),
) -> ActivityFeedService:
    return ActivityFeedService(session)


@router.get("", response_model=ActivityFeed)
async def list_activity_feed(
    source: ActivitySource | None = Query(None),
    search: str | None = Query(None),
    user_type: str | None = Query(None),
    date_range: FeedDateRange = Query(FeedDateRange.ALL),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=500),
    service: ActivityFeedService = Depends(get_activity_feed_service),
    current_user: CurrentUser = Depends(require_admin),
) -> ActivityFeed:
    return await service.list_activity_feed(
        current_user,
        source=source,
        search=search,
        user_type=user_type,
        date_range=date_range,
        start_date=start_date,
        end_date=end_date,
        page=page,
        per_page=per_page,
    )
