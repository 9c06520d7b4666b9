"""
Notification API router.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user
from ..auth.models import CurrentUser
from ..db import get_async_session
from .models import (
    BulkNotificationRequest,
    BulkNotificationResponse,
    NotificationList,
    NotificationResponse,
)
from .service import NotificationService

router = APIRouter(tags=["Notifications"])


@router.post("/create", response_model=BulkNotificationResponse)
async def create_notifications(
    request: BulkNotificationRequest,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> BulkNotificationResponse:
    """Create notifications for any users. Every item needs user_id, title, message and type."""
    created = await NotificationService(session).create_bulk(request.notifications)
    return BulkNotificationResponse(
        data=[NotificationResponse.model_validate(n) for n in created]
    )


@router.get("", response_model=NotificationList)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> NotificationList:
    service = NotificationService(session)
    items, total = await service.list_for_user(
        current_user.auth_user_id, unread_only=unread_only, limit=limit, offset=offset
    )
    return NotificationList(
        notifications=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        unread_count=await service.unread_count(current_user.auth_user_id),
    )


@router.get("/unread-count")
async def unread_count(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict[str, int]:
    count = await NotificationService(session).unread_count(current_user.auth_user_id)
    return {"unread_count": count}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> NotificationResponse:
    notification = await NotificationService(session).mark_read(
        notification_id, current_user.auth_user_id
    )
    return NotificationResponse.model_validate(notification)


@router.post("/read-all")
async def mark_all_notifications_read(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict[str, int]:
    updated = await NotificationService(session).mark_all_read(current_user.auth_user_id)
    return {"updated": updated}


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    await NotificationService(session).delete(notification_id, current_user.auth_user_id)
