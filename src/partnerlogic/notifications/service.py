"""
Notification creation, fan-out helpers and inbox operations.
"""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import (
    AccountUserProfile,
    AdminProfile,
    PartnerManagerProfile,
    SupportUserProfile,
)
from ..communications import EmailGateway
from ..exceptions import NotFoundError, PartnerNotFoundError, ValidationError
from ..partners.models import Partner
from .models import Notification
from .templates import NotificationTemplate

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("user_id", "title", "message", "type")


class NotificationService:
    """Create and read in-app notifications.

    Fan-out helpers return the notifications they created. A missing
    recipient (no admins, no manager assigned) is logged and yields an
    empty list rather than an error.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_bulk(self, items: list[dict[str, Any]] | None) -> list[Notification]:
        """Insert notifications after checking every item carries the required fields."""
        if items is None or not isinstance(items, list):
            raise ValidationError(
                "Invalid request: notifications array required", status_code=400
            )
        for item in items:
            if not all(item.get(field) for field in REQUIRED_FIELDS):
                raise ValidationError(
                    "Each notification must have user_id, title, message, and type",
                    status_code=400,
                )

        notifications = [
            Notification(
                user_id=str(item["user_id"]),
                title=item["title"],
                message=item["message"],
                type=item["type"],
                reference_id=str(item["reference_id"]) if item.get("reference_id") else None,
                reference_type=item.get("reference_type"),
            )
            for item in items
        ]
        self.session.add_all(notifications)
        await self.session.commit()

        logger.info("notifications.created", count=len(notifications))
        return notifications

    async def _send(
        self,
        user_ids: list[str],
        template: NotificationTemplate,
        reference_id: Any = None,
        reference_type: str | None = None,
    ) -> list[Notification]:
        return await self.create_bulk(
            [
                {
                    "user_id": user_id,
                    "title": template.title,
                    "message": template.message,
                    "type": template.type,
                    "reference_id": reference_id,
                    "reference_type": reference_type,
                }
                for user_id in user_ids
            ]
        )

    async def notify_admins(
        self,
        template: NotificationTemplate,
        reference_id: Any = None,
        reference_type: str | None = None,
    ) -> list[Notification]:
        result = await self.session.execute(select(AdminProfile.auth_user_id))
        user_ids = list(result.scalars().all())
        if not user_ids:
            logger.warning("notifications.no_admins")
            return []
        return await self._send(user_ids, template, reference_id, reference_type)

    async def notify_partner_manager(
        self,
        partner_id: UUID,
        template: NotificationTemplate,
        reference_id: Any = None,
        reference_type: str | None = None,
    ) -> list[Notification]:
        partner = await self.session.get(Partner, partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)
        if partner.partner_manager_id is None:
            logger.warning("notifications.no_partner_manager", partner_id=str(partner_id))
            return []

        manager = await self.session.get(PartnerManagerProfile, partner.partner_manager_id)
        if manager is None:
            return []
        return await self._send([manager.auth_user_id], template, reference_id, reference_type)

    async def notify_support_users(
        self,
        template: NotificationTemplate,
        reference_id: Any = None,
        reference_type: str | None = None,
    ) -> list[Notification]:
        result = await self.session.execute(
            select(SupportUserProfile.auth_user_id).where(SupportUserProfile.is_active.is_(True))
        )
        user_ids = list(result.scalars().all())
        if not user_ids:
            logger.warning("notifications.no_support_users")
            return []
        return await self._send(user_ids, template, reference_id, reference_type)

    async def notify_account_users(
        self,
        template: NotificationTemplate,
        reference_id: Any = None,
        reference_type: str | None = None,
    ) -> list[Notification]:
        result = await self.session.execute(
            select(AccountUserProfile.auth_user_id).where(AccountUserProfile.is_active.is_(True))
        )
        user_ids = list(result.scalars().all())
        if not user_ids:
            logger.warning("notifications.no_account_users")
            return []
        return await self._send(user_ids, template, reference_id, reference_type)

    async def notify_user(
        self,
        auth_user_id: str,
        template: NotificationTemplate,
        reference_id: Any = None,
        reference_type: str | None = None,
    ) -> list[Notification]:
        return await self._send([auth_user_id], template, reference_id, reference_type)

    async def notify_partner(
        self,
        partner_id: UUID,
        template: NotificationTemplate,
        reference_id: Any = None,
        reference_type: str | None = None,
        email_gateway: EmailGateway | None = None,
        email_data: dict[str, Any] | None = None,
    ) -> list[Notification]:
        """Notify a partner in-app and, when ``email_data`` is given, by support email."""
        partner = await self.session.get(Partner, partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)

        created: list[Notification] = []
        if partner.auth_user_id:
            created = await self._send(
                [partner.auth_user_id], template, reference_id, reference_type
            )
        else:
            logger.warning("notifications.partner_without_login", partner_id=str(partner_id))

        if email_gateway is not None and email_data is not None:
            await email_gateway.send_support_email(
                {
                    "to": partner.email,
                    "partnerName": partner.full_name,
                    **email_data,
                }
            )
        return created

    # Inbox

    async def list_for_user(
        self, user_id: str, unread_only: bool = False, limit: int = 50, offset: int = 0
    ) -> tuple[list[Notification], int]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar() or 0

        query = query.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def unread_count(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return result.scalar() or 0

    async def _get_owned(self, notification_id: UUID, user_id: str) -> Notification:
        notification = await self.session.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification", notification_id)
        return notification

    async def mark_read(self, notification_id: UUID, user_id: str) -> Notification:
        notification = await self._get_owned(notification_id, user_id)
        notification.is_read = True
        await self.session.commit()
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def delete(self, notification_id: UUID, user_id: str) -> None:
        notification = await self._get_owned(notification_id, user_id)
        await self.session.delete(notification)
        await self.session.commit()
