"""
Support ticket workflow and notification fan-out.

Ticket writes are committed before anyone is notified. Notification and
email failures are logged and never fail the request.
"""

from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import CurrentUser, PartnerManagerProfile, Role, SupportUserProfile
from ..communications import EmailGateway
from ..exceptions import (
    NotFoundError,
    PartnerNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ..notifications import templates
from ..notifications.service import NotificationService
from ..partners.models import Partner
from .models import (
    TICKET_STATUS_LABELS,
    MessageCreate,
    SenderType,
    SupportTicket,
    SupportTicketMessage,
    TicketCreate,
    TicketStatus,
)

logger = structlog.get_logger(__name__)

REFERENCE_TYPE = "support_ticket"

SENDER_TYPES: dict[Role, SenderType] = {
    Role.PARTNER: SenderType.PARTNER,
    Role.SUPPORT_USER: SenderType.SUPPORT,
    Role.ADMIN: SenderType.ADMIN,
    Role.PARTNER_MANAGER: SenderType.PARTNER_MANAGER,
}


def short_id(value: Any) -> str:
    return str(value)[:8]


class SupportService:
    def __init__(self, session: AsyncSession, email_gateway: EmailGateway):
        self.session = session
        self.email = email_gateway
        self.notifications = NotificationService(session)

    async def _notify(self, event: str, ticket_id: UUID, call: Awaitable[Any]) -> None:
        try:
            await call
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "support.notify_failed", step=event, ticket_id=str(ticket_id), error=str(e)
            )

    async def _load(self, ticket_id: UUID) -> SupportTicket:
        result = await self.session.execute(
            select(SupportTicket)
            .where(SupportTicket.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        ticket = result.scalar_one_or_none()
        if ticket is None:
            raise NotFoundError("Ticket", ticket_id)
        return ticket

    async def get_ticket(self, ticket_id: UUID, actor: CurrentUser) -> SupportTicket:
        ticket = await self._load(ticket_id)
        if actor.role == Role.PARTNER and ticket.partner_id != actor.profile_id:
            raise NotFoundError("Ticket", ticket_id)
        if (
            actor.role == Role.PARTNER_MANAGER
            and ticket.partner.partner_manager_id != actor.profile_id
        ):
            raise NotFoundError("Ticket", ticket_id)
        if actor.role == Role.ACCOUNT_USER:
            raise PermissionDeniedError("You do not have access to support tickets")
        return ticket

    async def _manager_auth_id(self, partner: Partner) -> str | None:
        if partner.partner_manager_id is None:
            return None
        manager = await self.session.get(PartnerManagerProfile, partner.partner_manager_id)
        return manager.auth_user_id if manager else None

    @staticmethod
    def _email_payload(ticket: SupportTicket, partner: Partner) -> dict[str, Any]:
        return {
            "to": partner.email,
            "ticketId": str(ticket.id),
            "ticketSubject": ticket.subject,
            "status": ticket.status,
            "description": ticket.description or "",
            "partnerName": partner.full_name,
        }

    async def _send_email(self, payload: dict[str, Any], subject: str) -> None:
        try:
            await self.email.send_support_email({**payload, "subject": subject})
        except Exception as e:
            logger.error("support.email_failed", ticket_id=payload["ticketId"], error=str(e))

    # Tickets

    async def create_ticket(self, actor: CurrentUser, data: TicketCreate) -> SupportTicket:
        if actor.role != Role.PARTNER:
            raise PermissionDeniedError("Only partners can open support tickets")
        if not data.subject:
            raise ValidationError("Subject is required", field="subject")
        if not data.description:
            raise ValidationError("Description is required", field="description")
        partner = await self.session.get(Partner, actor.profile_id)
        if partner is None:
            raise PartnerNotFoundError(actor.profile_id)

        ticket = SupportTicket(
            partner_id=actor.profile_id,
            subject=data.subject,
            description=data.description,
            priority=data.priority.value,
            status=TicketStatus.OPEN.value,
        )
        self.session.add(ticket)
        await self.session.commit()
        ticket_id, partner_id = ticket.id, partner.id
        email = self._email_payload(ticket, partner)
        logger.info("support.ticket.created", ticket_id=str(ticket_id), priority=ticket.priority)

        template = templates.support_ticket_created(ticket_id, data.subject, partner.full_name)
        await self._notify(
            "notify_support",
            ticket_id,
            self.notifications.notify_support_users(template, ticket_id, REFERENCE_TYPE),
        )
        await self._notify(
            "notify_manager",
            ticket_id,
            self.notifications.notify_partner_manager(
                partner_id, template, ticket_id, REFERENCE_TYPE
            ),
        )
        await self._send_email(email, f"Ticket #{short_id(ticket_id)} Created - {data.subject}")
        return await self._load(ticket_id)

    async def list_tickets(
        self,
        actor: CurrentUser,
        search: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        assigned_to: UUID | None = None,
    ) -> list[SupportTicket]:
        query = select(SupportTicket).join(Partner, SupportTicket.partner_id == Partner.id)
        if actor.role == Role.PARTNER:
            query = query.where(SupportTicket.partner_id == actor.profile_id)
        elif actor.role == Role.PARTNER_MANAGER:
            query = query.where(Partner.partner_manager_id == actor.profile_id)
        elif actor.role not in (Role.ADMIN, Role.SUPPORT_USER):
            raise PermissionDeniedError("You do not have access to support tickets")

        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                or_(
                    func.lower(SupportTicket.subject).like(pattern),
                    func.lower(SupportTicket.description).like(pattern),
                    func.lower(Partner.first_name).like(pattern),
                    func.lower(Partner.last_name).like(pattern),
                )
            )
        if status and status != "all":
            query = query.where(SupportTicket.status == status)
        if priority and priority != "all":
            query = query.where(SupportTicket.priority == priority)
        if assigned_to is not None:
            query = query.where(SupportTicket.assigned_to == assigned_to)

        result = await self.session.execute(query.order_by(SupportTicket.created_at.desc()))
        return list(result.scalars().all())

    async def update_status(
        self, ticket_id: UUID, new_status: TicketStatus, actor: CurrentUser
    ) -> SupportTicket:
        if actor.role not in (Role.ADMIN, Role.SUPPORT_USER, Role.PARTNER_MANAGER):
            raise PermissionDeniedError("You cannot change ticket status")
        ticket = await self.get_ticket(ticket_id, actor)
        old_status = ticket.status
        if new_status.value == old_status:
            raise ValidationError("Status is already set to this value", field="status")

        ticket.status = new_status.value
        if new_status == TicketStatus.RESOLVED and ticket.resolved_at is None:
            ticket.resolved_at = datetime.now(UTC)
        await self.session.commit()
        partner_id, subject = ticket.partner_id, ticket.subject
        email = self._email_payload(ticket, ticket.partner)
        logger.info(
            "support.ticket.status_updated",
            ticket_id=str(ticket_id),
            old_status=old_status,
            new_status=new_status.value,
        )

        if new_status == TicketStatus.RESOLVED:
            template = templates.support_ticket_resolved(ticket_id, subject)
        elif new_status == TicketStatus.CLOSED:
            template = templates.support_ticket_closed(ticket_id, subject)
        else:
            template = templates.support_ticket_status_changed(
                ticket_id, old_status, new_status.value
            )
        await self._notify(
            "notify_partner",
            ticket_id,
            self.notifications.notify_partner(partner_id, template, ticket_id, REFERENCE_TYPE),
        )
        await self._send_email(email, f"Ticket #{short_id(ticket_id)} Status Update - {subject}")
        label = TICKET_STATUS_LABELS[new_status.value]
        await self._notify(
            "notify_support",
            ticket_id,
            self.notifications.notify_support_users(
                templates.ticket_status_updated(ticket_id, actor.name, label),
                ticket_id,
                REFERENCE_TYPE,
            ),
        )
        return await self._load(ticket_id)

    async def assign(
        self, ticket_id: UUID, support_user_id: UUID | None, actor: CurrentUser
    ) -> SupportTicket:
        if actor.role not in (Role.ADMIN, Role.SUPPORT_USER):
            raise PermissionDeniedError("You cannot assign tickets")
        ticket = await self.get_ticket(ticket_id, actor)

        assignee = None
        if support_user_id is not None:
            assignee = await self.session.get(SupportUserProfile, support_user_id)
            if assignee is None or not assignee.is_active:
                raise ValidationError("Support user not found", field="support_user_id")

        ticket.assigned_to = support_user_id
        if ticket.status == TicketStatus.OPEN.value and support_user_id is not None:
            ticket.status = TicketStatus.IN_PROGRESS.value
        await self.session.commit()
        logger.info(
            "support.ticket.assigned",
            ticket_id=str(ticket_id),
            support_user_id=str(support_user_id) if support_user_id else None,
        )

        if assignee is not None and assignee.auth_user_id != actor.auth_user_id:
            await self._notify(
                "notify_assignee",
                ticket_id,
                self.notifications.notify_user(
                    assignee.auth_user_id,
                    templates.ticket_assigned(ticket_id, ticket.subject),
                    ticket_id,
                    REFERENCE_TYPE,
                ),
            )
        return await self._load(ticket_id)

    # Messages

    async def list_messages(
        self, ticket_id: UUID, actor: CurrentUser
    ) -> list[SupportTicketMessage]:
        await self.get_ticket(ticket_id, actor)
        result = await self.session.execute(
            select(SupportTicketMessage)
            .where(SupportTicketMessage.ticket_id == ticket_id)
            .order_by(SupportTicketMessage.created_at.asc())
        )
        return list(result.scalars().all())

    async def add_message(
        self, ticket_id: UUID, actor: CurrentUser, data: MessageCreate
    ) -> SupportTicketMessage:
        """Post to a ticket thread and notify the other side.

        Partner messages go to the assigned support user, the partner manager
        and admins. Staff replies go to the partner, and support replies are
        also copied to the partner manager and admins.
        """
        if not data.message:
            raise ValidationError("Please enter a response", field="message")
        sender_type = SENDER_TYPES.get(actor.role)
        if sender_type is None:
            raise PermissionDeniedError("You cannot post to support tickets")
        ticket = await self.get_ticket(ticket_id, actor)

        message = SupportTicketMessage(
            ticket_id=ticket.id,
            sender_type=sender_type.value,
            sender_id=actor.auth_user_id,
            sender_name=actor.name,
            message=data.message,
        )
        self.session.add(message)
        await self.session.commit()
        message_id = message.id
        logger.info(
            "support.message.created",
            ticket_id=str(ticket_id),
            message_id=str(message_id),
            sender_type=sender_type.value,
        )

        partner_id, subject, assigned_to = ticket.partner_id, ticket.subject, ticket.assigned_to
        manager_auth_id = await self._manager_auth_id(ticket.partner)
        sender = actor.name or sender_type.value

        if sender_type == SenderType.PARTNER:
            if assigned_to is not None:
                assignee = await self.session.get(SupportUserProfile, assigned_to)
                if assignee is not None:
                    await self._notify(
                        "notify_assignee",
                        ticket_id,
                        self.notifications.notify_user(
                            assignee.auth_user_id,
                            templates.ticket_message(
                                "New message", ticket_id, sender, data.message
                            ),
                            ticket_id,
                            REFERENCE_TYPE,
                        ),
                    )
            if manager_auth_id:
                await self._notify(
                    "notify_manager",
                    ticket_id,
                    self.notifications.notify_user(
                        manager_auth_id,
                        templates.ticket_message(
                            "Partner message", ticket_id, sender, data.message
                        ),
                        ticket_id,
                        REFERENCE_TYPE,
                    ),
                )
            await self._notify(
                "notify_admins",
                ticket_id,
                self.notifications.notify_admins(
                    templates.ticket_message_summary("New message", ticket_id, sender, subject),
                    ticket_id,
                    REFERENCE_TYPE,
                ),
            )
        else:
            await self._notify(
                "notify_partner",
                ticket_id,
                self.notifications.notify_partner(
                    partner_id,
                    templates.ticket_message(
                        "New response", ticket_id, sender, data.message, verb="replied"
                    ),
                    ticket_id,
                    REFERENCE_TYPE,
                ),
            )
            if sender_type == SenderType.SUPPORT:
                if manager_auth_id:
                    await self._notify(
                        "notify_manager",
                        ticket_id,
                        self.notifications.notify_user(
                            manager_auth_id,
                            templates.ticket_message(
                                "Support response", ticket_id, sender, data.message, "replied"
                            ),
                            ticket_id,
                            REFERENCE_TYPE,
                        ),
                    )
                await self._notify(
                    "notify_admins",
                    ticket_id,
                    self.notifications.notify_admins(
                        templates.ticket_message_summary(
                            "Support response", ticket_id, sender, subject, replied=True
                        ),
                        ticket_id,
                        REFERENCE_TYPE,
                    ),
                )

        result = await self.session.execute(
            select(SupportTicketMessage).where(SupportTicketMessage.id == message_id)
        )
        return result.scalar_one()
