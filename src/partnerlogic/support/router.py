"""
Support tickets API router.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user, require_partner, require_support
from ..auth.models import CurrentUser
from ..communications import EmailGateway, get_email_gateway
from ..db import get_async_session
from .models import (
    MessageCreate,
    TicketAssignment,
    TicketCreate,
    TicketDetail,
    TicketList,
    TicketMessageResponse,
    TicketStatusUpdate,
)
from .service import SupportService

router = APIRouter(tags=["Support"])


def get_support_service(
    session: AsyncSession = Depends(get_async_session),
    email_gateway: EmailGateway = Depends(get_email_gateway),
) -> SupportService:
    return SupportService(session, email_gateway)


@router.post("/tickets", response_model=TicketDetail, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    data: TicketCreate,
    service: SupportService = Depends(get_support_service),
    current_user: CurrentUser = Depends(require_partner),
) -> TicketDetail:
    return TicketDetail.model_validate(await service.create_ticket(current_user, data))


@router.get("/tickets", response_model=TicketList)
async def list_tickets(
    search: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    priority: str | None = Query(None),
    assigned_to: UUID | None = Query(None),
    service: SupportService = Depends(get_support_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> TicketList:
    tickets = await service.list_tickets(
        current_user,
        search=search,
        status=status_filter,
        priority=priority,
        assigned_to=assigned_to,
    )
    return TicketList(
        tickets=[TicketDetail.model_validate(t) for t in tickets],
        total=len(tickets),
    )


@router.get("/tickets/{ticket_id}", response_model=TicketDetail)
async def get_ticket(
    ticket_id: UUID,
    service: SupportService = Depends(get_support_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> TicketDetail:
    return TicketDetail.model_validate(await service.get_ticket(ticket_id, current_user))


@router.patch("/tickets/{ticket_id}/status", response_model=TicketDetail)
async def update_ticket_status(
    ticket_id: UUID,
    data: TicketStatusUpdate,
    service: SupportService = Depends(get_support_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> TicketDetail:
    ticket = await service.update_status(ticket_id, data.status, current_user)
    return TicketDetail.model_validate(ticket)


@router.patch("/tickets/{ticket_id}/assignment", response_model=TicketDetail)
async def assign_ticket(
    ticket_id: UUID,
    data: TicketAssignment,
    service: SupportService = Depends(get_support_service),
    current_user: CurrentUser = Depends(require_support),
) -> TicketDetail:
    ticket = await service.assign(ticket_id, data.support_user_id, current_user)
    return TicketDetail.model_validate(ticket)


@router.get("/tickets/{ticket_id}/messages", response_model=list[TicketMessageResponse])
async def list_ticket_messages(
    ticket_id: UUID,
    service: SupportService = Depends(get_support_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[TicketMessageResponse]:
    messages = await service.list_messages(ticket_id, current_user)
    return [TicketMessageResponse.model_validate(m) for m in messages]


@router.post(
    "/tickets/{ticket_id}/messages",
    response_model=TicketMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_ticket_message(
    ticket_id: UUID,
    data: MessageCreate,
    service: SupportService = Depends(get_support_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> TicketMessageResponse:
    message = await service.add_message(ticket_id, current_user, data)
    return TicketMessageResponse.model_validate(message)
