"""
Deal registration and kanban API router.
"""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user, require_admin
from ..auth.models import CurrentUser
from ..communications import EmailGateway, get_email_gateway
from ..db import get_async_session
from .models import (
    Board,
    BoardView,
    DealActivityResponse,
    DealCreate,
    DealDetail,
    DealList,
    DealResponse,
    DealUpdate,
    StageMove,
)
from .service import DealService

router = APIRouter(tags=["Deals"])


def get_deal_service(
    session: AsyncSession = Depends(get_async_session),
    email_gateway: EmailGateway = Depends(get_email_gateway),
) -> DealService:
    return DealService(session, email_gateway)


@router.post("", response_model=DealResponse, status_code=status.HTTP_201_CREATED)
async def register_deal(
    data: DealCreate,
    service: DealService = Depends(get_deal_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> DealResponse:
    deal = await service.create_deal(current_user, data)
    return DealResponse.model_validate(deal)


@router.get("", response_model=DealList)
async def list_deals(
    search: str | None = Query(None),
    stage: str | None = Query(None),
    admin_stage: str | None = Query(None),
    priority: str | None = Query(None),
    partner_id: UUID | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=500),
    service: DealService = Depends(get_deal_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> DealList:
    deals, total = await service.list_deals(
        current_user,
        search=search,
        stage=stage,
        admin_stage=admin_stage,
        priority=priority,
        partner_id=partner_id,
        page=page,
        per_page=per_page,
    )
    return DealList(
        deals=[DealResponse.model_validate(d) for d in deals],
        total=total,
        page=page,
        per_page=per_page,
        has_next=page * per_page < total,
        has_prev=page > 1,
    )


@router.get("/board", response_model=Board)
async def get_board(
    view: BoardView | None = Query(None),
    expanded: bool = Query(False, description="Show implementation columns on the admin board"),
    partner_id: UUID | None = Query(None),
    service: DealService = Depends(get_deal_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> Board:
    return await service.board(current_user, view=view, expanded=expanded, partner_id=partner_id)


@router.get("/{deal_id}", response_model=DealDetail)
async def get_deal(
    deal_id: UUID,
    service: DealService = Depends(get_deal_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> DealDetail:
    return DealDetail.model_validate(await service.get_deal(deal_id, current_user))


@router.patch("/{deal_id}", response_model=DealResponse)
async def update_deal(
    deal_id: UUID,
    data: DealUpdate,
    service: DealService = Depends(get_deal_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> DealResponse:
    deal = await service.update_deal(deal_id, current_user, data)
    return DealResponse.model_validate(deal)


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deal(
    deal_id: UUID,
    service: DealService = Depends(get_deal_service),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    await service.delete_deal(deal_id, current_user)


@router.post("/{deal_id}/stage", response_model=DealResponse)
async def move_deal_stage(
    deal_id: UUID,
    move: StageMove,
    service: DealService = Depends(get_deal_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> DealResponse:
    """Drop a deal on another board column.

    Admins move the admin stage, partners and partner managers move the
    sales stage. Partners must confirm a move to closed won.
    """
    deal = await service.move_stage(deal_id, current_user, move.stage, confirm=move.confirm)
    return DealResponse.model_validate(deal)


@router.get("/{deal_id}/activities", response_model=list[DealActivityResponse])
async def list_deal_activities(
    deal_id: UUID,
    service: DealService = Depends(get_deal_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[DealActivityResponse]:
    activities = await service.list_activities(deal_id, current_user)
    return [DealActivityResponse.model_validate(a) for a in activities]


@router.post(
    "/{deal_id}/activities",
    response_model=DealActivityResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_deal_note(
    deal_id: UUID,
    note: str = Body(..., embed=True),
    service: DealService = Depends(get_deal_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> DealActivityResponse:
    activity = await service.add_note(deal_id, current_user, note)
    return DealActivityResponse.model_validate(activity)
