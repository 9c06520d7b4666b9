"""
Partner bonuses API router.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import require_partner, require_staff
from ..auth.models import CurrentUser, Role
from ..db import get_async_session
from ..partners.service import PartnerService
from .models import (
    BonusAward,
    BonusOverview,
    BonusStatusUpdate,
    PartnerBonusResponse,
)
from .service import BonusService, total_earned

router = APIRouter(tags=["Bonuses"])


async def _overview(service: BonusService, partner_id: UUID) -> BonusOverview:
    progress = await service.calculate_bonus_progress(partner_id)
    bonuses = await service.list_bonuses(partner_id)
    return BonusOverview(
        progress=progress,
        bonuses=[PartnerBonusResponse.model_validate(b) for b in bonuses],
        total_earned=total_earned(bonuses),
    )


@router.get("/me", response_model=BonusOverview)
async def get_my_bonuses(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_partner),
) -> BonusOverview:
    return await _overview(BonusService(session), current_user.profile_id)


@router.get("/partners", response_model=list[BonusOverview])
async def list_partner_bonuses(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_staff),
) -> list[BonusOverview]:
    """Bonus progress for every partner the caller manages."""
    manager_id = current_user.profile_id if current_user.role == Role.PARTNER_MANAGER else None
    partners, _ = await PartnerService(session).list_partners(
        partner_manager_id=manager_id, per_page=10_000
    )
    service = BonusService(session)
    return [await _overview(service, p.id) for p in partners]


@router.get("/partners/{partner_id}", response_model=BonusOverview)
async def get_partner_bonuses(
    partner_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_staff),
) -> BonusOverview:
    service = BonusService(session)
    service.ensure_manages(current_user, await PartnerService(session).get_partner(partner_id))
    return await _overview(service, partner_id)


@router.post(
    "/partners/{partner_id}",
    response_model=PartnerBonusResponse,
    status_code=status.HTTP_201_CREATED,
)
async def award_bonus(
    partner_id: UUID,
    data: BonusAward,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_staff),
) -> PartnerBonusResponse:
    bonus = await BonusService(session).award_bonus(partner_id, data, current_user)
    return PartnerBonusResponse.model_validate(bonus)


@router.patch("/{bonus_id}", response_model=PartnerBonusResponse)
async def update_bonus_status(
    bonus_id: UUID,
    data: BonusStatusUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_staff),
) -> PartnerBonusResponse:
    bonus = await BonusService(session).update_bonus_status(
        bonus_id, data.status, current_user, notes=data.notes
    )
    return PartnerBonusResponse.model_validate(bonus)
