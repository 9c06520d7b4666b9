"""
Tier settings API router.
"""

from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user, require_admin
from ..auth.models import CurrentUser
from ..db import get_async_session
from .calculator import calculate_tier_progress
from .models import CommissionQuote, TierProgress, TierSettingResponse, TierSettingsUpdate
from .service import TierService

router = APIRouter(tags=["Tiers"])


@router.get("", response_model=list[TierSettingResponse])
async def list_tiers(
    active_only: bool = Query(True),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[TierSettingResponse]:
    return await TierService(session).list_tiers(active_only=active_only)


@router.put("", response_model=list[TierSettingResponse])
async def save_tiers(
    payload: TierSettingsUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> list[TierSettingResponse]:
    """Replace the tier ladder. The whole table is validated before anything is written."""
    return await TierService(session).save_tiers(payload.tiers, current_user.auth_user_id)


@router.post("/initialize", response_model=list[TierSettingResponse])
async def initialize_tiers(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> list[TierSettingResponse]:
    return await TierService(session).initialize_defaults()


@router.get("/progress", response_model=TierProgress)
async def tier_progress(
    tier: str = Query(...),
    revenue: Decimal = Query(Decimal("0"), ge=0),
    current_user: CurrentUser = Depends(get_current_user),
) -> TierProgress:
    return calculate_tier_progress(revenue, tier)


@router.get("/commission", response_model=CommissionQuote)
async def commission_quote(
    tier: str = Query(...),
    deal_value: Decimal = Query(..., ge=0),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> CommissionQuote:
    discount, commission, price = await TierService(session).quote_commission(deal_value, tier)
    return CommissionQuote(
        deal_value=deal_value,
        discount_percentage=discount,
        commission=commission,
        price_to_vendor=price,
    )
