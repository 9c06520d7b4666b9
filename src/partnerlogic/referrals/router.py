"""
Referral orders API router.
"""

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user, require_partner
from ..auth.models import CurrentUser
from ..communications import EmailGateway, get_email_gateway
from ..db import get_async_session
from .models import ReferralOrderCreate, ReferralOrderList, ReferralOrderResponse
from .service import ReferralService

router = APIRouter(tags=["Referral Orders"])


def get_referral_service(
    session: AsyncSession = Depends(get_async_session),
    email_gateway: EmailGateway = Depends(get_email_gateway),
) -> ReferralService:
    return ReferralService(session, email_gateway)


@router.post("", response_model=ReferralOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_referral_order(
    data: ReferralOrderCreate,
    service: ReferralService = Depends(get_referral_service),
    current_user: CurrentUser = Depends(require_partner),
) -> ReferralOrderResponse:
    order = await service.create_order(current_user.profile_id, data)
    return ReferralOrderResponse.model_validate(order)


@router.get("", response_model=ReferralOrderList)
async def list_referral_orders(
    partner_id: UUID | None = Query(None),
    service: ReferralService = Depends(get_referral_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReferralOrderList:
    orders = await service.list_orders(current_user, partner_id=partner_id)
    return ReferralOrderList(
        orders=[ReferralOrderResponse.model_validate(o) for o in orders],
        total=len(orders),
        total_value=sum((o.order_value for o in orders), Decimal("0")),
        total_commission=sum((o.commission_amount for o in orders), Decimal("0")),
    )


@router.get("/{order_id}", response_model=ReferralOrderResponse)
async def get_referral_order(
    order_id: UUID,
    service: ReferralService = Depends(get_referral_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReferralOrderResponse:
    return ReferralOrderResponse.model_validate(await service.get_order(order_id, current_user))


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_referral_order(
    order_id: UUID,
    service: ReferralService = Depends(get_referral_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    await service.delete_order(order_id, current_user)
