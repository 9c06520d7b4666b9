"""
Partner management API router.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user, require_admin, require_partner, require_staff
from ..auth.models import CurrentUser, Role
from ..db import get_async_session
from ..exceptions import PermissionDeniedError
from ..products.models import ProductResponse
from .models import (
    OrganizationResponse,
    OrganizationUpdate,
    PartnerCreate,
    PartnerDashboard,
    PartnerList,
    PartnerResponse,
    PartnerUpdate,
    ProductAssignment,
)
from .service import PartnerService

router = APIRouter(tags=["Partners"])


async def _ensure_can_view(service: PartnerService, user: CurrentUser, partner_id: UUID) -> None:
    """Partners see themselves, managers see their own partners, admins see everyone."""
    if user.role == Role.ADMIN:
        return
    if user.role == Role.PARTNER and user.profile_id == partner_id:
        return
    if user.role == Role.PARTNER_MANAGER:
        partner = await service.get_partner(partner_id)
        if partner.partner_manager_id == user.profile_id:
            return
    raise PermissionDeniedError("You do not have access to this partner")


@router.post("", response_model=PartnerResponse, status_code=status.HTTP_201_CREATED)
async def create_partner(
    data: PartnerCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_staff),
) -> PartnerResponse:
    if current_user.role == Role.PARTNER_MANAGER and data.partner_manager_id is None:
        data.partner_manager_id = current_user.profile_id
    partner = await PartnerService(session).create_partner(data)
    return PartnerResponse.model_validate(partner)


@router.get("", response_model=PartnerList)
async def list_partners(
    search: str | None = Query(None),
    tier: str | None = Query(None),
    organization_type: str | None = Query(None, alias="type"),
    partner_manager_id: UUID | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=500),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_staff),
) -> PartnerList:
    if current_user.role == Role.PARTNER_MANAGER:
        partner_manager_id = current_user.profile_id

    partners, total = await PartnerService(session).list_partners(
        search=search,
        tier=tier,
        organization_type=organization_type,
        partner_manager_id=partner_manager_id,
        page=page,
        per_page=per_page,
    )
    return PartnerList(
        partners=[PartnerResponse.model_validate(p) for p in partners],
        total=total,
        page=page,
        per_page=per_page,
        has_next=page * per_page < total,
        has_prev=page > 1,
    )


@router.get("/me", response_model=PartnerResponse)
async def get_my_partner_profile(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_partner),
) -> PartnerResponse:
    partner = await PartnerService(session).get_partner(current_user.profile_id)
    return PartnerResponse.model_validate(partner)


@router.get("/me/dashboard", response_model=PartnerDashboard)
async def get_my_dashboard(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_partner),
) -> PartnerDashboard:
    return await PartnerService(session).get_dashboard(current_user.profile_id)


@router.get("/me/products", response_model=list[ProductResponse])
async def get_my_products(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_partner),
) -> list[ProductResponse]:
    products = await PartnerService(session).list_partner_products(current_user.profile_id)
    return [ProductResponse.model_validate(p) for p in products]


@router.get("/{partner_id}", response_model=PartnerResponse)
async def get_partner(
    partner_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> PartnerResponse:
    service = PartnerService(session)
    await _ensure_can_view(service, current_user, partner_id)
    return PartnerResponse.model_validate(await service.get_partner(partner_id))


@router.get("/{partner_id}/dashboard", response_model=PartnerDashboard)
async def get_partner_dashboard(
    partner_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> PartnerDashboard:
    service = PartnerService(session)
    await _ensure_can_view(service, current_user, partner_id)
    return await service.get_dashboard(partner_id)


@router.patch("/{partner_id}", response_model=PartnerResponse)
async def update_partner(
    partner_id: UUID,
    data: PartnerUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> PartnerResponse:
    partner = await PartnerService(session).update_partner(partner_id, data)
    return PartnerResponse.model_validate(partner)


@router.delete("/{partner_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_partner(
    partner_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    await PartnerService(session).delete_partner(partner_id)


@router.patch("/organizations/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: UUID,
    data: OrganizationUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> OrganizationResponse:
    organization = await PartnerService(session).update_organization(organization_id, data)
    return OrganizationResponse.model_validate(organization)


@router.get("/{partner_id}/products", response_model=list[ProductResponse])
async def list_partner_products(
    partner_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[ProductResponse]:
    service = PartnerService(session)
    await _ensure_can_view(service, current_user, partner_id)
    products = await service.list_partner_products(partner_id)
    return [ProductResponse.model_validate(p) for p in products]


@router.put("/{partner_id}/products", response_model=list[ProductResponse])
async def assign_partner_products(
    partner_id: UUID,
    data: ProductAssignment,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> list[ProductResponse]:
    products = await PartnerService(session).assign_products(partner_id, data.product_ids)
    return [ProductResponse.model_validate(p) for p in products]
