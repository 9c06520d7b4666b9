"""
MDF requests API router.
"""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user, require_admin, require_partner
from ..auth.models import CurrentUser
from ..db import get_async_session
from .models import (
    MDFRequestCreate,
    MDFRequestDetail,
    MDFRequestList,
    MDFRequestResponse,
    MDFStatusUpdate,
    MDFSummary,
)
from .service import MDFService

router = APIRouter(tags=["MDF"])


@router.post("", response_model=MDFRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_mdf_request(
    data: MDFRequestCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_partner),
) -> MDFRequestResponse:
    request = await MDFService(session).create_request(current_user.profile_id, data)
    return MDFRequestResponse.model_validate(request)


@router.get("", response_model=MDFRequestList)
async def list_mdf_requests(
    search: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    sort_by: str = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    partner_id: UUID | None = Query(None),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> MDFRequestList:
    requests = await MDFService(session).list_requests(
        current_user,
        search=search,
        status=status_filter,
        sort_by=sort_by,
        sort_order=sort_order,
        partner_id=partner_id,
    )
    return MDFRequestList(
        requests=[MDFRequestDetail.model_validate(r) for r in requests],
        total=len(requests),
    )


@router.get("/summary", response_model=MDFSummary)
async def get_my_mdf_summary(
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_partner),
) -> MDFSummary:
    return await MDFService(session).get_partner_mdf_summary(current_user.profile_id)


@router.get("/summary/{partner_id}", response_model=MDFSummary)
async def get_partner_mdf_summary(
    partner_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> MDFSummary:
    return await MDFService(session).get_partner_mdf_summary(partner_id)


@router.get("/{request_id}", response_model=MDFRequestDetail)
async def get_mdf_request(
    request_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> MDFRequestDetail:
    request = await MDFService(session).get_request(request_id, current_user)
    return MDFRequestDetail.model_validate(request)


@router.patch("/{request_id}/status", response_model=MDFRequestDetail)
async def update_mdf_status(
    request_id: UUID,
    data: MDFStatusUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> MDFRequestDetail:
    request = await MDFService(session).update_status(request_id, data, current_user)
    return MDFRequestDetail.model_validate(request)
