"""
Identity, staff profile and admin password API routers.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from .client import AuthAdminClient, get_auth_admin_client
from .dependencies import get_current_user, require_admin
from .models import (
    CurrentUser,
    CurrentUserResponse,
    PasswordResetRequest,
    PasswordResetResponse,
    ProfileCreate,
    ProfileResponse,
    ProfileUpdate,
    Role,
    RouteDecision,
    home_path,
)
from .service import PasswordResetService, ProfileService, redirect_for

router = APIRouter(tags=["Auth"])
admin_router = APIRouter(tags=["Admin"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUserResponse:
    return CurrentUserResponse(**current_user.model_dump(), home_path=home_path(current_user.role))


@router.get("/route", response_model=RouteDecision)
async def check_route(
    path: str = Query(..., min_length=1),
    current_user: CurrentUser = Depends(get_current_user),
) -> RouteDecision:
    redirect_to = redirect_for(current_user.role, path)
    return RouteDecision(path=path, allowed=redirect_to is None, redirect_to=redirect_to)


# Staff profiles


@router.get("/staff/{role}", response_model=list[ProfileResponse])
async def list_staff_profiles(
    role: Role,
    search: str | None = Query(None),
    active_only: bool = Query(False),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> list[ProfileResponse]:
    profiles = await ProfileService(session, role).list_profiles(search, active_only)
    return [ProfileResponse.model_validate(p) for p in profiles]


@router.post("/staff/{role}", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_staff_profile(
    role: Role,
    data: ProfileCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> ProfileResponse:
    profile = await ProfileService(session, role).create(data)
    return ProfileResponse.model_validate(profile)


@router.get("/staff/{role}/{profile_id}", response_model=ProfileResponse)
async def get_staff_profile(
    role: Role,
    profile_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> ProfileResponse:
    return ProfileResponse.model_validate(await ProfileService(session, role).get(profile_id))


@router.patch("/staff/{role}/{profile_id}", response_model=ProfileResponse)
async def update_staff_profile(
    role: Role,
    profile_id: UUID,
    data: ProfileUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> ProfileResponse:
    profile = await ProfileService(session, role).update(profile_id, data)
    return ProfileResponse.model_validate(profile)


@router.delete("/staff/{role}/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_staff_profile(
    role: Role,
    profile_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    await ProfileService(session, role).delete(profile_id)


@admin_router.post("/update-password", response_model=PasswordResetResponse)
async def update_password(
    data: PasswordResetRequest,
    session: AsyncSession = Depends(get_async_session),
    client: AuthAdminClient = Depends(get_auth_admin_client),
) -> PasswordResetResponse:
    """Change another user's password. The requester must hold an admin profile."""
    await PasswordResetService(session, client).reset_password(
        data.user_id, data.new_password, data.admin_auth_user_id
    )
    return PasswordResetResponse()
