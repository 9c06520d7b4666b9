"""
Currency API router.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user, require_admin
from ..auth.models import CurrentUser
from ..db import get_async_session
from .models import CurrencyCreate, CurrencyResponse, CurrencyUpdate
from .registry import currency_options
from .service import CurrencyService

router = APIRouter(tags=["Currencies"])


@router.get("", response_model=list[CurrencyResponse])
async def list_currencies(
    active_only: bool = Query(False),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[CurrencyResponse]:
    currencies = await CurrencyService(session).list_currencies(active_only=active_only)
    return [CurrencyResponse.model_validate(c) for c in currencies]


@router.get("/options")
async def list_currency_options(
    current_user: CurrentUser = Depends(get_current_user),
) -> list[dict[str, str]]:
    return currency_options()


@router.post("", response_model=CurrencyResponse, status_code=status.HTTP_201_CREATED)
async def create_currency(
    data: CurrencyCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> CurrencyResponse:
    return CurrencyResponse.model_validate(await CurrencyService(session).create(data))


@router.patch("/{currency_id}", response_model=CurrencyResponse)
async def update_currency(
    currency_id: UUID,
    data: CurrencyUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> CurrencyResponse:
    return CurrencyResponse.model_validate(await CurrencyService(session).update(currency_id, data))


@router.post("/{currency_id}/toggle", response_model=CurrencyResponse)
async def toggle_currency(
    currency_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> CurrencyResponse:
    currency = await CurrencyService(session).toggle_active(currency_id)
    return CurrencyResponse.model_validate(currency)


@router.delete("/{currency_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_currency(
    currency_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    await CurrencyService(session).delete(currency_id)
