"""
Product API router.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user, require_admin
from ..auth.models import CurrentUser
from ..db import get_async_session
from .models import ProductCreate, ProductResponse, ProductUpdate
from .service import ProductService

router = APIRouter(tags=["Products"])


@router.get("", response_model=list[ProductResponse])
async def list_products(
    search: str | None = Query(None),
    active_only: bool = Query(False),
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[ProductResponse]:
    products = await ProductService(session).list_products(search, active_only)
    return [ProductResponse.model_validate(p) for p in products]


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> ProductResponse:
    return ProductResponse.model_validate(await ProductService(session).create(data))


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(get_current_user),
) -> ProductResponse:
    return ProductResponse.model_validate(await ProductService(session).get(product_id))


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    data: ProductUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> ProductResponse:
    return ProductResponse.model_validate(await ProductService(session).update(product_id, data))


@router.post("/{product_id}/toggle", response_model=ProductResponse)
async def toggle_product(
    product_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> ProductResponse:
    return ProductResponse.model_validate(await ProductService(session).toggle_active(product_id))


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: UUID,
    session: AsyncSession = Depends(get_async_session),
    current_user: CurrentUser = Depends(require_admin),
) -> None:
    await ProductService(session).delete(product_id)
