"""
Product catalogue management.
"""

from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, ValidationError
from .models import Product, ProductCreate, ProductUpdate

logger = structlog.get_logger(__name__)


class ProductService:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _validate(name: str | None, short_name: str | None) -> None:
        if not name or not short_name:
            raise ValidationError("Name and Short Name are required")

    async def create(self, data: ProductCreate) -> Product:
        self._validate(data.name, data.short_name)
        product = Product(**data.model_dump())
        self.session.add(product)
        await self.session.commit()
        await self.session.refresh(product)
        logger.info("product.created", product_id=str(product.id), short_name=product.short_name)
        return product

    async def get(self, product_id: UUID) -> Product:
        product = await self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def get_many(self, product_ids: list[UUID]) -> list[Product]:
        if not product_ids:
            return []
        result = await self.session.execute(select(Product).where(Product.id.in_(product_ids)))
        return list(result.scalars().all())

    async def list_products(
        self, search: str | None = None, active_only: bool = False
    ) -> list[Product]:
        query = select(Product)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                or_(
                    func.lower(Product.name).like(pattern),
                    func.lower(Product.short_name).like(pattern),
                )
            )
        if active_only:
            query = query.where(Product.is_active.is_(True))
        result = await self.session.execute(query.order_by(Product.name))
        return list(result.scalars().all())

    async def update(self, product_id: UUID, data: ProductUpdate) -> Product:
        product = await self.get(product_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(product, key, value)
        self._validate(product.name, product.short_name)
        await self.session.commit()
        await self.session.refresh(product)
        return product

    async def toggle_active(self, product_id: UUID) -> Product:
        product = await self.get(product_id)
        product.is_active = not product.is_active
        await self.session.commit()
        await self.session.refresh(product)
        logger.info("product.toggled", product_id=str(product_id), is_active=product.is_active)
        return product

    async def delete(self, product_id: UUID) -> None:
        product = await self.get(product_id)
        await self.session.delete(product)
        await self.session.commit()
        logger.info("product.deleted", product_id=str(product_id))
