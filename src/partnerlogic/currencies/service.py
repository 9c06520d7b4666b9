"""
Currency management.
"""

from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import DuplicateError, NotFoundError, ValidationError
from .models import Currency, CurrencyCreate, CurrencyUpdate
from .registry import CURRENCIES

logger = structlog.get_logger(__name__)


class CurrencyService:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _validate(code: str, symbol: str, name: str) -> None:
        if not code or len(code) != 3:
            raise ValidationError("Currency code must be exactly 3 characters", field="code")
        if not symbol or not symbol.strip():
            raise ValidationError("Symbol is required", field="symbol")
        if not name or not name.strip():
            raise ValidationError("Name is required", field="name")

    async def _ensure_unique(self, code: str, exclude_id: UUID | None = None) -> None:
        query = select(Currency).where(func.upper(Currency.code) == code.upper())
        if exclude_id is not None:
            query = query.where(Currency.id != exclude_id)
        if (await self.session.execute(query)).scalar_one_or_none() is not None:
            raise DuplicateError("Currency code already exists", code=code.upper())

    async def create(self, data: CurrencyCreate) -> Currency:
        self._validate(data.code, data.symbol, data.name)
        await self._ensure_unique(data.code)

        currency = Currency(
            code=data.code.upper(), symbol=data.symbol, name=data.name, is_active=data.is_active
        )
        self.session.add(currency)
        await self.session.commit()
        await self.session.refresh(currency)
        logger.info("currency.created", code=currency.code)
        return currency

    async def get(self, currency_id: UUID) -> Currency:
        currency = await self.session.get(Currency, currency_id)
        if currency is None:
            raise NotFoundError("Currency", currency_id)
        return currency

    async def list_currencies(self, active_only: bool = False) -> list[Currency]:
        query = select(Currency).order_by(Currency.code)
        if active_only:
            query = query.where(Currency.is_active.is_(True))
        return list((await self.session.execute(query)).scalars().all())

    async def update(self, currency_id: UUID, data: CurrencyUpdate) -> Currency:
        currency = await self.get(currency_id)
        changes = data.model_dump(exclude_unset=True)

        code = changes.get("code", currency.code)
        symbol = changes.get("symbol", currency.symbol)
        name = changes.get("name", currency.name)
        self._validate(code, symbol, name)
        await self._ensure_unique(code, exclude_id=currency.id)

        currency.code = code.upper()
        currency.symbol = symbol
        currency.name = name
        if "is_active" in changes:
            currency.is_active = changes["is_active"]

        await self.session.commit()
        await self.session.refresh(currency)
        logger.info("currency.updated", code=currency.code)
        return currency

    async def toggle_active(self, currency_id: UUID) -> Currency:
        currency = await self.get(currency_id)
        currency.is_active = not currency.is_active
        await self.session.commit()
        await self.session.refresh(currency)
        return currency

    async def delete(self, currency_id: UUID) -> None:
        currency = await self.get(currency_id)
        await self.session.delete(currency)
        await self.session.commit()
        logger.info("currency.deleted", code=currency.code)

    async def seed_registry(self) -> int:
        """Insert registry currencies that are not stored yet. Returns how many were added."""
        existing = set((await self.session.execute(select(Currency.code))).scalars().all())
        added = 0
        for code, info in CURRENCIES.items():
            if code in existing:
                continue
            self.session.add(Currency(code=code, symbol=info.symbol, name=info.name))
            added += 1
        await self.session.commit()
        return added
