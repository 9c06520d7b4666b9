"""
Tier settings persistence.

When the table is empty the default ladder is served so commission and MDF
lookups keep working before an admin has saved any tiers.
"""

from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import TierNotFoundError
from ..logging import log_audit_event
from .calculator import DEFAULT_TIERS, calculate_commission, validate_tiers
from .models import TierSetting, TierSettingInput, TierSettingResponse

logger = structlog.get_logger(__name__)


def default_tier_settings() -> list[TierSettingResponse]:
    return [TierSettingResponse(**tier) for tier in DEFAULT_TIERS]


class TierService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_tiers(self, active_only: bool = True) -> list[TierSettingResponse]:
        query = select(TierSetting).order_by(TierSetting.tier_order)
        if active_only:
            query = query.where(TierSetting.is_active.is_(True))
        rows = (await self.session.execute(query)).scalars().all()
        if not rows:
            return default_tier_settings()
        return [TierSettingResponse.model_validate(row) for row in rows]

    async def get_tier(self, tier_name: str) -> TierSettingResponse:
        """Current settings for ``tier_name``, falling back to the default ladder."""
        name = (tier_name or "").lower()
        row = (
            await self.session.execute(select(TierSetting).where(TierSetting.tier_name == name))
        ).scalar_one_or_none()
        if row is not None:
            return TierSettingResponse.model_validate(row)

        for tier in default_tier_settings():
            if tier.tier_name == name:
                return tier
        raise TierNotFoundError(name)

    async def discount_for(self, tier_name: str) -> Decimal:
        return (await self.get_tier(tier_name)).discount_percentage

    async def quote_commission(
        self, deal_value: Decimal | None, tier_name: str
    ) -> tuple[Decimal, Decimal, Decimal]:
        """Return ``(discount_percentage, commission, price_to_vendor)`` for a tier."""
        discount = await self.discount_for(tier_name)
        commission, price_to_vendor = calculate_commission(deal_value, discount)
        return discount, commission, price_to_vendor

    async def save_tiers(
        self, tiers: list[TierSettingInput], updated_by: str | None = None
    ) -> list[TierSettingResponse]:
        """Validate the full ladder then upsert every tier by name."""
        validate_tiers(tiers)

        existing = {
            row.tier_name: row
            for row in (await self.session.execute(select(TierSetting))).scalars().all()
        }
        for tier in tiers:
            values = tier.model_dump()
            values["tier_name"] = tier.tier_name.lower()
            row = existing.get(values["tier_name"])
            if row is None:
                self.session.add(TierSetting(**values))
            else:
                for key, value in values.items():
                    setattr(row, key, value)

        await self.session.commit()
        logger.info("tiers.saved", count=len(tiers))
        log_audit_event(
            "tiers.updated",
            "configuration",
            user_id=updated_by,
            resource_type="tier_settings",
            tiers=[t.tier_name for t in tiers],
        )
        return await self.list_tiers(active_only=False)

    async def initialize_defaults(self) -> list[TierSettingResponse]:
        """Store the default ladder if no tiers exist yet."""
        existing = (await self.session.execute(select(TierSetting.id).limit(1))).first()
        if existing is None:
            self.session.add_all(TierSetting(**tier) for tier in DEFAULT_TIERS)
            await self.session.commit()
            logger.info("tiers.defaults_initialized")
        return await self.list_tiers(active_only=False)
