"""
Bonus targets and awards.

A partner's bonus target is the maximum revenue of its current tier. Tiers
without a maximum have no target, so their progress stays at zero.
"""

import re
from datetime import date
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import CurrentUser, Role
from ..exceptions import NotFoundError, PartnerNotFoundError, PermissionDeniedError, ValidationError
from ..logging import log_audit_event
from ..partners.models import Partner
from ..partners.service import closed_won_revenue
from ..tiers.service import TierService
from .models import BonusAward, BonusProgress, BonusStatus, PartnerBonus

logger = structlog.get_logger(__name__)

PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def current_period(today: date | None = None) -> str:
    return (today or date.today()).strftime("%Y-%m")


def bonus_progress(total_revenue: Decimal, target: Decimal | None) -> tuple[float, Decimal, bool]:
    """Progress percentage, amount remaining and whether the target is met."""
    target = target or Decimal("0")
    if target <= 0:
        return 0.0, Decimal("0"), False
    progress = min(float(total_revenue / target * 100), 100.0)
    remaining = max(target - total_revenue, Decimal("0"))
    return progress, remaining, total_revenue >= target


def total_earned(bonuses: list[PartnerBonus]) -> Decimal:
    return sum((b.amount for b in bonuses if b.status == BonusStatus.PAID.value), Decimal("0"))


class BonusService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _partner(self, partner_id: UUID) -> Partner:
        partner = await self.session.get(Partner, partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)
        return partner

    def ensure_manages(self, actor: CurrentUser, partner: Partner) -> None:
        if actor.role == Role.ADMIN:
            return
        if actor.role == Role.PARTNER_MANAGER and partner.partner_manager_id == actor.profile_id:
            return
        raise PermissionDeniedError("You can only manage bonuses for your own partners")

    async def calculate_bonus_progress(self, partner_id: UUID) -> BonusProgress:
        partner = await self._partner(partner_id)
        tier = await TierService(self.session).get_tier(partner.organization.tier)
        revenue = await closed_won_revenue(self.session, partner_id)
        target = tier.max_revenue or Decimal("0")
        progress, remaining, achieved = bonus_progress(revenue, target)
        return BonusProgress(
            partner_id=partner_id,
            tier=tier.tier_name,
            total_revenue=revenue,
            target=target,
            bonus_amount=tier.bonus_amount or Decimal("0"),
            progress=progress,
            remaining=remaining,
            achieved=achieved,
        )

    async def list_bonuses(self, partner_id: UUID) -> list[PartnerBonus]:
        result = await self.session.execute(
            select(PartnerBonus)
            .where(PartnerBonus.partner_id == partner_id)
            .order_by(PartnerBonus.created_at.desc())
        )
        return list(result.scalars().all())

    async def award_bonus(
        self, partner_id: UUID, data: BonusAward, actor: CurrentUser
    ) -> PartnerBonus:
        partner = await self._partner(partner_id)
        self.ensure_manages(actor, partner)

        period = data.period or current_period()
        if not PERIOD_PATTERN.match(period):
            raise ValidationError("Period must be in YYYY-MM format", field="period")

        amount = data.amount
        if amount is None:
            tier = await TierService(self.session).get_tier(partner.organization.tier)
            amount = tier.bonus_amount or Decimal("0")

        bonus = PartnerBonus(
            partner_id=partner_id,
            period=period,
            amount=amount,
            status=data.status.value,
            notes=data.notes or None,
        )
        self.session.add(bonus)
        await self.session.commit()
        await self.session.refresh(bonus)

        log_audit_event(
            action="bonus_awarded",
            category="bonuses",
            user_id=actor.auth_user_id,
            resource_type="partner_bonus",
            resource_id=str(bonus.id),
            partner_id=str(partner_id),
            period=period,
            amount=str(amount),
        )
        return bonus

    async def update_bonus_status(
        self, bonus_id: UUID, status: BonusStatus, actor: CurrentUser, notes: str | None = None
    ) -> PartnerBonus:
        bonus = await self.session.get(PartnerBonus, bonus_id)
        if bonus is None:
            raise NotFoundError("Bonus", bonus_id)
        self.ensure_manages(actor, await self._partner(bonus.partner_id))

        old_status = bonus.status
        bonus.status = status.value
        if notes is not None:
            bonus.notes = notes
        await self.session.commit()
        await self.session.refresh(bonus)
        logger.info(
            "bonus.status.updated",
            bonus_id=str(bonus_id),
            old_status=old_status,
            new_status=bonus.status,
        )
        return bonus
