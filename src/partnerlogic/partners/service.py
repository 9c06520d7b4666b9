"""
Partner and organization management.
"""

from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import PartnerManagerProfile
from ..auth.service import is_valid_email
from ..deals.models import CLOSED_WON, Deal
from ..exceptions import DuplicateError, NotFoundError, PartnerNotFoundError, ValidationError
from ..mdf.models import COMMITTED_STATUSES, MDFRequest
from ..notifications import templates
from ..notifications.service import NotificationService
from ..products.models import Product
from ..tiers.calculator import calculate_tier_progress
from ..tiers.service import TierService
from .models import (
    Organization,
    OrganizationUpdate,
    Partner,
    PartnerCreate,
    PartnerDashboard,
    PartnerProduct,
    PartnerUpdate,
)

logger = structlog.get_logger(__name__)

OPEN_STAGES = ("new_deal", "need_analysis", "proposal", "negotiation")


async def get_partner_manager_email(session: AsyncSession, partner: Partner) -> str | None:
    """Email of the partner's manager, if one is assigned."""
    if partner.partner_manager_id is None:
        return None
    manager = await session.get(PartnerManagerProfile, partner.partner_manager_id)
    return manager.email if manager else None


async def closed_won_revenue(session: AsyncSession, partner_id: UUID) -> Decimal:
    """Sum of deal values for the partner's closed-won deals."""
    result = await session.execute(
        select(func.coalesce(func.sum(Deal.deal_value), 0)).where(
            and_(Deal.partner_id == partner_id, Deal.stage == CLOSED_WON)
        )
    )
    return Decimal(str(result.scalar() or 0))


class PartnerService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.tiers = TierService(session)

    @staticmethod
    def _validate_contact(first_name: str | None, last_name: str | None, email: str | None) -> None:
        if not first_name:
            raise ValidationError("First name is required", field="first_name")
        if not last_name:
            raise ValidationError("Last name is required", field="last_name")
        if not email:
            raise ValidationError("Email is required", field="email")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format", field="email")

    async def _ensure_email_free(self, email: str, exclude_id: UUID | None = None) -> None:
        query = select(Partner.id).where(func.lower(Partner.email) == email.lower())
        if exclude_id is not None:
            query = query.where(Partner.id != exclude_id)
        if (await self.session.execute(query)).first() is not None:
            raise DuplicateError("A partner with this email already exists", email=email)

    async def _derive_allocation(self, tier: str, mdf_enabled: bool) -> tuple[Decimal, Decimal]:
        """Discount and MDF allocation for a tier. MDF is zero when disabled."""
        settings = await self.tiers.get_tier(tier)
        mdf = settings.mdf_allocation if mdf_enabled else Decimal("0")
        return settings.discount_percentage, mdf

    async def create_partner(self, data: PartnerCreate) -> Partner:
        """Create a partner and, unless an existing organization is given, its organization."""
        self._validate_contact(data.first_name, data.last_name, data.email)
        await self._ensure_email_free(data.email)

        if data.organization_id is not None:
            organization = await self.session.get(Organization, data.organization_id)
            if organization is None:
                raise NotFoundError("Organization", data.organization_id)
        else:
            if not data.organization_name:
                raise ValidationError(
                    "Organization name is required", field="organization_name"
                )
            discount, mdf = await self._derive_allocation(data.tier.value, data.mdf_enabled)
            organization = Organization(
                name=data.organization_name,
                type=data.organization_type.value,
                tier=data.tier.value,
                discount_percentage=discount,
                mdf_allocation=mdf,
                mdf_enabled=data.mdf_enabled,
                learning_enabled=data.learning_enabled,
            )
            self.session.add(organization)
            await self.session.flush()

        partner = Partner(
            organization_id=organization.id,
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone=data.phone or None,
            partner_manager_id=data.partner_manager_id,
            auth_user_id=data.auth_user_id or None,
        )
        self.session.add(partner)
        await self.session.commit()
        partner_id = partner.id

        logger.info(
            "partner.created",
            partner_id=str(partner_id),
            organization_id=str(organization.id),
            tier=organization.tier,
        )

        try:
            await NotificationService(self.session).notify_admins(
                templates.partner_registered(partner.full_name),
                reference_id=partner_id,
                reference_type="partner",
            )
        except Exception as e:
            await self.session.rollback()
            logger.error("partner.notify_failed", partner_id=str(partner_id), error=str(e))

        return await self.get_partner(partner_id)

    async def get_partner(self, partner_id: UUID) -> Partner:
        result = await self.session.execute(
            select(Partner)
            .where(Partner.id == partner_id)
            .execution_options(populate_existing=True)
        )
        partner = result.scalar_one_or_none()
        if partner is None:
            raise PartnerNotFoundError(partner_id)
        return partner

    async def list_partners(
        self,
        search: str | None = None,
        tier: str | None = None,
        organization_type: str | None = None,
        partner_manager_id: UUID | None = None,
        page: int = 1,
        per_page: int = 50,
    ) -> tuple[list[Partner], int]:
        conditions = []
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Partner.first_name).like(pattern),
                    func.lower(Partner.last_name).like(pattern),
                    func.lower(Partner.email).like(pattern),
                    func.lower(Organization.name).like(pattern),
                )
            )
        if tier:
            conditions.append(Organization.tier == tier)
        if organization_type:
            conditions.append(Organization.type == organization_type)
        if partner_manager_id:
            conditions.append(Partner.partner_manager_id == partner_manager_id)

        query = select(Partner).join(Organization, Partner.organization_id == Organization.id)
        if conditions:
            query = query.where(and_(*conditions))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar() or 0

        query = (
            query.order_by(Partner.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def update_partner(self, partner_id: UUID, data: PartnerUpdate) -> Partner:
        partner = await self.get_partner(partner_id)
        changes = data.model_dump(exclude_unset=True)

        if "email" in changes and changes["email"] != partner.email:
            await self._ensure_email_free(changes["email"], exclude_id=partner.id)
        for key, value in changes.items():
            setattr(partner, key, value)
        self._validate_contact(partner.first_name, partner.last_name, partner.email)

        await self.session.commit()
        logger.info("partner.updated", partner_id=str(partner_id), fields=sorted(changes))
        return await self.get_partner(partner_id)

    async def update_organization(
        self, organization_id: UUID, data: OrganizationUpdate
    ) -> Organization:
        """Update an organization.

        A tier or MDF toggle change re-derives discount and allocation from the
        tier unless explicit values are supplied in the same request.
        """
        organization = await self.session.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError("Organization", organization_id)

        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and not changes["name"]:
            raise ValidationError("Organization name is required", field="name")

        previous_tier = organization.tier
        for key in ("name", "learning_enabled"):
            if key in changes:
                setattr(organization, key, changes[key])
        if changes.get("type") is not None:
            organization.type = changes["type"].value
        if changes.get("tier") is not None:
            organization.tier = changes["tier"].value
        if changes.get("mdf_enabled") is not None:
            organization.mdf_enabled = changes["mdf_enabled"]

        if "tier" in changes or "mdf_enabled" in changes:
            discount, mdf = await self._derive_allocation(
                organization.tier, organization.mdf_enabled
            )
            organization.discount_percentage = discount
            organization.mdf_allocation = mdf
        if changes.get("discount_percentage") is not None:
            organization.discount_percentage = changes["discount_percentage"]
        if changes.get("mdf_allocation") is not None:
            organization.mdf_allocation = (
                changes["mdf_allocation"] if organization.mdf_enabled else Decimal("0")
            )

        await self.session.commit()
        await self.session.refresh(organization)

        if organization.tier != previous_tier:
            logger.info(
                "organization.tier.changed",
                organization_id=str(organization_id),
                old_tier=previous_tier,
                new_tier=organization.tier,
            )
        return organization

    async def delete_partner(self, partner_id: UUID) -> None:
        """Delete a partner, and its organization when no other partner belongs to it."""
        partner = await self.get_partner(partner_id)
        organization_id = partner.organization_id
        await self.session.delete(partner)
        await self.session.flush()

        remaining = (
            await self.session.execute(
                select(func.count()).select_from(Partner).where(
                    Partner.organization_id == organization_id
                )
            )
        ).scalar() or 0
        if remaining == 0:
            await self.session.execute(
                delete(Organization).where(Organization.id == organization_id)
            )

        await self.session.commit()
        logger.info("partner.deleted", partner_id=str(partner_id))

    async def assign_products(self, partner_id: UUID, product_ids: list[UUID]) -> list[Product]:
        """Replace the partner's product assignments."""
        await self.get_partner(partner_id)
        unique_ids = list(dict.fromkeys(product_ids))
        if unique_ids:
            found = (
                await self.session.execute(select(Product.id).where(Product.id.in_(unique_ids)))
            ).scalars().all()
            missing = set(unique_ids) - set(found)
            if missing:
                raise NotFoundError("Product", next(iter(missing)))

        await self.session.execute(
            delete(PartnerProduct).where(PartnerProduct.partner_id == partner_id)
        )
        self.session.add_all(
            PartnerProduct(partner_id=partner_id, product_id=product_id)
            for product_id in unique_ids
        )
        await self.session.commit()
        logger.info("partner.products.assigned", partner_id=str(partner_id), count=len(unique_ids))
        return await self.list_partner_products(partner_id)

    async def list_partner_products(self, partner_id: UUID) -> list[Product]:
        result = await self.session.execute(
            select(Product)
            .join(PartnerProduct, PartnerProduct.product_id == Product.id)
            .where(PartnerProduct.partner_id == partner_id)
            .order_by(Product.name)
        )
        return list(result.scalars().all())

    async def get_dashboard(self, partner_id: UUID) -> PartnerDashboard:
        partner = await self.get_partner(partner_id)
        organization = partner.organization

        deal_rows = (
            await self.session.execute(
                select(Deal.stage, func.count(), func.coalesce(func.sum(Deal.deal_value), 0))
                .where(Deal.partner_id == partner_id)
                .group_by(Deal.stage)
            )
        ).all()
        counts = {stage: (count, Decimal(str(value))) for stage, count, value in deal_rows}

        total_deals = sum(count for count, _ in counts.values())
        open_deals = sum(counts.get(stage, (0, 0))[0] for stage in OPEN_STAGES)
        pipeline_value = sum(
            (counts.get(stage, (0, Decimal("0")))[1] for stage in OPEN_STAGES), Decimal("0")
        )
        won_count, won_value = counts.get(CLOSED_WON, (0, Decimal("0")))

        used = Decimal(
            str(
                (
                    await self.session.execute(
                        select(func.coalesce(func.sum(MDFRequest.approved_amount), 0)).where(
                            MDFRequest.partner_id == partner_id,
                            MDFRequest.status.in_(COMMITTED_STATUSES),
                        )
                    )
                ).scalar()
                or 0
            )
        )
        allocation = organization.mdf_allocation or Decimal("0")

        return PartnerDashboard(
            partner_id=partner.id,
            organization_name=organization.name,
            tier=organization.tier,
            total_deals=total_deals,
            open_deals=open_deals,
            closed_won_deals=won_count,
            pipeline_value=pipeline_value,
            closed_won_revenue=won_value,
            mdf_allocation=allocation,
            mdf_used=used,
            mdf_remaining=max(allocation - used, Decimal("0")),
            tier_progress=calculate_tier_progress(won_value, organization.tier),
        )

