"""
Referral orders.

Referral partners record completed orders directly, and a referral
partner's deal becomes an order when it is first closed as won.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import CurrentUser, Role
from ..auth.service import is_valid_email
from ..communications import EmailGateway
from ..currencies.registry import format_currency
from ..deals.models import Deal
from ..exceptions import (
    DealNotFoundError,
    NotFoundError,
    PartnerNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ..partners.models import Partner
from ..partners.service import get_partner_manager_email
from ..products.service import ProductService
from ..settings import settings
from ..tiers.calculator import quantize_money
from ..tiers.service import TierService
from .models import ORDER_STATUS_COMPLETED, ReferralOrder, ReferralOrderCreate

logger = structlog.get_logger(__name__)


def commission_amount(order_value: Decimal, percentage: Decimal) -> Decimal:
    return quantize_money(order_value * percentage / Decimal("100"))


class ReferralService:
    def __init__(self, session: AsyncSession, email_gateway: EmailGateway):
        self.session = session
        self.email = email_gateway

    async def _load(self, order_id: UUID) -> ReferralOrder:
        result = await self.session.execute(
            select(ReferralOrder)
            .where(ReferralOrder.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Referral order", order_id)
        return order

    async def create_order(self, partner_id: UUID, data: ReferralOrderCreate) -> ReferralOrder:
        if not data.client_name:
            raise ValidationError("Client name is required", field="client_name")
        if not data.client_email:
            raise ValidationError("Client email is required", field="client_email")
        if not is_valid_email(data.client_email):
            raise ValidationError("Invalid email address", field="client_email")
        if not data.product_ids:
            raise ValidationError("At least one product must be selected", field="product_ids")
        if data.order_value is None or data.order_value <= 0:
            raise ValidationError("Order value must be greater than 0", field="order_value")

        partner = await self.session.get(Partner, partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)

        products = await ProductService(self.session).get_many(data.product_ids)
        if len(products) != len(set(data.product_ids)):
            raise ValidationError("One or more selected products do not exist", field="product_ids")
        product_names = ", ".join(p.name for p in products)
        descriptions = " | ".join(p.description for p in products if p.description)

        percentage = data.commission_percentage
        if percentage is None:
            percentage = await TierService(self.session).discount_for(partner.organization.tier)

        order = ReferralOrder(
            partner_id=partner.id,
            client_name=data.client_name,
            client_email=data.client_email,
            client_company=data.client_company or None,
            client_phone=data.client_phone or None,
            product_name=product_names,
            product_description=descriptions or None,
            order_value=data.order_value,
            currency=(data.currency or settings.business.default_currency).upper(),
            commission_percentage=percentage,
            commission_amount=commission_amount(data.order_value, percentage),
            expected_delivery_date=date.today(),
            status=ORDER_STATUS_COMPLETED,
            notes=data.notes or None,
        )
        self.session.add(order)
        await self.session.commit()
        order_id = order.id
        logger.info(
            "referral_order.created",
            order_id=str(order_id),
            partner_id=str(partner.id),
            order_value=str(order.order_value),
        )

        try:
            manager_email = await get_partner_manager_email(self.session, partner)
            await self.email.send_invoice(
                order_id,
                order.client_name,
                format_currency(order.order_value, order.currency),
                order.notes or f"Referral order for {product_names}",
                manager_email,
            )
        except Exception as e:
            logger.error("referral_order.invoice_failed", order_id=str(order_id), error=str(e))

        return await self._load(order_id)

    async def convert_deal(self, deal_id: UUID) -> ReferralOrder:
        """Create the referral order for a closed-won deal. Converting twice is a no-op."""
        existing = await self.session.execute(
            select(ReferralOrder).where(ReferralOrder.source_deal_id == deal_id)
        )
        order = existing.scalar_one_or_none()
        if order is not None:
            return order

        deal = await self.session.get(Deal, deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)

        product_name = deal.display_name
        product_description = deal.description
        if deal.product_id is not None:
            product = await ProductService(self.session).get(deal.product_id)
            product_name = product.name
            product_description = product.description or deal.description

        order_value = deal.deal_value or Decimal("0")
        percentage = deal.commission_percentage or Decimal("0")
        order = ReferralOrder(
            partner_id=deal.partner_id,
            source_deal_id=deal.id,
            client_name=deal.customer_name,
            client_email=deal.customer_email,
            client_company=deal.customer_company,
            client_phone=deal.customer_phone,
            product_name=product_name,
            product_description=product_description,
            order_value=order_value,
            currency=deal.currency,
            commission_percentage=percentage,
            commission_amount=deal.your_commission or commission_amount(order_value, percentage),
            expected_delivery_date=date.today(),
            status=ORDER_STATUS_COMPLETED,
            notes=deal.notes,
        )
        self.session.add(order)
        await self.session.commit()
        logger.info("referral_order.converted", order_id=str(order.id), deal_id=str(deal_id))
        return await self._load(order.id)

    async def get_order(self, order_id: UUID, actor: CurrentUser) -> ReferralOrder:
        order = await self._load(order_id)
        if actor.role == Role.PARTNER and order.partner_id != actor.profile_id:
            raise NotFoundError("Referral order", order_id)
        if (
            actor.role == Role.PARTNER_MANAGER
            and order.partner.partner_manager_id != actor.profile_id
        ):
            raise NotFoundError("Referral order", order_id)
        if actor.role == Role.SUPPORT_USER:
            raise PermissionDeniedError("You do not have access to referral orders")
        return order

    async def list_orders(
        self, actor: CurrentUser, partner_id: UUID | None = None
    ) -> list[ReferralOrder]:
        query = select(ReferralOrder)
        if actor.role == Role.PARTNER:
            partner_id = actor.profile_id
        elif actor.role == Role.PARTNER_MANAGER:
            managed = select(Partner.id).where(Partner.partner_manager_id == actor.profile_id)
            query = query.where(ReferralOrder.partner_id.in_(managed))
        elif actor.role == Role.SUPPORT_USER:
            raise PermissionDeniedError("You do not have access to referral orders")

        if partner_id is not None:
            query = query.where(ReferralOrder.partner_id == partner_id)
        result = await self.session.execute(query.order_by(ReferralOrder.created_at.desc()))
        return list(result.scalars().all())

    async def delete_order(self, order_id: UUID, actor: CurrentUser) -> None:
        order = await self.get_order(order_id, actor)
        if actor.role not in (Role.ADMIN, Role.PARTNER):
            raise PermissionDeniedError("You cannot delete referral orders")
        await self.session.delete(order)
        await self.session.commit()
        logger.info("referral_order.deleted", order_id=str(order_id))
