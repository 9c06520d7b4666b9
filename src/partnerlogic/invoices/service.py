"""
Invoices over closed-won deals and completed referral orders.

Accounts users track payment status here. Marking an invoice overdue sends
a reminder to the partner when overdue reminders are enabled.
"""

import calendar
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import CurrentUser, Role
from ..communications import EmailGateway
from ..currencies.registry import format_currency
from ..deals.models import CLOSED_WON, Deal, PaymentStatus
from ..exceptions import NotFoundError, PermissionDeniedError
from ..logging import log_audit_event
from ..partners.models import Organization, OrganizationType, Partner
from ..products.models import Product
from ..referrals.models import ORDER_STATUS_COMPLETED, ReferralOrder
from ..settings import settings
from .models import (
    DateRange,
    InvoiceDocument,
    InvoiceKind,
    InvoiceLine,
    InvoiceList,
    InvoiceParty,
    InvoiceSummary,
)
from .pdf import render_invoice_pdf

logger = structlog.get_logger(__name__)


def _months_ago(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def range_start(date_range: DateRange, now: datetime | None = None) -> datetime | None:
    """Lower bound of a relative date filter, ``None`` for all time."""
    now = now or datetime.now(UTC)
    if date_range == DateRange.TODAY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_range == DateRange.WEEK:
        return now - timedelta(days=7)
    if date_range == DateRange.MONTH:
        return _months_ago(now, 1)
    if date_range == DateRange.QUARTER:
        return _months_ago(now, 3)
    return None


def _partner_party(partner: Partner) -> InvoiceParty:
    return InvoiceParty(
        name=partner.full_name,
        company=partner.organization.name,
        email=partner.email,
        phone=partner.phone,
    )


def deal_summary(deal: Deal) -> InvoiceSummary:
    partner = deal.partner
    amount = deal.deal_value or Decimal("0")
    return InvoiceSummary(
        kind=InvoiceKind.DEAL,
        record_id=deal.id,
        invoice_number=deal.invoice_number,
        partner_id=deal.partner_id,
        partner_name=partner.full_name,
        organization_name=partner.organization.name,
        organization_type=partner.organization.type,
        customer=InvoiceParty(
            name=deal.customer_name,
            company=deal.customer_company,
            email=deal.customer_email,
            phone=deal.customer_phone,
        ),
        description=deal.description or deal.notes,
        amount=amount,
        currency=deal.currency,
        formatted_amount=format_currency(amount, deal.currency),
        commission_amount=deal.your_commission,
        payment_status=deal.payment_status,
        invoice_date=deal.closed_won_at or deal.updated_at,
    )


def order_summary(order: ReferralOrder) -> InvoiceSummary:
    partner = order.partner
    return InvoiceSummary(
        kind=InvoiceKind.REFERRAL_ORDER,
        record_id=order.id,
        invoice_number=order.invoice_number,
        partner_id=order.partner_id,
        partner_name=partner.full_name,
        organization_name=partner.organization.name,
        organization_type=partner.organization.type,
        customer=InvoiceParty(
            name=order.client_name,
            company=order.client_company,
            email=order.client_email,
            phone=order.client_phone,
        ),
        description=order.product_name,
        amount=order.order_value,
        currency=order.currency,
        formatted_amount=format_currency(order.order_value, order.currency),
        commission_amount=order.commission_amount,
        payment_status=order.payment_status,
        invoice_date=order.created_at,
    )


class InvoiceService:
    def __init__(self, session: AsyncSession, email_gateway: EmailGateway):
        self.session = session
        self.email = email_gateway

    def _partner_scope(self, actor: CurrentUser, column: Any) -> list[Any]:
        if actor.role in (Role.ADMIN, Role.ACCOUNT_USER):
            return []
        if actor.role == Role.PARTNER:
            return [column == actor.profile_id]
        if actor.role == Role.PARTNER_MANAGER:
            managed = select(Partner.id).where(Partner.partner_manager_id == actor.profile_id)
            return [column.in_(managed)]
        raise PermissionDeniedError("You do not have access to invoices")

    async def _is_referral_partner(self, partner_id: UUID) -> bool:
        result = await self.session.execute(
            select(Organization.type)
            .join(Partner, Partner.organization_id == Organization.id)
            .where(Partner.id == partner_id)
        )
        return result.scalar_one_or_none() == OrganizationType.REFERRAL.value

    async def _list_deals(
        self,
        actor: CurrentUser,
        search: str | None,
        start: datetime | None,
        partner_id: UUID | None,
        payment_status: str | None,
    ) -> list[Deal]:
        conditions = self._partner_scope(actor, Deal.partner_id)
        conditions.append(or_(Deal.stage == CLOSED_WON, Deal.admin_stage == CLOSED_WON))
        invoice_date = func.coalesce(Deal.closed_won_at, Deal.updated_at)

        query = select(Deal).join(Partner, Deal.partner_id == Partner.id)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Deal.customer_name).like(pattern),
                    func.lower(Deal.customer_company).like(pattern),
                    func.lower(Deal.customer_email).like(pattern),
                    func.lower(Partner.first_name).like(pattern),
                    func.lower(Partner.last_name).like(pattern),
                )
            )
        if start is not None:
            conditions.append(invoice_date >= start)
        if partner_id:
            conditions.append(Deal.partner_id == partner_id)
        if payment_status:
            conditions.append(Deal.payment_status == payment_status)

        result = await self.session.execute(
            query.where(and_(*conditions)).order_by(invoice_date.desc())
        )
        return list(result.scalars().all())

    async def _list_orders(
        self,
        actor: CurrentUser,
        search: str | None,
        start: datetime | None,
        partner_id: UUID | None,
        payment_status: str | None,
    ) -> list[ReferralOrder]:
        conditions = self._partner_scope(actor, ReferralOrder.partner_id)
        conditions.append(ReferralOrder.status == ORDER_STATUS_COMPLETED)

        query = select(ReferralOrder).join(Partner, ReferralOrder.partner_id == Partner.id)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(ReferralOrder.client_name).like(pattern),
                    func.lower(ReferralOrder.client_company).like(pattern),
                    func.lower(ReferralOrder.client_email).like(pattern),
                    func.lower(ReferralOrder.product_name).like(pattern),
                    func.lower(Partner.first_name).like(pattern),
                    func.lower(Partner.last_name).like(pattern),
                )
            )
        if start is not None:
            conditions.append(ReferralOrder.created_at >= start)
        if partner_id:
            conditions.append(ReferralOrder.partner_id == partner_id)
        if payment_status:
            conditions.append(ReferralOrder.payment_status == payment_status)

        result = await self.session.execute(
            query.where(and_(*conditions)).order_by(ReferralOrder.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_invoices(
        self,
        actor: CurrentUser,
        search: str | None = None,
        date_range: DateRange = DateRange.ALL,
        partner_id: UUID | None = None,
        payment_status: PaymentStatus | None = None,
        kind: InvoiceKind | None = None,
    ) -> InvoiceList:
        start = range_start(date_range)
        status_value = payment_status.value if payment_status else None

        deals: list[Deal] = []
        orders: list[ReferralOrder] = []
        if kind in (None, InvoiceKind.DEAL):
            # Deals of referral partners are invoiced as referral orders
            if not (
                actor.role == Role.PARTNER and await self._is_referral_partner(actor.profile_id)
            ):
                deals = await self._list_deals(actor, search, start, partner_id, status_value)
        if kind in (None, InvoiceKind.REFERRAL_ORDER):
            orders = await self._list_orders(actor, search, start, partner_id, status_value)

        deal_rows = [deal_summary(d) for d in deals]
        order_rows = [order_summary(o) for o in orders]
        return InvoiceList(
            deals=deal_rows,
            referral_orders=order_rows,
            total=len(deal_rows) + len(order_rows),
            total_amount=sum((r.amount for r in deal_rows + order_rows), Decimal("0")),
        )

    async def _get_record(
        self, kind: InvoiceKind, record_id: UUID, actor: CurrentUser
    ) -> Deal | ReferralOrder:
        model: type[Deal] | type[ReferralOrder] = (
            Deal if kind == InvoiceKind.DEAL else ReferralOrder
        )
        conditions = self._partner_scope(actor, model.partner_id)
        conditions.append(model.id == record_id)
        if kind == InvoiceKind.DEAL:
            conditions.append(or_(Deal.stage == CLOSED_WON, Deal.admin_stage == CLOSED_WON))
        else:
            conditions.append(ReferralOrder.status == ORDER_STATUS_COMPLETED)

        result = await self.session.execute(
            select(model).where(and_(*conditions)).execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("Invoice", record_id)
        return record

    async def get_invoice(
        self, kind: InvoiceKind, record_id: UUID, actor: CurrentUser
    ) -> InvoiceSummary:
        record = await self._get_record(kind, record_id, actor)
        if isinstance(record, Deal):
            return deal_summary(record)
        return order_summary(record)

    async def update_payment_status(
        self,
        kind: InvoiceKind,
        record_id: UUID,
        status: PaymentStatus,
        actor: CurrentUser,
    ) -> InvoiceSummary:
        if actor.role not in (Role.ADMIN, Role.ACCOUNT_USER):
            raise PermissionDeniedError("Only accounts users can update payment status")

        record = await self._get_record(kind, record_id, actor)
        old_status = record.payment_status
        record.payment_status = status.value
        await self.session.commit()

        logger.info(
            "invoice.payment_status.updated",
            kind=kind.value,
            record_id=str(record_id),
            old_status=old_status,
            new_status=status.value,
        )
        log_audit_event(
            action="invoice_payment_status_updated",
            category="invoices",
            user_id=actor.auth_user_id,
            resource_type=kind.value,
            resource_id=str(record_id),
            old_status=old_status,
            new_status=status.value,
        )

        summary = deal_summary(record) if isinstance(record, Deal) else order_summary(record)
        if (
            status == PaymentStatus.OVERDUE
            and old_status != PaymentStatus.OVERDUE.value
            and settings.business.overdue_reminders
        ):
            await self._send_overdue_reminder(summary, record.partner)
        return summary

    async def _send_overdue_reminder(self, summary: InvoiceSummary, partner: Partner) -> None:
        """Email the partner. A delivery failure never undoes the status change."""
        try:
            await self.email.send_overdue(
                summary.record_id,
                summary.customer.name,
                partner.email,
                partner.full_name,
                summary.formatted_amount,
                summary.description,
            )
            logger.info("invoice.overdue_reminder.sent", record_id=str(summary.record_id))
        except Exception as e:
            logger.error(
                "invoice.overdue_reminder.failed", record_id=str(summary.record_id), error=str(e)
            )

    async def build_document(
        self, kind: InvoiceKind, record_id: UUID, actor: CurrentUser
    ) -> InvoiceDocument:
        record = await self._get_record(kind, record_id, actor)
        partner = _partner_party(record.partner)

        if isinstance(record, Deal):
            title = record.display_name
            if record.product_id is not None:
                product = await self.session.get(Product, record.product_id)
                if product is not None:
                    title = product.name
            amount = record.deal_value or Decimal("0")
            issued = record.closed_won_at or record.updated_at
            return InvoiceDocument(
                kind=kind,
                invoice_number=record.invoice_number,
                issue_date=issued.date(),
                payment_status=record.payment_status,
                currency=record.currency,
                bill_to=InvoiceParty(
                    name=record.customer_name,
                    company=record.customer_company,
                    email=record.customer_email,
                    phone=record.customer_phone,
                ),
                partner=partner,
                lines=[InvoiceLine(title=title, description=record.description, amount=amount)],
                total=amount,
                notes=record.notes,
            )

        return InvoiceDocument(
            kind=kind,
            invoice_number=record.invoice_number,
            issue_date=record.created_at.date(),
            payment_status=record.payment_status,
            currency=record.currency,
            bill_to=InvoiceParty(
                name=record.client_name,
                company=record.client_company,
                email=record.client_email,
                phone=record.client_phone,
            ),
            partner=partner,
            lines=[
                InvoiceLine(
                    title=record.product_name,
                    description=record.product_description,
                    amount=record.order_value,
                )
            ],
            total=record.order_value,
            commission_percentage=record.commission_percentage,
            commission_amount=record.commission_amount,
            expected_delivery_date=record.expected_delivery_date,
            notes=record.notes,
        )

    async def render_pdf(
        self, kind: InvoiceKind, record_id: UUID, actor: CurrentUser
    ) -> tuple[str, bytes]:
        """Return the invoice number and its PDF bytes."""
        document = await self.build_document(kind, record_id, actor)
        return document.invoice_number, render_invoice_pdf(document)
