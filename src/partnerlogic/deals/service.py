"""
Deal registration and the kanban pipeline.

Partners and partner managers move deals through the sales stages
(``Deal.stage``). Admins move them across the admin board
(``Deal.admin_stage``), which adds the implementation stages.

The first time a deal reaches closed won, in either pipeline, the service
fires the closed-won side effects: invoice email, account-user
notifications and, for referral partners, conversion into a referral order.
Side effects run after the stage change is committed. Their failures are
logged and never undo the move.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import CurrentUser, Role
from ..auth.service import is_valid_email
from ..communications import EmailGateway
from ..currencies.registry import format_currency
from ..exceptions import (
    ClosedWonConfirmationRequiredError,
    DealNotFoundError,
    InvalidStageError,
    PermissionDeniedError,
    ValidationError,
)
from ..notifications import templates
from ..notifications.service import NotificationService
from ..partners.models import Organization, OrganizationType, Partner
from ..partners.service import get_partner_manager_email
from ..settings import settings
from ..tiers.calculator import calculate_commission
from ..tiers.service import TierService
from .models import (
    ADMIN_STAGE_LABELS,
    CLOSED_WON,
    IMPLEMENTATION_STAGE_LABELS,
    INITIAL_STAGES,
    PARTNER_STAGE_LABELS,
    Board,
    BoardColumn,
    BoardView,
    Deal,
    DealActivity,
    DealCreate,
    DealResponse,
    DealUpdate,
    stage_label,
)

logger = structlog.get_logger(__name__)


def validate_deal_fields(
    customer_name: str | None,
    customer_email: str | None,
    customer_company: str | None,
    deal_value: Decimal | None,
) -> None:
    """Registration form rules."""
    if not customer_name:
        raise ValidationError("Customer name is required", field="customer_name")
    if not customer_email:
        raise ValidationError("Customer email is required", field="customer_email")
    if not is_valid_email(customer_email):
        raise ValidationError("Please enter a valid email address", field="customer_email")
    if not customer_company:
        raise ValidationError("Company name is required", field="customer_company")
    if deal_value is not None and deal_value < 0:
        raise ValidationError("Please enter a valid deal value", field="deal_value")


def build_board(
    deals: list[Deal], view: BoardView, expanded: bool = False
) -> Board:
    """Group deals into kanban columns.

    The partner view groups by sales stage. The admin view groups by admin
    stage and shows the implementation columns only when expanded, while
    always reporting how many deals sit in implementation.
    """
    if view == BoardView.PARTNER:
        key = "stage"
        stages = dict(PARTNER_STAGE_LABELS)
    else:
        key = "admin_stage"
        stages = dict(PARTNER_STAGE_LABELS)
        if expanded:
            stages.update(IMPLEMENTATION_STAGE_LABELS)

    columns = []
    for stage, label in stages.items():
        in_stage = [d for d in deals if getattr(d, key) == stage]
        columns.append(
            BoardColumn(
                stage=stage,
                label=label,
                count=len(in_stage),
                total_value=sum((d.deal_value or Decimal("0") for d in in_stage), Decimal("0")),
                currency=in_stage[0].currency if in_stage else settings.business.default_currency,
                deals=[DealResponse.model_validate(d) for d in in_stage],
            )
        )

    implementation_count = sum(1 for d in deals if d.admin_stage in IMPLEMENTATION_STAGE_LABELS)
    return Board(
        view=view,
        expanded=expanded if view == BoardView.ADMIN else False,
        implementation_count=implementation_count if view == BoardView.ADMIN else 0,
        columns=columns,
    )


class DealService:
    def __init__(self, session: AsyncSession, email_gateway: EmailGateway):
        self.session = session
        self.email = email_gateway
        self.notifications = NotificationService(session)
        self.tiers = TierService(session)

    # Access

    def _scope_conditions(self, actor: CurrentUser) -> list[Any]:
        if actor.role == Role.ADMIN:
            return []
        if actor.role == Role.PARTNER:
            return [Deal.partner_id == actor.profile_id]
        if actor.role == Role.PARTNER_MANAGER:
            managed = select(Partner.id).where(Partner.partner_manager_id == actor.profile_id)
            return [Deal.partner_id.in_(managed)]
        if actor.role == Role.ACCOUNT_USER:
            return []
        raise PermissionDeniedError("You do not have access to deals")

    async def _load(self, deal_id: UUID) -> Deal:
        result = await self.session.execute(
            select(Deal).where(Deal.id == deal_id).execution_options(populate_existing=True)
        )
        deal = result.scalar_one_or_none()
        if deal is None:
            raise DealNotFoundError(deal_id)
        return deal

    async def get_deal(self, deal_id: UUID, actor: CurrentUser) -> Deal:
        deal = await self._load(deal_id)
        if actor.role == Role.PARTNER and deal.partner_id != actor.profile_id:
            raise DealNotFoundError(deal_id)
        if (
            actor.role == Role.PARTNER_MANAGER
            and deal.partner.partner_manager_id != actor.profile_id
        ):
            raise DealNotFoundError(deal_id)
        if actor.role == Role.SUPPORT_USER:
            raise PermissionDeniedError("You do not have access to deals")
        return deal

    # Registration

    async def _resolve_partner(self, actor: CurrentUser, partner_id: UUID | None) -> Partner:
        if actor.role == Role.PARTNER:
            partner_id = actor.profile_id
        elif actor.role not in (Role.ADMIN, Role.PARTNER_MANAGER):
            raise PermissionDeniedError("Only partners and staff can register deals")
        if partner_id is None:
            raise ValidationError("Partner is required", field="partner_id")

        partner = await self.session.get(Partner, partner_id)
        if partner is None:
            raise ValidationError("Partner not found", field="partner_id")
        if actor.role == Role.PARTNER_MANAGER and partner.partner_manager_id != actor.profile_id:
            raise PermissionDeniedError("You can only register deals for your own partners")
        return partner

    async def create_deal(self, actor: CurrentUser, data: DealCreate) -> Deal:
        validate_deal_fields(
            data.customer_name, data.customer_email, data.customer_company, data.deal_value
        )
        if data.stage not in INITIAL_STAGES:
            raise InvalidStageError(
                f"A new deal cannot start in stage '{data.stage}'", stage=data.stage
            )

        partner = await self._resolve_partner(actor, data.partner_id)
        organization: Organization = partner.organization

        # Commission always comes from the current tier table, not the stored org value
        discount = await self.tiers.discount_for(organization.tier)
        commission, price_to_vendor = (
            calculate_commission(data.deal_value, discount)
            if data.deal_value is not None
            else (None, None)
        )

        deal = Deal(
            partner_id=partner.id,
            product_id=data.product_id,
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            customer_phone=data.customer_phone or None,
            customer_company=data.customer_company,
            deal_value=data.deal_value,
            currency=(data.currency or settings.business.default_currency).upper(),
            commission_percentage=discount,
            your_commission=commission,
            price_to_vendor=price_to_vendor,
            stage=data.stage,
            priority=data.priority.value,
            support_type_needed=(
                data.support_type_needed.value if data.support_type_needed else None
            ),
            description=data.description or None,
            notes=data.notes or None,
            expected_close_date=data.expected_close_date,
            attachments=data.attachments or None,
        )
        self.session.add(deal)
        await self.session.flush()
        self.session.add(
            DealActivity(
                deal_id=deal.id,
                user_id=actor.auth_user_id,
                activity_type="created",
                description=f"Deal registered by {partner.first_name} {partner.last_name}",
            )
        )
        await self.session.commit()
        deal_id = deal.id

        logger.info(
            "deal.created",
            deal_id=str(deal_id),
            partner_id=str(partner.id),
            stage=data.stage,
            deal_value=str(data.deal_value) if data.deal_value is not None else None,
        )

        await self._send_deal_registration_email(deal, partner)
        await self._notify_deal_created(deal, partner)
        return await self._load(deal_id)

    async def _send_deal_registration_email(self, deal: Deal, partner: Partner) -> None:
        recipient = settings.email.deal_notification_address
        if not recipient:
            return
        try:
            await self.email.send_deal_notification(
                {
                    "to": recipient,
                    "dealData": {
                        "id": str(deal.id),
                        "customer_name": deal.customer_name,
                        "customer_company": deal.customer_company,
                        "customer_email": deal.customer_email,
                        "deal_value": str(deal.deal_value) if deal.deal_value is not None else None,
                        "stage": deal.stage,
                        "priority": deal.priority,
                        "support_type_needed": deal.support_type_needed,
                        "notes": deal.notes,
                    },
                    "partnerData": {
                        "name": partner.full_name,
                        "email": partner.email,
                        "organization": partner.organization.name,
                        "tier": partner.organization.tier,
                    },
                }
            )
        except Exception as e:
            logger.error("deal.registration_email_failed", deal_id=str(deal.id), error=str(e))

    async def _notify_deal_created(self, deal: Deal, partner: Partner) -> None:
        template = templates.deal_created(
            f"{deal.customer_company} - {deal.customer_name}", partner.full_name
        )
        partner_id, deal_id = partner.id, deal.id
        try:
            await self.notifications.notify_admins(template, deal_id, "deal")
            await self.notifications.notify_partner_manager(partner_id, template, deal_id, "deal")
        except Exception as e:
            await self.session.rollback()
            logger.error("deal.notify_created_failed", deal_id=str(deal_id), error=str(e))

    # Updates

    async def update_deal(self, deal_id: UUID, actor: CurrentUser, data: DealUpdate) -> Deal:
        if actor.role not in (Role.ADMIN, Role.PARTNER_MANAGER, Role.PARTNER):
            raise PermissionDeniedError("You cannot edit deals")
        deal = await self.get_deal(deal_id, actor)
        changes = data.model_dump(exclude_unset=True)

        merged = {
            key: changes.get(key, getattr(deal, key))
            for key in ("customer_name", "customer_email", "customer_company", "deal_value")
        }
        validate_deal_fields(**merged)

        for key, value in changes.items():
            if key in ("priority", "support_type_needed") and value is not None:
                value = value.value
            if key == "currency" and value:
                value = value.upper()
            setattr(deal, key, value)

        if "deal_value" in changes:
            discount = await self.tiers.discount_for(deal.partner.organization.tier)
            deal.commission_percentage = discount
            if deal.deal_value is None:
                deal.your_commission, deal.price_to_vendor = None, None
            else:
                deal.your_commission, deal.price_to_vendor = calculate_commission(
                    deal.deal_value, discount
                )

        self.session.add(
            DealActivity(
                deal_id=deal.id,
                user_id=actor.auth_user_id,
                activity_type="updated",
                description=f"Deal details updated by {actor.name}",
            )
        )
        await self.session.commit()
        logger.info("deal.updated", deal_id=str(deal_id), fields=sorted(changes))
        return await self._load(deal_id)

    async def delete_deal(self, deal_id: UUID, actor: CurrentUser) -> None:
        if actor.role != Role.ADMIN:
            raise PermissionDeniedError("Forbidden: Admin access required")
        deal = await self._load(deal_id)
        await self.session.delete(deal)
        await self.session.commit()
        logger.info("deal.deleted", deal_id=str(deal_id))

    # Pipeline

    async def move_stage(
        self,
        deal_id: UUID,
        actor: CurrentUser,
        new_stage: str,
        confirm: bool = False,
    ) -> Deal:
        """Move a deal to another column on the caller's board."""
        deal = await self.get_deal(deal_id, actor)

        if actor.role == Role.ADMIN:
            return await self._move_admin_stage(deal, actor, new_stage)
        if actor.role in (Role.PARTNER, Role.PARTNER_MANAGER):
            return await self._move_partner_stage(deal, actor, new_stage, confirm)
        raise PermissionDeniedError("You cannot move deals")

    async def _move_partner_stage(
        self, deal: Deal, actor: CurrentUser, new_stage: str, confirm: bool
    ) -> Deal:
        if new_stage not in PARTNER_STAGE_LABELS:
            raise InvalidStageError(f"Unknown stage '{new_stage}'", stage=new_stage)

        old_stage = deal.stage
        if new_stage == old_stage:
            return deal

        entering_closed_won = new_stage == CLOSED_WON
        if entering_closed_won and actor.role == Role.PARTNER and not confirm:
            raise ClosedWonConfirmationRequiredError(deal.id)

        deal.stage = new_stage
        first_close = self._mark_closed_won(deal) if entering_closed_won else False
        send_invoice = self._claim_invoice(deal) if entering_closed_won else False

        self.session.add(
            DealActivity(
                deal_id=deal.id,
                user_id=actor.auth_user_id,
                activity_type="stage_updated",
                description=f"Stage updated to {PARTNER_STAGE_LABELS[new_stage]}",
            )
        )
        await self.session.commit()
        logger.info(
            "deal.stage.updated",
            deal_id=str(deal.id),
            old_stage=old_stage,
            new_stage=new_stage,
            actor_role=actor.role.value,
        )

        deal_id = deal.id
        await self._run_closed_won_effects(deal, send_invoice, first_close)
        return await self._load(deal_id)

    async def _move_admin_stage(self, deal: Deal, actor: CurrentUser, new_stage: str) -> Deal:
        if new_stage not in ADMIN_STAGE_LABELS:
            raise InvalidStageError(f"Unknown stage '{new_stage}'", stage=new_stage)

        old_stage = deal.admin_stage
        if new_stage == old_stage:
            return deal

        entering_closed_won = new_stage == CLOSED_WON
        deal.admin_stage = new_stage
        first_close = self._mark_closed_won(deal) if entering_closed_won else False
        send_invoice = self._claim_invoice(deal) if entering_closed_won else False

        self.session.add(
            DealActivity(
                deal_id=deal.id,
                user_id=actor.auth_user_id,
                activity_type="stage_updated",
                description=f"Implementation stage updated to {ADMIN_STAGE_LABELS[new_stage]}",
            )
        )
        await self.session.commit()
        logger.info(
            "deal.admin_stage.updated",
            deal_id=str(deal.id),
            old_stage=old_stage,
            new_stage=new_stage,
        )

        deal_id, partner_id = deal.id, deal.partner_id
        template = templates.deal_status_changed(
            deal.display_name, stage_label(old_stage), stage_label(new_stage)
        )
        await self._run_closed_won_effects(deal, send_invoice, first_close)

        try:
            await self.notifications.notify_partner(partner_id, template, deal_id, "deal")
        except Exception as e:
            await self.session.rollback()
            logger.error("deal.notify_partner_failed", deal_id=str(deal_id), error=str(e))

        return await self._load(deal_id)

    @staticmethod
    def _mark_closed_won(deal: Deal) -> bool:
        """Stamp the first close. Returns True only the first time."""
        if deal.closed_won_at is not None:
            return False
        deal.closed_won_at = datetime.now(UTC)
        return True

    @staticmethod
    def _claim_invoice(deal: Deal) -> bool:
        """Reserve the invoice email. Returns True only if no invoice was sent before."""
        if deal.invoice_sent_at is not None:
            return False
        deal.invoice_sent_at = datetime.now(UTC)
        return True

    async def _run_closed_won_effects(
        self, deal: Deal, send_invoice: bool, first_close: bool
    ) -> None:
        """Closed-won side effects. Each one is isolated and only logged on failure."""
        if not send_invoice and not first_close:
            return

        deal_id = deal.id
        partner = deal.partner
        snapshot = {
            "display_name": deal.display_name,
            "customer_name": deal.customer_name,
            "amount": format_currency(deal.deal_value, deal.currency),
            "description": deal.description or deal.notes,
            "is_referral": partner.organization.type == OrganizationType.REFERRAL.value,
        }

        if send_invoice:
            try:
                manager_email = await get_partner_manager_email(self.session, partner)
                await self.email.send_invoice(
                    deal_id,
                    snapshot["customer_name"],
                    snapshot["amount"],
                    snapshot["description"],
                    manager_email,
                )
                logger.info("deal.invoice.sent", deal_id=str(deal_id))
            except Exception as e:
                logger.error("deal.invoice.failed", deal_id=str(deal_id), error=str(e))

        if not first_close:
            return

        try:
            await self.notifications.notify_account_users(
                templates.invoice_ready(snapshot["display_name"], snapshot["amount"]),
                deal_id,
                "deal",
            )
        except Exception as e:
            await self.session.rollback()
            logger.error("deal.notify_accounts_failed", deal_id=str(deal_id), error=str(e))

        if snapshot["is_referral"]:
            # Imported here: referrals depends on deals
            from ..referrals.service import ReferralService

            try:
                await ReferralService(self.session, self.email).convert_deal(deal_id)
            except Exception as e:
                await self.session.rollback()
                logger.error("deal.referral_conversion_failed", deal_id=str(deal_id), error=str(e))

    # Queries

    async def list_deals(
        self,
        actor: CurrentUser,
        search: str | None = None,
        stage: str | None = None,
        admin_stage: str | None = None,
        priority: str | None = None,
        partner_id: UUID | None = None,
        page: int = 1,
        per_page: int = 50,
    ) -> tuple[list[Deal], int]:
        conditions = self._scope_conditions(actor)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Deal.customer_name).like(pattern),
                    func.lower(Deal.customer_company).like(pattern),
                    func.lower(Deal.customer_email).like(pattern),
                )
            )
        if stage:
            conditions.append(Deal.stage == stage)
        if admin_stage:
            conditions.append(Deal.admin_stage == admin_stage)
        if priority:
            conditions.append(Deal.priority == priority)
        if partner_id:
            conditions.append(Deal.partner_id == partner_id)

        query = select(Deal)
        if conditions:
            query = query.where(and_(*conditions))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar() or 0

        query = query.order_by(Deal.created_at.desc()).offset((page - 1) * per_page).limit(per_page)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def board(
        self,
        actor: CurrentUser,
        view: BoardView | None = None,
        expanded: bool = False,
        partner_id: UUID | None = None,
    ) -> Board:
        """Kanban board for the caller. Only admins get the admin view."""
        if view is None:
            view = BoardView.ADMIN if actor.role == Role.ADMIN else BoardView.PARTNER
        if view == BoardView.ADMIN and actor.role != Role.ADMIN:
            raise PermissionDeniedError("Forbidden: Admin access required")

        conditions = self._scope_conditions(actor)
        if partner_id:
            conditions.append(Deal.partner_id == partner_id)
        query = select(Deal).order_by(Deal.updated_at.desc())
        if conditions:
            query = query.where(and_(*conditions))
        deals = list((await self.session.execute(query)).scalars().all())
        return build_board(deals, view, expanded)

    async def list_activities(self, deal_id: UUID, actor: CurrentUser) -> list[DealActivity]:
        await self.get_deal(deal_id, actor)
        result = await self.session.execute(
            select(DealActivity)
            .where(DealActivity.deal_id == deal_id)
            .order_by(DealActivity.created_at.desc())
        )
        return list(result.scalars().all())

    async def add_note(self, deal_id: UUID, actor: CurrentUser, note: str) -> DealActivity:
        if not note or not note.strip():
            raise ValidationError("Note cannot be empty", field="note")
        await self.get_deal(deal_id, actor)
        activity = DealActivity(
            deal_id=deal_id,
            user_id=actor.auth_user_id,
            activity_type="note",
            description=note.strip(),
        )
        self.session.add(activity)
        await self.session.commit()
        return activity
