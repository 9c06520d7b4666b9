"""
MDF request workflow and allocation accounting.
"""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.models import CurrentUser, Role
from ..exceptions import (
    MDFAllocationExceededError,
    NotFoundError,
    PartnerNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ..logging import log_audit_event
from ..notifications import templates
from ..notifications.service import NotificationService
from ..partners.models import Organization, Partner
from .models import (
    COMMITTED_STATUSES,
    SORTABLE_FIELDS,
    MDFRequest,
    MDFRequestCreate,
    MDFStatus,
    MDFStatusUpdate,
    MDFSummary,
)

logger = structlog.get_logger(__name__)


class MDFService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _load(self, request_id: UUID) -> MDFRequest:
        result = await self.session.execute(
            select(MDFRequest)
            .where(MDFRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError("MDF request", request_id)
        return request

    async def committed_amount(
        self, partner_id: UUID, exclude_request_id: UUID | None = None
    ) -> Decimal:
        """Sum of approved amounts over the partner's approved and disbursed requests."""
        conditions = [
            MDFRequest.partner_id == partner_id,
            MDFRequest.status.in_(COMMITTED_STATUSES),
        ]
        if exclude_request_id is not None:
            conditions.append(MDFRequest.id != exclude_request_id)
        result = await self.session.execute(
            select(func.coalesce(func.sum(MDFRequest.approved_amount), 0)).where(and_(*conditions))
        )
        return Decimal(str(result.scalar() or 0))

    async def create_request(self, partner_id: UUID, data: MDFRequestCreate) -> MDFRequest:
        partner = await self.session.get(Partner, partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)
        if not partner.organization.mdf_enabled:
            raise PermissionDeniedError("MDF is not enabled for your organization")
        if not data.campaign_name:
            raise ValidationError("Campaign name is required", field="campaign_name")
        if data.requested_amount is None or data.requested_amount <= 0:
            raise ValidationError(
                "Requested amount must be greater than 0", field="requested_amount"
            )
        plan = data.plan
        if plan.start_date and plan.end_date and plan.end_date < plan.start_date:
            raise ValidationError("End date must be after start date", field="end_date")

        request = MDFRequest(
            partner_id=partner_id,
            campaign_name=data.campaign_name,
            requested_amount=data.requested_amount,
            status=MDFStatus.PENDING.value,
            roi_metrics=plan.model_dump(mode="json", exclude_none=True),
        )
        self.session.add(request)
        await self.session.commit()
        request_id = request.id
        logger.info(
            "mdf.request.created",
            request_id=str(request_id),
            partner_id=str(partner_id),
            requested_amount=str(data.requested_amount),
        )

        template = templates.mdf_request_created(data.campaign_name, partner.full_name)
        try:
            notifications = NotificationService(self.session)
            await notifications.notify_admins(template, request_id, "mdf_request")
            await notifications.notify_partner_manager(
                partner_id, template, request_id, "mdf_request"
            )
        except Exception as e:
            await self.session.rollback()
            logger.error("mdf.notify_created_failed", request_id=str(request_id), error=str(e))

        return await self._load(request_id)

    async def get_request(self, request_id: UUID, actor: CurrentUser) -> MDFRequest:
        request = await self._load(request_id)
        if actor.role == Role.PARTNER and request.partner_id != actor.profile_id:
            raise NotFoundError("MDF request", request_id)
        if (
            actor.role == Role.PARTNER_MANAGER
            and request.partner.partner_manager_id != actor.profile_id
        ):
            raise NotFoundError("MDF request", request_id)
        if actor.role in (Role.ACCOUNT_USER, Role.SUPPORT_USER):
            raise PermissionDeniedError("You do not have access to MDF requests")
        return request

    async def update_status(
        self, request_id: UUID, data: MDFStatusUpdate, actor: CurrentUser
    ) -> MDFRequest:
        """Change a request's status.

        First approval stamps ``approved_at`` and is checked against the
        organization's allocation. An explicit ``approved_amount`` is applied
        on any later edit as well.
        """
        if actor.role != Role.ADMIN:
            raise PermissionDeniedError("Forbidden: Admin access required")
        request = await self._load(request_id)
        old_status = request.status
        new_status = data.status.value

        if new_status == MDFStatus.APPROVED.value and request.approved_at is None:
            amount = (
                data.approved_amount
                if data.approved_amount is not None
                else request.requested_amount
            )
            allocation = request.partner.organization.mdf_allocation or Decimal("0")
            current = await self.committed_amount(request.partner_id, exclude_request_id=request.id)
            if current + amount > allocation:
                logger.warning(
                    "mdf.approval.rejected",
                    request_id=str(request_id),
                    allocation=str(allocation),
                    currently_approved=str(current),
                    requested=str(amount),
                )
                raise MDFAllocationExceededError(allocation, current, amount)
            request.approved_at = datetime.now(UTC)
            request.approved_amount = amount
        elif data.approved_amount is not None:
            request.approved_amount = data.approved_amount

        request.status = new_status
        if data.admin_notes is not None:
            request.roi_metrics = {**(request.roi_metrics or {}), "admin_notes": data.admin_notes}

        await self.session.commit()
        partner_id, campaign_name = request.partner_id, request.campaign_name
        log_audit_event(
            action="mdf_status_updated",
            category="mdf",
            user_id=actor.auth_user_id,
            resource_type="mdf_request",
            resource_id=str(request_id),
            old_status=old_status,
            new_status=new_status,
            approved_amount=str(request.approved_amount) if request.approved_amount else None,
        )

        if old_status != new_status:
            try:
                await NotificationService(self.session).notify_partner(
                    partner_id,
                    templates.mdf_status_changed(campaign_name, new_status),
                    request_id,
                    "mdf_request",
                )
            except Exception as e:
                await self.session.rollback()
                logger.error("mdf.notify_partner_failed", request_id=str(request_id), error=str(e))

        return await self._load(request_id)

    async def list_requests(
        self,
        actor: CurrentUser,
        search: str | None = None,
        status: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        partner_id: UUID | None = None,
    ) -> list[MDFRequest]:
        if sort_by not in SORTABLE_FIELDS:
            raise ValidationError(
                f"Cannot sort by '{sort_by}'. Use one of: {', '.join(SORTABLE_FIELDS)}",
                field="sort_by",
            )

        query = select(MDFRequest).join(Partner, MDFRequest.partner_id == Partner.id)
        if actor.role == Role.PARTNER:
            query = query.where(MDFRequest.partner_id == actor.profile_id)
        elif actor.role == Role.PARTNER_MANAGER:
            query = query.where(Partner.partner_manager_id == actor.profile_id)
        elif actor.role != Role.ADMIN:
            raise PermissionDeniedError("You do not have access to MDF requests")

        if partner_id is not None:
            query = query.where(MDFRequest.partner_id == partner_id)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.join(Organization, Partner.organization_id == Organization.id).where(
                or_(
                    func.lower(MDFRequest.campaign_name).like(pattern),
                    func.lower(Partner.first_name).like(pattern),
                    func.lower(Partner.last_name).like(pattern),
                    func.lower(Organization.name).like(pattern),
                )
            )
        if status and status != "all":
            query = query.where(MDFRequest.status == status)

        column = getattr(MDFRequest, sort_by)
        # Missing values sort as the lowest
        if sort_order == "asc":
            query = query.order_by(column.asc().nulls_first())
        else:
            query = query.order_by(column.desc().nulls_last())

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_partner_mdf_summary(self, partner_id: UUID) -> MDFSummary:
        partner = await self.session.get(Partner, partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)
        organization = partner.organization
        allocation = organization.mdf_allocation or Decimal("0")
        used = await self.committed_amount(partner_id)

        pending_result = await self.session.execute(
            select(func.coalesce(func.sum(MDFRequest.requested_amount), 0)).where(
                MDFRequest.partner_id == partner_id,
                MDFRequest.status == MDFStatus.PENDING.value,
            )
        )
        return MDFSummary(
            partner_id=partner_id,
            mdf_enabled=organization.mdf_enabled,
            allocation=allocation,
            used=used,
            pending=Decimal(str(pending_result.scalar() or 0)),
            remaining=max(allocation - used, Decimal("0")),
        )
