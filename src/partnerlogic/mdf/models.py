"""
Marketing development fund requests.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin
from ..partners.models import Partner, PartnerResponse


class MDFStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"


# Statuses whose approved amount counts against the allocation
COMMITTED_STATUSES = (MDFStatus.APPROVED.value, MDFStatus.DISBURSED.value)

SORTABLE_FIELDS = ("created_at", "approved_at", "requested_amount", "approved_amount")


class MDFRequest(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "mdf_requests"

    partner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True
    )
    campaign_name: Mapped[str] = mapped_column(String(255), nullable=False)
    requested_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    approved_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=MDFStatus.PENDING.value, index=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Campaign plan and admin notes
    roi_metrics: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    partner: Mapped[Partner] = relationship(lazy="selectin")


class CampaignPlan(BaseModel):
    """Campaign details stored in ``roi_metrics``."""

    campaign_type: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    description: str | None = None
    target_audience: str | None = None
    expected_leads: int | None = Field(None, ge=0)
    expected_meetings: int | None = Field(None, ge=0)
    expected_deals: int | None = Field(None, ge=0)
    objectives: str | None = None


class MDFRequestCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    campaign_name: str = ""
    requested_amount: Decimal | None = None
    plan: CampaignPlan = Field(default_factory=CampaignPlan)


class MDFStatusUpdate(BaseModel):
    status: MDFStatus
    # Defaults to the requested amount when approving
    approved_amount: Decimal | None = Field(None, ge=0)
    admin_notes: str | None = None


class MDFRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    partner_id: UUID
    campaign_name: str
    requested_amount: Decimal
    approved_amount: Decimal | None
    status: str
    approved_at: datetime | None
    roi_metrics: dict[str, Any] | None
    created_at: datetime


class MDFRequestDetail(MDFRequestResponse):
    partner: PartnerResponse


class MDFRequestList(BaseModel):
    requests: list[MDFRequestDetail]
    total: int


class MDFSummary(BaseModel):
    partner_id: UUID
    mdf_enabled: bool
    allocation: Decimal
    used: Decimal
    pending: Decimal
    remaining: Decimal
