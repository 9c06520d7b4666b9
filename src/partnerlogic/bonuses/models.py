"""
Performance bonuses awarded to partners.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin


class BonusStatus(str, Enum):
    EARNED = "earned"
    PENDING = "pending"
    PAID = "paid"


class PartnerBonus(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "partner_bonuses"

    partner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # "YYYY-MM"
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=BonusStatus.EARNED.value)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class BonusAward(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    # Defaults to the current month
    period: str | None = None
    # Defaults to the tier bonus amount
    amount: Decimal | None = Field(None, ge=0)
    status: BonusStatus = BonusStatus.EARNED
    notes: str | None = None


class BonusStatusUpdate(BaseModel):
    status: BonusStatus
    notes: str | None = None


class PartnerBonusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    partner_id: UUID
    period: str
    amount: Decimal
    status: str
    notes: str | None
    created_at: datetime


class BonusProgress(BaseModel):
    partner_id: UUID
    tier: str
    total_revenue: Decimal
    target: Decimal
    bonus_amount: Decimal
    progress: float
    remaining: Decimal
    achieved: bool


class BonusOverview(BaseModel):
    progress: BonusProgress
    bonuses: list[PartnerBonusResponse]
    # Only paid bonuses count as earned
    total_earned: Decimal
