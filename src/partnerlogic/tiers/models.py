"""
Tier settings table and API schemas.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin


class TierName(str, Enum):
    """Partner tiers, lowest first."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


TIER_ORDER: list[str] = [tier.value for tier in TierName]


class TierSetting(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Revenue band, commission and MDF allocation for one tier."""

    __tablename__ = "tier_settings"

    tier_name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    tier_label: Mapped[str] = mapped_column(String(100), nullable=False)
    min_revenue: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    max_revenue: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    discount_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    mdf_allocation: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    bonus_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    tier_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# Pydantic models for API


class TierSettingInput(BaseModel):
    """One row of the tier management form."""

    model_config = ConfigDict(str_strip_whitespace=True)

    tier_name: str = ""
    tier_label: str = ""
    min_revenue: Decimal = Decimal("0")
    max_revenue: Decimal | None = None
    discount_percentage: Decimal = Decimal("0")
    mdf_allocation: Decimal = Decimal("0")
    bonus_amount: Decimal = Decimal("0")
    tier_order: int = 0
    is_active: bool = True


class TierSettingResponse(TierSettingInput):
    """Stored tier setting."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None


class TierSettingsUpdate(BaseModel):
    """Replace the whole tier table at once."""

    tiers: list[TierSettingInput] = Field(min_length=1)


class TierProgress(BaseModel):
    """Where a partner sits inside the tier ladder."""

    tier: str
    progress: float
    progress_in_tier: float | None = None
    next_tier: str | None = None
    amount_to_next: Decimal = Decimal("0")
    current_tier_revenue: Decimal | None = None
    total_revenue: Decimal = Decimal("0")
    tier_range: Decimal | None = None


class CommissionQuote(BaseModel):
    """Commission split for a deal value."""

    deal_value: Decimal
    discount_percentage: Decimal
    commission: Decimal
    price_to_vendor: Decimal
