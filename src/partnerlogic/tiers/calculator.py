"""
Tier ladder arithmetic.

Pure functions: default tier table, validation of an edited table, tier
progress and the commission split. Nothing here touches the database.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..exceptions import ValidationError
from .models import TIER_ORDER, TierProgress, TierSettingInput

CENT = Decimal("0.01")


DEFAULT_TIERS: list[dict[str, Any]] = [
    {
        "tier_name": "bronze",
        "tier_label": "Bronze",
        "min_revenue": Decimal("0"),
        "max_revenue": Decimal("50000"),
        "discount_percentage": Decimal("5"),
        "mdf_allocation": Decimal("5000"),
        "bonus_amount": Decimal("1000"),
        "tier_order": 1,
    },
    {
        "tier_name": "silver",
        "tier_label": "Silver",
        "min_revenue": Decimal("50000"),
        "max_revenue": Decimal("150000"),
        "discount_percentage": Decimal("10"),
        "mdf_allocation": Decimal("10000"),
        "bonus_amount": Decimal("5000"),
        "tier_order": 2,
    },
    {
        "tier_name": "gold",
        "tier_label": "Gold",
        "min_revenue": Decimal("150000"),
        "max_revenue": Decimal("300000"),
        "discount_percentage": Decimal("15"),
        "mdf_allocation": Decimal("25000"),
        "bonus_amount": Decimal("15000"),
        "tier_order": 3,
    },
    {
        "tier_name": "platinum",
        "tier_label": "Platinum",
        "min_revenue": Decimal("300000"),
        "max_revenue": Decimal("1000000"),
        "discount_percentage": Decimal("20"),
        "mdf_allocation": Decimal("50000"),
        "bonus_amount": Decimal("35000"),
        "tier_order": 4,
    },
]

# Static revenue bands and the overall progress reached at the top of each band.
TIER_THRESHOLDS: dict[str, dict[str, Any]] = {
    "bronze": {"min": Decimal("0"), "max": Decimal("50000"), "progress": 25},
    "silver": {"min": Decimal("50000"), "max": Decimal("150000"), "progress": 50},
    "gold": {"min": Decimal("150000"), "max": Decimal("300000"), "progress": 75},
    "platinum": {"min": Decimal("300000"), "max": None, "progress": 100},
}


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_commission(
    deal_value: Decimal | float | int | None, discount_percentage: Decimal | float | int | None
) -> tuple[Decimal, Decimal]:
    """Return ``(commission, price_to_vendor)`` for a deal value and tier discount."""
    value = Decimal(str(deal_value or 0))
    pct = Decimal(str(discount_percentage or 0))
    commission = quantize_money(value * pct / Decimal("100"))
    return commission, quantize_money(value - commission)


def tier_validation_errors(tiers: list[TierSettingInput]) -> list[str]:
    """Collect every problem in an edited tier table.

    Tiers are checked in ``tier_order``. Each tier's maximum must equal the next
    tier's minimum so the ladder has no gaps or overlaps.
    """
    ordered = sorted(tiers, key=lambda t: t.tier_order)
    errors: list[str] = []

    for index, tier in enumerate(ordered):
        label = tier.tier_label or f"Tier {index + 1}"

        if not tier.tier_name or not tier.tier_label:
            errors.append(f"{label}: Name and label are required")
        if tier.min_revenue < 0:
            errors.append(f"{label}: Minimum revenue cannot be negative")
        if tier.max_revenue is not None and tier.max_revenue <= tier.min_revenue:
            errors.append(f"{label}: Maximum revenue must be greater than minimum")
        if tier.discount_percentage < 0 or tier.discount_percentage > 100:
            errors.append(f"{label}: Discount must be between 0 and 100")
        if tier.mdf_allocation < 0:
            errors.append(f"{label}: MDF allocation cannot be negative")

        if index + 1 < len(ordered):
            nxt = ordered[index + 1]
            if tier.max_revenue != nxt.min_revenue:
                errors.append(
                    f"{label}: Maximum revenue ({tier.max_revenue}) must equal "
                    f"{nxt.tier_label}'s minimum ({nxt.min_revenue})"
                )

    return errors


def validate_tiers(tiers: list[TierSettingInput]) -> None:
    """Raise ValidationError listing every problem, joined with '; '."""
    errors = tier_validation_errors(tiers)
    if errors:
        raise ValidationError("; ".join(errors))


def calculate_tier_progress(
    total_revenue: Decimal | float | int, current_tier: str | None
) -> TierProgress:
    """Overall progress (0-100) through the tier ladder for a partner."""
    revenue = Decimal(str(total_revenue or 0))
    tier = (current_tier or "").lower()
    info = TIER_THRESHOLDS.get(tier)

    if info is None:
        return TierProgress(tier=tier, progress=0, next_tier=None, amount_to_next=Decimal("0"))

    if tier == "platinum":
        return TierProgress(
            tier=tier,
            progress=100,
            next_tier=None,
            amount_to_next=Decimal("0"),
            current_tier_revenue=revenue,
            total_revenue=revenue,
        )

    next_tier = TIER_ORDER[TIER_ORDER.index(tier) + 1]
    next_min: Decimal = TIER_THRESHOLDS[next_tier]["min"]

    tier_range: Decimal = info["max"] - info["min"]
    revenue_in_tier = revenue - info["min"]
    progress_in_tier = float(revenue_in_tier / tier_range * 100)

    base_progress = info["progress"] - 25
    overall = base_progress + (progress_in_tier / 100) * 25

    return TierProgress(
        tier=tier,
        progress=min(max(overall, 0.0), 100.0),
        progress_in_tier=min(progress_in_tier, 100.0),
        next_tier=next_tier,
        amount_to_next=max(next_min - revenue, Decimal("0")),
        current_tier_revenue=revenue_in_tier,
        total_revenue=revenue,
        tier_range=tier_range,
    )


def accessible_tiers(tier: str | None) -> list[str]:
    """Tiers at or below ``tier`` in the ladder."""
    tier = (tier or "").lower()
    if tier not in TIER_ORDER:
        return []
    return TIER_ORDER[: TIER_ORDER.index(tier) + 1]
