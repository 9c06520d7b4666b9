"""
Partner tier program.

Tiers (bronze, silver, gold, platinum) set the commission percentage, MDF
allocation and bonus for partner organizations. ``calculator`` holds the pure
arithmetic; ``service`` persists the admin-editable ladder.
"""

from .calculator import (
    DEFAULT_TIERS,
    accessible_tiers,
    calculate_commission,
    calculate_tier_progress,
    validate_tiers,
)
from .models import TIER_ORDER, TierName, TierSetting
from .service import TierService

__all__ = [
    "DEFAULT_TIERS",
    "TIER_ORDER",
    "TierName",
    "TierSetting",
    "TierService",
    "accessible_tiers",
    "calculate_commission",
    "calculate_tier_progress",
    "validate_tiers",
]
