"""Partner performance bonuses."""

from .models import BonusStatus, PartnerBonus

__all__ = ["BonusStatus", "PartnerBonus"]
