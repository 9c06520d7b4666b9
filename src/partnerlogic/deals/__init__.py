"""
Deal registration and the two-board kanban pipeline.
"""

from .models import (
    ADMIN_STAGE_LABELS,
    CLOSED_WON,
    IMPLEMENTATION_STAGE_LABELS,
    PARTNER_STAGE_LABELS,
    Deal,
    DealActivity,
    PaymentStatus,
)

__all__ = [
    "ADMIN_STAGE_LABELS",
    "CLOSED_WON",
    "IMPLEMENTATION_STAGE_LABELS",
    "PARTNER_STAGE_LABELS",
    "Deal",
    "DealActivity",
    "PaymentStatus",
]
