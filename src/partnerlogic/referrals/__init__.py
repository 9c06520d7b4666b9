"""Referral orders credited to referral partners."""

from .models import ReferralOrder

__all__ = ["ReferralOrder"]
