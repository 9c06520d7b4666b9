"""
Partner organizations and partner contacts.

An organization's tier decides its commission (discount) percentage and,
when MDF is enabled, its marketing fund allocation.
"""

from .models import Organization, OrganizationType, Partner, PartnerProduct

__all__ = ["Organization", "OrganizationType", "Partner", "PartnerProduct"]
