"""Marketing development fund requests."""

from .models import COMMITTED_STATUSES, MDFRequest, MDFStatus

__all__ = ["COMMITTED_STATUSES", "MDFRequest", "MDFStatus"]
