"""Admin activity logs."""

from .models import ActivityEntry, ActivityFeed, ActivitySource

__all__ = ["ActivityEntry", "ActivityFeed", "ActivitySource"]
