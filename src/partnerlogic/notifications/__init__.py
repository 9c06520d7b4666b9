"""
In-app notifications.

Notifications are addressed to hosted auth user ids. Services fan out
through ``NotificationService`` helpers (admins, partner manager, support
users, account users, a partner) using the templates in ``templates``.
"""

from . import templates
from .models import Notification, NotificationType
from .service import NotificationService

__all__ = ["Notification", "NotificationType", "NotificationService", "templates"]
