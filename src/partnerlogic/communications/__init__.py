"""Outbound email through hosted functions."""

from .gateway import (
    SEND_DEAL_NOTIFICATION,
    SEND_INVOICE_EMAIL,
    SEND_OVERDUE_REMINDER,
    SEND_SUPPORT_EMAIL,
    EmailGateway,
    get_email_gateway,
)

__all__ = [
    "EmailGateway",
    "get_email_gateway",
    "SEND_DEAL_NOTIFICATION",
    "SEND_INVOICE_EMAIL",
    "SEND_OVERDUE_REMINDER",
    "SEND_SUPPORT_EMAIL",
]
