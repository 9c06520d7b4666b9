"""Partner support tickets."""

from .models import SupportTicket, SupportTicketMessage, TicketStatus

__all__ = ["SupportTicket", "SupportTicketMessage", "TicketStatus"]
