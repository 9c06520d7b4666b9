"""
Notification templates for common events.
"""

from typing import NamedTuple


class NotificationTemplate(NamedTuple):
    title: str
    message: str
    type: str


def _short_id(value: object) -> str:
    return str(value)[:8]


def _status(value: str) -> str:
    return value.replace("_", " ")


def deal_created(deal_name: str, partner_name: str) -> NotificationTemplate:
    return NotificationTemplate(
        "New Deal Created", f"{partner_name} created a new deal: {deal_name}", "deal"
    )


def deal_status_changed(deal_name: str, old_status: str, new_status: str) -> NotificationTemplate:
    return NotificationTemplate(
        "Deal Status Updated",
        f"{deal_name} status changed from {old_status} to {new_status}",
        "deal",
    )


def deal_approval_needed(deal_name: str, partner_name: str) -> NotificationTemplate:
    return NotificationTemplate(
        "Deal Approval Required", f"{partner_name} submitted {deal_name} for approval", "deal"
    )


def invoice_ready(deal_name: str, formatted_value: str) -> NotificationTemplate:
    return NotificationTemplate(
        "New Invoice Ready",
        f'Deal "{deal_name}" ({formatted_value}) has been closed won. '
        "Invoice is ready for processing.",
        "invoice",
    )


def mdf_status_changed(campaign_name: str, status: str) -> NotificationTemplate:
    return NotificationTemplate(
        "MDF Request Updated", f'Your MDF request "{campaign_name}" was {status}', "mdf"
    )


def mdf_request_created(campaign_name: str, partner_name: str) -> NotificationTemplate:
    return NotificationTemplate(
        "New MDF Request", f'{partner_name} requested MDF for "{campaign_name}"', "mdf"
    )


def support_ticket_created(ticket_id: object, subject: str, user_name: str) -> NotificationTemplate:
    return NotificationTemplate(
        "New Support Ticket Created",
        f"{user_name} created ticket #{_short_id(ticket_id)}: {subject}",
        "support",
    )


def support_ticket_response(
    ticket_id: object, responder_name: str, response_preview: str
) -> NotificationTemplate:
    preview = response_preview[:50] + ("..." if len(response_preview) > 50 else "")
    return NotificationTemplate(
        "New Response on Your Ticket", f'{responder_name} responded: "{preview}"', "support"
    )


def ticket_message(
    title: str, ticket_id: object, sender_name: str, text: str, verb: str = "sent"
) -> NotificationTemplate:
    preview = text if len(text) <= 100 else f"{text[:100]}..."
    return NotificationTemplate(
        f"{title} on ticket #{_short_id(ticket_id)}",
        f'{sender_name} {verb}: "{preview}"',
        "support",
    )


def ticket_message_summary(
    title: str, ticket_id: object, sender_name: str, subject: str, replied: bool = False
) -> NotificationTemplate:
    action = f"replied to {subject}" if replied else f"sent a message on {subject}"
    return NotificationTemplate(
        f"{title} on ticket #{_short_id(ticket_id)}", f"{sender_name} {action}", "support"
    )


def support_ticket_status_changed(
    ticket_id: object, old_status: str, new_status: str
) -> NotificationTemplate:
    return NotificationTemplate(
        "Ticket Status Updated",
        f"Ticket #{_short_id(ticket_id)} changed from {_status(old_status)} "
        f"to {_status(new_status)}",
        "support",
    )


def ticket_status_updated(
    ticket_id: object, actor_name: str, status_label: str
) -> NotificationTemplate:
    return NotificationTemplate(
        "Ticket Status Updated",
        f"{actor_name} updated ticket #{_short_id(ticket_id)} to {status_label}",
        "support",
    )


def ticket_assigned(ticket_id: object, subject: str) -> NotificationTemplate:
    return NotificationTemplate(
        "Ticket Assigned",
        f"Ticket #{_short_id(ticket_id)} was assigned to you: {subject}",
        "support",
    )


def support_ticket_resolved(ticket_id: object, subject: str) -> NotificationTemplate:
    return NotificationTemplate(
        "Ticket Resolved", f'Your ticket "{subject}" has been marked as resolved', "support"
    )


def support_ticket_closed(ticket_id: object, subject: str) -> NotificationTemplate:
    return NotificationTemplate(
        "Ticket Closed", f'Your ticket "{subject}" has been closed', "support"
    )


def partner_registered(partner_name: str) -> NotificationTemplate:
    return NotificationTemplate(
        "New Partner Registration", f"{partner_name} has registered and needs approval", "partner"
    )


def partner_approved() -> NotificationTemplate:
    return NotificationTemplate(
        "Partner Account Approved",
        "Your partner account has been approved and is now active",
        "partner",
    )


def password_reset() -> NotificationTemplate:
    return NotificationTemplate(
        "Password Reset", "Your password has been reset by an administrator", "general"
    )
