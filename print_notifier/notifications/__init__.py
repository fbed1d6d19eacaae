"""Completion email formatting and delivery.

- NotificationFormatter: job + user -> OutboundMessage
- TemplateRenderer: Jinja2 rendering of the email templates
- DeliveryGateway / SMTPDeliveryGateway: async delivery returning DeliveryResult
- SMTPClient: blocking smtplib wrapper used by the SMTP gateway
"""

from .formatter import NotificationFormatter
from .gateway import DeliveryGateway, SMTPDeliveryGateway, build_email_message
from .models import (
    DeliveryResult,
    NotificationError,
    NotificationTemplateError,
    OutboundMessage,
    SMTPDeliveryError,
)
from .payloads import build_completion_context, format_amount
from .smtp_client import SMTPClient, build_sender_address, normalize_recipient
from .templates import TemplateRenderer

__all__ = [
    # Formatting
    "NotificationFormatter",
    "TemplateRenderer",
    "build_completion_context",
    "format_amount",
    # Delivery
    "DeliveryGateway",
    "SMTPDeliveryGateway",
    "SMTPClient",
    "build_email_message",
    "build_sender_address",
    "normalize_recipient",
    # Models
    "OutboundMessage",
    "DeliveryResult",
    # Exceptions
    "NotificationError",
    "NotificationTemplateError",
    "SMTPDeliveryError",
]
