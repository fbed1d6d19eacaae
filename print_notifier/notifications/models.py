"""Data models and exceptions for the notification pipeline."""

from dataclasses import dataclass
from typing import Optional


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when a template cannot be loaded or rendered."""

    pass


class SMTPDeliveryError(NotificationError):
    """Raised by the SMTP client when a message cannot be delivered."""

    pass


@dataclass(frozen=True)
class OutboundMessage:
    """A fully formatted completion email, ready for the delivery gateway."""

    from_address: str
    to: str
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single gateway send.

    Attributes:
        success: True if the transport accepted the message
        reason: Failure reason when success is False
    """

    success: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "DeliveryResult":
        return cls(success=True)

    @classmethod
    def failure(cls, reason: str) -> "DeliveryResult":
        return cls(success=False, reason=reason)
