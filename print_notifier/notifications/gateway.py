"""Delivery gateway: accepts an OutboundMessage, reports success or failure."""

import asyncio
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

from print_notifier.config.environment import EnvironmentConfig
from print_notifier.logging import get_logger

from .models import DeliveryResult, OutboundMessage, SMTPDeliveryError
from .smtp_client import SMTPClient, normalize_recipient

logger = get_logger(__name__, component="gateway")


class DeliveryGateway(ABC):
    """Outbound email transport.

    Implementations report failures through DeliveryResult instead of raising.
    """

    @abstractmethod
    async def send(self, message: OutboundMessage) -> DeliveryResult:
        """Deliver ``message``."""


def build_email_message(message: OutboundMessage) -> EmailMessage:
    """Build a multipart/alternative EmailMessage (plain text + HTML).

    Raises:
        ValueError: If the recipient address is invalid
    """
    email = EmailMessage()
    email["Subject"] = message.subject
    email["From"] = message.from_address
    email["To"] = normalize_recipient(message.to)
    email.set_content(message.text)
    email.add_alternative(message.html, subtype="html")
    return email


class SMTPDeliveryGateway(DeliveryGateway):
    """Gateway backed by SMTPClient.

    smtplib blocks, so each send runs in a worker thread and only suspends the
    calling task.
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        smtp_client: Optional[SMTPClient] = None,
    ):
        self.env_config = env_config
        self.use_tls = use_tls
        self.smtp_client = smtp_client or SMTPClient()

    async def send(self, message: OutboundMessage) -> DeliveryResult:
        try:
            email = build_email_message(message)
        except ValueError as e:
            logger.warning(
                f"Refusing to send to invalid address: {e}",
                extra={"event": "gateway.invalid_recipient"},
            )
            return DeliveryResult.failure(str(e))

        try:
            await asyncio.to_thread(self.smtp_client.send, email, self.env_config, self.use_tls)
        except SMTPDeliveryError as e:
            logger.warning(
                f"SMTP delivery failed: {e}",
                extra={"event": "gateway.send.failed", "error_type": type(e).__name__},
            )
            return DeliveryResult.failure(str(e))

        return DeliveryResult.ok()
