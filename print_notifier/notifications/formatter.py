"""Notification formatter: job + user data in, outbound message out."""

from typing import Optional

from print_notifier.config.models import EmailConfig, FormattingConfig
from print_notifier.domain.models import PrintJob, User

from .models import OutboundMessage
from .payloads import build_completion_context
from .templates import TemplateRenderer


class NotificationFormatter:
    """Formats completion emails.

    Performs no I/O beyond loading the (cached) templates. Missing job fields
    are filled with display defaults, so only a broken template can make
    format() fail.
    """

    def __init__(
        self,
        sender: str,
        email_config: Optional[EmailConfig] = None,
        formatting_config: Optional[FormattingConfig] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.sender = sender
        self.email_config = email_config or EmailConfig()
        self.formatting_config = formatting_config or FormattingConfig()
        self.renderer = renderer or TemplateRenderer()

    def format(self, job: PrintJob, user: User) -> OutboundMessage:
        """Build the completion email for ``job`` addressed to ``user``.

        Raises:
            NotificationTemplateError: If a template fails to render
            ValueError: If the user has no email address
        """
        if not user.email:
            raise ValueError(f"User {user.user_id} has no email address")

        context = build_completion_context(
            job,
            user,
            defaults=self.formatting_config,
            brand_name=self.email_config.brand_name,
            dashboard_url=self.email_config.dashboard_url,
        )
        context["subject"] = self.email_config.subject

        rendered = self.renderer.render(context)

        return OutboundMessage(
            from_address=self.sender,
            to=user.email,
            subject=rendered["subject"],
            html=rendered["html_body"],
            text=rendered["text_body"],
        )
