"""Template rendering for completion emails using Jinja2.

Templates live in the print_notifier.notifications.email_templates package
directory. StrictUndefined turns a missing context key into an error instead
of an empty string.
"""

import logging
from typing import Any, Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """Renders the subject, HTML body and plain-text body of an email."""

    def __init__(
        self,
        template_dir: str = "email_templates",
        subject_template: str = "completion_subject.j2",
        html_template: str = "completion_body.html.j2",
        text_template: str = "completion_body.txt.j2",
    ):
        self.subject_template_name = subject_template
        self.html_template_name = html_template
        self.text_template_name = text_template

        self.env = Environment(
            loader=PackageLoader("print_notifier.notifications", template_dir),
            autoescape=True,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, context: Dict[str, Any]) -> Dict[str, str]:
        """Render all templates with ``context``.

        Returns:
            Dictionary with subject (single line), html_body and text_body

        Raises:
            NotificationTemplateError: If any template fails to load or render
        """
        try:
            subject = self.env.get_template(self.subject_template_name).render(context)
            html_body = self.env.get_template(self.html_template_name).render(context)
            text_body = self.env.get_template(self.text_template_name).render(context)
        except TemplateError as e:
            error_msg = f"Template rendering failed: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e

        logger.debug(f"Rendered templates for job: {context.get('job_id', 'unknown')}")

        return {
            "subject": " ".join(subject.split()),
            "html_body": html_body,
            "text_body": text_body,
        }
