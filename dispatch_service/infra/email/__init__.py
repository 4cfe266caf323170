"""Email delivery infrastructure."""

from .providers import BaseEmailProvider, EmailDeliveryResult, SMTPProvider
from .schemas import EmailAttachment, EmailMessage, SmtpConfig
from .templates import (
    EmailRenderer,
    JinjaEmailRenderer,
    get_email_renderer,
    html_to_text,
    message_to_html,
    render_email_bodies,
)

__all__ = [
    "BaseEmailProvider",
    "EmailAttachment",
    "EmailDeliveryResult",
    "EmailMessage",
    "EmailRenderer",
    "JinjaEmailRenderer",
    "SMTPProvider",
    "SmtpConfig",
    "get_email_renderer",
    "html_to_text",
    "message_to_html",
    "render_email_bodies",
]
