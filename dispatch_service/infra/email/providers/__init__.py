"""Email providers."""

from .base import BaseEmailProvider, EmailDeliveryResult
from .smtp import SMTPProvider

__all__ = ["BaseEmailProvider", "EmailDeliveryResult", "SMTPProvider"]
