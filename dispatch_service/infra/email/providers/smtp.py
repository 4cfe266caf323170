"""SMTP email provider using aiosmtplib.

Supports STARTTLS (``encryption=tls``, usually port 587), implicit TLS
(``encryption=ssl``, usually port 465) and plain connections.

Usage:
    provider = SMTPProvider(config, limiter=registry.email)
    result = await provider.send(message)
"""

from __future__ import annotations

import logging
import ssl
import uuid
from datetime import UTC, datetime
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING

import aiosmtplib

from .base import BaseEmailProvider, EmailDeliveryResult

if TYPE_CHECKING:
    from dispatch_service.infra.email.schemas import EmailMessage, SmtpConfig
    from dispatch_service.infra.ratelimit import ChannelRateLimiter

logger = logging.getLogger(__name__)


class SMTPProvider(BaseEmailProvider):
    """Mail relay adapter over a fresh SMTP connection per message."""

    def __init__(
        self,
        config: SmtpConfig,
        *,
        timeout: float = 30.0,
        limiter: ChannelRateLimiter | None = None,
    ) -> None:
        super().__init__(limiter=limiter)
        self._config = config
        self._timeout = timeout

    @property
    def provider_name(self) -> str:
        return "smtp"

    def _create_ssl_context(self) -> ssl.SSLContext | None:
        if not (self._config.start_tls or self._config.use_ssl):
            return None
        return ssl.create_default_context()

    def _client(self) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self._config.host,
            port=self._config.port,
            use_tls=self._config.use_ssl,
            start_tls=self._config.start_tls,
            tls_context=self._create_ssl_context(),
            timeout=self._timeout,
        )

    async def _do_send(self, message: EmailMessage) -> EmailDeliveryResult:
        mime_message = self.build_mime_message(message)
        message_id = mime_message["Message-ID"]
        recipients = [str(address) for address in message.to]

        try:
            smtp = self._client()
            async with smtp:
                await smtp.login(self._config.username, self._config.password)
                errors, _response = await smtp.send_message(mime_message)
        except aiosmtplib.SMTPAuthenticationError as e:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"SMTP authentication failed: {e}",
                error_code="AUTH_FAILED",
            )
        except aiosmtplib.SMTPRecipientsRefused as e:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"All recipients refused: {e}",
                error_code="RECIPIENTS_REFUSED",
                recipients_rejected=recipients,
            )
        except aiosmtplib.SMTPConnectError as e:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"SMTP connection failed: {e}",
                error_code="CONNECTION_ERROR",
            )
        except aiosmtplib.SMTPException as e:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"SMTP error: {e}",
                error_code="SMTP_ERROR",
            )
        except OSError as e:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"SMTP network error: {e}",
                error_code="CONNECTION_ERROR",
            )

        rejected = list(errors.keys()) if errors else []
        if rejected and len(rejected) == len(recipients):
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"All recipients refused: {', '.join(rejected)}",
                error_code="RECIPIENTS_REFUSED",
                recipients_rejected=rejected,
            )
        if rejected:
            logger.warning(
                "Some SMTP recipients rejected",
                extra={"message_id": message_id, "rejected": rejected},
            )

        return EmailDeliveryResult.success_result(
            message_id=message_id,
            provider=self.provider_name,
            metadata={"host": self._config.host, "port": self._config.port},
        )

    def build_mime_message(self, message: EmailMessage) -> MIMEMultipart:
        """Build a multipart message with text/html alternatives and attachments."""
        mime_msg = MIMEMultipart("mixed")
        mime_msg["From"] = self._config.sender
        mime_msg["To"] = ", ".join(str(address) for address in message.to)
        mime_msg["Subject"] = message.subject
        mime_msg["Message-ID"] = f"<{uuid.uuid4()}@{self._config.host}>"
        mime_msg["Date"] = datetime.now(UTC).strftime("%a, %d %b %Y %H:%M:%S +0000")

        if message.body_text and message.body_html:
            alt_part = MIMEMultipart("alternative")
            alt_part.attach(MIMEText(message.body_text, "plain", "utf-8"))
            alt_part.attach(MIMEText(message.body_html, "html", "utf-8"))
            mime_msg.attach(alt_part)
        elif message.body_html:
            mime_msg.attach(MIMEText(message.body_html, "html", "utf-8"))
        elif message.body_text:
            mime_msg.attach(MIMEText(message.body_text, "plain", "utf-8"))

        for attachment in message.attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            part = MIMEBase(maintype or "application", subtype or "octet-stream")
            part.set_payload(attachment.content)
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            mime_msg.attach(part)

        return mime_msg
