"""Tests for the SMTP mail relay adapter and email body rendering."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import aiosmtplib
import pytest

from dispatch_service.core.exceptions import GatewayTransportError, RecipientValidationError
from dispatch_service.infra.email import (
    EmailAttachment,
    EmailMessage,
    JinjaEmailRenderer,
    SMTPProvider,
    SmtpConfig,
    html_to_text,
    message_to_html,
    render_email_bodies,
)
from dispatch_service.infra.metrics import REGISTRY

CONFIG = SmtpConfig(
    host="smtp.example.com",
    port=587,
    username="mailer",
    password="secret",
    from_address="noreply@example.com",
    from_name="Acme Supplies",
)


class FakeSMTP:
    """Async context manager standing in for ``aiosmtplib.SMTP``."""

    def __init__(self, *, errors: dict[str, Any] | None = None, raise_on_send: Exception | None = None) -> None:
        self.errors = errors or {}
        self.raise_on_send = raise_on_send
        self.logins: list[tuple[str, str]] = []
        self.messages: list[Any] = []

    async def __aenter__(self) -> FakeSMTP:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def login(self, username: str, password: str) -> None:
        self.logins.append((username, password))

    async def send_message(self, message: Any) -> tuple[dict[str, Any], str]:
        if self.raise_on_send is not None:
            raise self.raise_on_send
        self.messages.append(message)
        return self.errors, "OK"


@pytest.fixture
def message() -> EmailMessage:
    return EmailMessage(
        to=["buyer@example.com"],
        subject="Low stock",
        body_html="<p>Widget is low</p>",
        body_text="Widget is low",
    )


def _provider(monkeypatch: pytest.MonkeyPatch, smtp: FakeSMTP, config: SmtpConfig = CONFIG) -> SMTPProvider:
    monkeypatch.setattr(SMTPProvider, "_client", lambda self: smtp)
    return SMTPProvider(config)


class TestSMTPProvider:
    """Relay exchange through a mocked aiosmtplib client."""

    async def test_logs_in_and_sends(self, monkeypatch: pytest.MonkeyPatch, message: EmailMessage) -> None:
        smtp = FakeSMTP()
        provider = _provider(monkeypatch, smtp)

        result = await provider.send(message)

        assert result.success
        assert result.provider == "smtp"
        assert result.message_id is not None
        assert result.message_id.endswith("@smtp.example.com>")
        assert result.duration_ms is not None
        assert smtp.logins == [("mailer", "secret")]
        sent = smtp.messages[0]
        assert sent["From"] == '"Acme Supplies" <noreply@example.com>'
        assert sent["To"] == "buyer@example.com"
        assert sent["Subject"] == "Low stock"

    async def test_authentication_failure_is_a_result(
        self, monkeypatch: pytest.MonkeyPatch, message: EmailMessage
    ) -> None:
        smtp = FakeSMTP(raise_on_send=aiosmtplib.SMTPAuthenticationError(535, "bad credentials"))
        provider = _provider(monkeypatch, smtp)

        result = await provider.send(message)

        assert not result.success
        assert result.error_code == "AUTH_FAILED"
        assert isinstance(result.to_exception(), GatewayTransportError)

    async def test_every_recipient_rejected_is_a_recipient_failure(
        self, monkeypatch: pytest.MonkeyPatch, message: EmailMessage
    ) -> None:
        smtp = FakeSMTP(errors={"buyer@example.com": (550, "no such user")})
        provider = _provider(monkeypatch, smtp)

        result = await provider.send(message)

        assert not result.success
        assert result.error_code == "RECIPIENTS_REFUSED"
        assert result.recipients_rejected == ["buyer@example.com"]
        assert isinstance(result.to_exception(), RecipientValidationError)

    async def test_network_error_is_a_connection_failure(
        self, monkeypatch: pytest.MonkeyPatch, message: EmailMessage
    ) -> None:
        provider = _provider(monkeypatch, FakeSMTP(raise_on_send=ConnectionRefusedError("refused")))

        result = await provider.send(message)

        assert result.error_code == "CONNECTION_ERROR"

    def test_builds_alternative_parts(self, message: EmailMessage) -> None:
        mime = SMTPProvider(CONFIG).build_mime_message(message)

        alternative = mime.get_payload()[0]
        assert alternative.get_content_subtype() == "alternative"
        assert [part.get_content_type() for part in alternative.get_payload()] == [
            "text/plain",
            "text/html",
        ]

    def test_attachments_become_base64_parts(self, message: EmailMessage) -> None:
        message = message.model_copy(
            update={
                "attachments": [
                    EmailAttachment(filename="report.pdf", content=b"%PDF-1.7", content_type="application/pdf"),
                    EmailAttachment(filename="notes", content=b"plain", content_type="bogus"),
                ]
            }
        )

        mime = SMTPProvider(CONFIG).build_mime_message(message)

        _, pdf, notes = mime.get_payload()
        assert pdf.get_content_type() == "application/pdf"
        assert pdf.get_filename() == "report.pdf"
        assert pdf["Content-Transfer-Encoding"] == "base64"
        assert pdf.get_payload(decode=True) == b"%PDF-1.7"
        assert notes.get_content_type() == "bogus/octet-stream"

    async def test_send_is_counted_per_provider(self, monkeypatch: pytest.MonkeyPatch, message: EmailMessage) -> None:
        labels = {"channel": "email", "provider": "smtp"}
        before = REGISTRY.get_sample_value("provider_send_total", {**labels, "status": "success"}) or 0.0
        observed = REGISTRY.get_sample_value("provider_send_duration_seconds_count", labels) or 0.0

        await _provider(monkeypatch, FakeSMTP()).send(message)

        assert REGISTRY.get_sample_value("provider_send_total", {**labels, "status": "success"}) == before + 1
        assert REGISTRY.get_sample_value("provider_send_duration_seconds_count", labels) == observed + 1

    @pytest.mark.parametrize(
        ("encryption", "use_ssl", "start_tls"),
        [("tls", False, True), ("ssl", True, False), ("none", False, False)],
    )
    def test_encryption_modes(self, encryption: str, use_ssl: bool, start_tls: bool) -> None:
        config = replace(CONFIG, encryption=encryption)

        assert config.use_ssl is use_ssl
        assert config.start_tls is start_tls


class TestEmailBodies:
    """Message-to-HTML conversion and branded wrapper."""

    def test_plain_text_keeps_line_breaks_and_is_escaped(self) -> None:
        assert message_to_html("a < b\nnext") == "a &lt; b<br>next"

    def test_html_message_is_used_as_is(self) -> None:
        assert message_to_html("<p>Hi</p>") == "<p>Hi</p>"

    def test_html_to_text_keeps_link_targets(self) -> None:
        text = html_to_text('<p>See <a href="https://example.com/x">the order</a></p><br>Thanks')

        assert "the order (https://example.com/x)" in text
        assert "Thanks" in text
        assert "<" not in text

    def test_wrapper_carries_company_name(self) -> None:
        renderer = JinjaEmailRenderer().with_company("Acme Supplies")

        html, text = render_email_bodies(renderer, "Stock is low", subject="Alert", title="Alert")

        assert "Acme Supplies" in html
        assert "Stock is low" in html
        assert text == "Stock is low"

    def test_broken_renderer_falls_back_to_fragment(self) -> None:
        class BrokenRenderer:
            def render(self, body_html: str, *, subject: str = "", title: str | None = None) -> str:
                raise RuntimeError("template missing")

        html, _ = render_email_bodies(BrokenRenderer(), "Hello")

        assert html == "Hello"
