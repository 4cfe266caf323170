"""Email message and relay configuration types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

SmtpEncryption = Literal["tls", "ssl", "none"]


@dataclass(frozen=True, slots=True)
class SmtpConfig:
    """Resolved mail relay configuration for one send.

    ``encryption`` follows the settings store values: ``tls`` means STARTTLS,
    ``ssl`` means implicit TLS on connect, ``none`` disables both.
    """

    host: str
    port: int
    username: str
    password: str
    from_address: str
    from_name: str
    encryption: SmtpEncryption = "tls"

    @property
    def use_ssl(self) -> bool:
        return self.encryption == "ssl"

    @property
    def start_tls(self) -> bool:
        return self.encryption == "tls"

    @property
    def sender(self) -> str:
        return f'"{self.from_name}" <{self.from_address}>' if self.from_name else self.from_address


class EmailAttachment(BaseModel):
    """File attached to an outgoing email."""

    filename: str = Field(min_length=1, max_length=255)
    content: bytes
    content_type: str = Field(default="application/octet-stream")


class EmailMessage(BaseModel):
    """A single transactional email ready for a provider."""

    to: list[EmailStr] = Field(min_length=1, description="Recipient addresses")
    subject: str = Field(max_length=998)
    body_html: str | None = None
    body_text: str | None = None
    attachments: list[EmailAttachment] = Field(default_factory=list)
