"""HTML wrapper rendering for outgoing notification emails.

The pipeline treats rendering as an opaque ``render(body) -> html``
capability (``EmailRenderer``). The default implementation wraps the body in
a Jinja2 branded layout; callers can inject any other renderer.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from functools import lru_cache
from html import escape, unescape
from pathlib import Path
from typing import Protocol, runtime_checkable

from jinja2 import Environment, FileSystemLoader, select_autoescape

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent.parent / "templates" / "email"
DEFAULT_TEMPLATE = "notification.html"


@runtime_checkable
class EmailRenderer(Protocol):
    """Turns a message body into a complete HTML document."""

    def render(self, body_html: str, *, subject: str = "", title: str | None = None) -> str: ...


class JinjaEmailRenderer:
    """Jinja2-based branded wrapper.

    Example:
        renderer = JinjaEmailRenderer(company_name="AdPools Group")
        html = renderer.render("<p>Stock is low</p>", subject="Low stock")
    """

    def __init__(
        self,
        *,
        company_name: str = "AdPools Group",
        template_dir: Path = TEMPLATE_DIR,
        template_name: str = DEFAULT_TEMPLATE,
    ) -> None:
        self.company_name = company_name
        self.template_name = template_name
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def with_company(self, company_name: str) -> JinjaEmailRenderer:
        """Return a renderer sharing this environment with a different brand name."""
        clone = object.__new__(JinjaEmailRenderer)
        clone.company_name = company_name
        clone.template_name = self.template_name
        clone.env = self.env
        return clone

    def render(self, body_html: str, *, subject: str = "", title: str | None = None) -> str:
        template = self.env.get_template(self.template_name)
        return template.render(
            content=body_html,
            subject=subject,
            title=title,
            company_name=self.company_name,
            year=datetime.now(UTC).year,
        )


def looks_like_html(message: str) -> bool:
    """Treat a message containing both ``<`` and ``>`` as markup."""
    return "<" in message and ">" in message


def message_to_html(message: str) -> str:
    """Return ``message`` as an HTML fragment; plain text keeps its line breaks."""
    if looks_like_html(message):
        return message
    return escape(message).replace("\n", "<br>")


def html_to_text(html: str) -> str:
    """Derive the plain-text alternative from an HTML body."""
    html = re.sub(
        r'<a[^>]+href=["\']([^"\']+)["\'][^>]*>([^<]+)</a>',
        r"\2 (\1)",
        html,
        flags=re.IGNORECASE,
    )
    html = re.sub(r"<(style|script|head)[^>]*>.*?</\1>", "", html, flags=re.IGNORECASE | re.DOTALL)
    html = re.sub(r"<br\s*/?>", "\n", html, flags=re.IGNORECASE)
    html = re.sub(r"</?(p|div|tr|h[1-6])[^>]*>", "\n", html, flags=re.IGNORECASE)
    html = re.sub(r"<li[^>]*>", "\n  * ", html, flags=re.IGNORECASE)
    html = re.sub(r"<[^>]+>", "", html)

    text = unescape(html)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def render_email_bodies(
    renderer: EmailRenderer,
    message: str,
    *,
    subject: str = "",
    title: str | None = None,
) -> tuple[str, str]:
    """Build the (html, text) pair for a notification message.

    Falls back to the bare fragment when the wrapper cannot be rendered, so a
    broken template never blocks delivery.
    """
    fragment = message_to_html(message)
    try:
        html = renderer.render(fragment, subject=subject, title=title)
    except Exception:
        logger.warning(
            "Email wrapper rendering failed, sending plain body",
            exc_info=True,
            extra={"subject": subject},
        )
        html = fragment
    return html, html_to_text(fragment)


@lru_cache(maxsize=1)
def get_email_renderer() -> JinjaEmailRenderer:
    return JinjaEmailRenderer()
