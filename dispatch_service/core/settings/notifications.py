"""Notification pipeline settings.

These are process-level knobs: pacing, worker concurrency, retry budget and
gateway endpoints. Provider credentials and per-type feature flags are not
kept here; they live in the ``system_settings`` store and are read fresh on
every send.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_yaml_source


class NotificationSettings(BaseSettings):
    """Dispatch pipeline configuration.

    Environment variables use NOTIFY_ prefix.
    Example: NOTIFY_EMAIL_RATE_PER_SECOND=5, NOTIFY_SMS_CONCURRENCY=3
    """

    # ──────────────────────────────────────────────────────────────
    # Pacing
    # ──────────────────────────────────────────────────────────────

    email_rate_per_second: float = Field(
        default=5.0,
        gt=0,
        le=1000,
        description="Maximum outbound emails per second across the process.",
    )
    sms_rate_per_second: float = Field(
        default=3.0,
        gt=0,
        le=1000,
        description="Maximum outbound SMS per second across the process.",
    )

    # ──────────────────────────────────────────────────────────────
    # Worker pool
    # ──────────────────────────────────────────────────────────────

    email_concurrency: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Concurrent email jobs per worker process (broker prefetch).",
    )
    sms_concurrency: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Concurrent SMS jobs per worker process (broker prefetch).",
    )
    job_max_retries: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Retries the queue grants a failed single-recipient job.",
    )

    # ──────────────────────────────────────────────────────────────
    # Gateways
    # ──────────────────────────────────────────────────────────────

    sms_gateway_url: HttpUrl = Field(
        default=HttpUrl("https://deywuro.com/api/sms"),
        description="Form-encoded POST endpoint of the SMS aggregator.",
    )
    sms_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="HTTP timeout (seconds) for SMS gateway calls.",
    )
    smtp_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout (seconds) for SMTP connect and send.",
    )
    default_sms_cost: float = Field(
        default=0.05,
        ge=0,
        description="Cost recorded for a sent SMS when the gateway reports none.",
    )
    default_from_name: str = Field(
        default="AdPools Group",
        description="Sender display name used when no company name is configured.",
    )
    default_sender_id: str = Field(
        default="AdPools",
        max_length=11,
        description="SMS sender id used when SMS_SENDER_ID is not configured.",
    )

    # ──────────────────────────────────────────────────────────────
    # Preferences
    # ──────────────────────────────────────────────────────────────

    timezone: str = Field(
        default="UTC",
        description="IANA timezone used to evaluate recipients' quiet hours.",
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_yaml_source(settings_cls, "notifications"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown timezone: {value}"
            raise ValueError(msg) from exc
        return value
