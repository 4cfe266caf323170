"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings that keep tests off external infrastructure
    - Database Fixtures: SQLite engine and session factory
    - Settings Fixtures: runtime settings store backed by a dict or by rows
    - Delivery Fakes: email provider, SMS client and ledger doubles

When adding new features:
    1. Add fixtures to the appropriate section below
    2. Keep fakes in ``tests/fakes.py`` so test modules can import them directly
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_ENABLED", "false")
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")
os.environ.setdefault("NOTIFY_TIMEZONE", "UTC")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine]:
    """File-backed SQLite engine with every table created.

    A file rather than ``:memory:`` so concurrent sessions in fan-out tests
    each get their own connection.
    """
    from dispatch_service.features import load_models

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'dispatch.db'}",
    )
    metadata = load_models()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory injected into services, readers and ledgers."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def settings_values() -> dict[str, str]:
    """Mutable runtime settings; tests add or drop keys before exercising code."""
    return {
        "company_name": "Acme Supplies",
        "SMTP_HOST": "smtp.example.com",
        "SMTP_USERNAME": "mailer",
        "SMTP_PASSWORD": "secret",
        "SMTP_FROM_ADDRESS": "noreply@example.com",
        "SMS_ENABLED": "true",
        "SMS_PROVIDER": "deywuro",
        "SMS_USERNAME": "acme",
        "SMS_PASSWORD": "pw",
        "SMS_SENDER_ID": "ACME",
    }


@pytest.fixture
def settings_reader(settings_values: dict[str, str]):
    from tests.fakes import StaticSettingsReader

    return StaticSettingsReader(settings_values)


# ============================================================================
# Delivery Fakes
# ============================================================================


@pytest.fixture
def rate_limiters():
    """Limiters fast enough that pacing never slows a unit test."""
    from dispatch_service.infra.ratelimit import RateLimiterRegistry

    return RateLimiterRegistry.from_rates({"email": 10_000, "sms": 10_000})


@pytest.fixture
def ledger():
    from tests.fakes import RecordingLedger

    return RecordingLedger()


@pytest.fixture
def email_provider():
    from tests.fakes import FakeEmailProvider

    return FakeEmailProvider()


@pytest.fixture
def sms_client():
    from tests.fakes import FakeSmsClient

    return FakeSmsClient()
