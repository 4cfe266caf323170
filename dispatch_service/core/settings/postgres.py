"""Relational database settings.

Production deployments point at PostgreSQL through the psycopg3 async driver.
Local runs and tests fall back to SQLite through aiosqlite.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_yaml_source


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables use DB_ prefix.
    Either provide a full DSN (DB_DSN) or individual components
    (DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME).
    """

    enabled: bool = Field(
        default=True,
        description="Enable database integration.",
    )
    dsn: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides component fields when set.",
    )
    host: str = Field(default="localhost", description="Database host.")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port.")
    user: str = Field(default="postgres", description="Database user.")
    password: SecretStr = Field(
        default=SecretStr("postgres"),
        description="Database password.",
    )
    name: str = Field(default="dispatch", description="Database name.")
    sqlite_path: str = Field(
        default="./dispatch.db",
        description="SQLite file used when the database integration is disabled.",
    )

    pool_size: int = Field(default=10, ge=1, le=100, description="Connection pool size.")
    max_overflow: int = Field(default=10, ge=0, le=100, description="Pool overflow connections.")
    pool_timeout: float = Field(default=30.0, gt=0, description="Pool checkout timeout (seconds).")
    pool_recycle: int = Field(default=1800, ge=-1, description="Recycle connections after N seconds.")
    pool_pre_ping: bool = Field(default=True, description="Ping connections before checkout.")
    echo: bool = Field(default=False, description="Echo SQL statements.")

    model_config = SettingsConfigDict(
        env_prefix="DB_",
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
            create_yaml_source(settings_cls, "db"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @computed_field  # type: ignore[misc]
    @property
    def url(self) -> str:
        """Async SQLAlchemy URL for the configured backend."""
        if not self.enabled:
            return f"sqlite+aiosqlite:///{self.sqlite_path}"
        if self.dsn:
            return self.dsn
        return (
            f"postgresql+psycopg://{self.user}:{self.password.get_secret_value()}"
            f"@{self.host}:{self.port}/{self.name}"
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def engine_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``create_async_engine``."""
        kwargs: dict[str, Any] = {"echo": self.echo}
        if not self.is_sqlite:
            kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=self.pool_timeout,
                pool_recycle=self.pool_recycle,
                pool_pre_ping=self.pool_pre_ping,
            )
        return kwargs
