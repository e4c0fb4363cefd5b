"""Runtime configuration based on environment variables.

Settings are built once by :func:`load_settings` at the application's
construction point and handed to every component explicitly. Nothing in the
package reads configuration from module-level state.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    dsn: str = Field(
        default="sqlite+aiosqlite:///./tiergate.db",
        description="SQLAlchemy async DSN (aiosqlite locally, asyncmy for MySQL).",
    )
    pool_size: int = Field(default=5, ge=1, le=50)
    max_overflow: int = Field(default=10, ge=0, le=100)
    echo: bool = False
    pool_recycle: int = Field(default=3600, ge=30)
    pool_pre_ping: bool = Field(default=True)
    create_schema: bool = Field(
        default=True,
        description="Create missing tables on startup.",
    )


class UsageSettings(BaseModel):
    retry_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Total attempts against the usage store (first try plus retries).",
    )
    retry_base_delay: float = Field(default=0.2, ge=0.0, le=10.0)


class GatePolicySettings(BaseModel):
    fail_closed: bool = Field(
        default=True,
        description="Deny read-only gate checks when the usage store is unreachable.",
    )
    near_limit_ratio: float = Field(default=0.8, gt=0.0, le=1.0)


class HttpSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)


class TierGateSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TIERGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    environment: Literal["dev", "staging", "prod"] = "dev"
    default_language: str = "en"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    usage: UsageSettings = Field(default_factory=UsageSettings)
    gate: GatePolicySettings = Field(default_factory=GatePolicySettings)
    http: HttpSettings = Field(default_factory=HttpSettings)

    @field_validator("default_language", mode="before")
    @classmethod
    def _normalise_language(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            if not value:
                return "en"
        return value


def load_settings(**overrides) -> TierGateSettings:
    """Build a fresh settings instance from the environment."""

    return TierGateSettings(**overrides)


__all__ = [
    "DatabaseSettings",
    "GatePolicySettings",
    "HttpSettings",
    "TierGateSettings",
    "UsageSettings",
    "load_settings",
]
