"""Centralized application settings powered by Pydantic.

Environment matrix:

| Section     | Environment Variable          | Default                              | Purpose                              |
|-------------|-------------------------------|--------------------------------------|--------------------------------------|
| Market data | `FINNHUB_API_KEY`             | `None`                               | Primary provider credential          |
| Market data | `ALPHAVANTAGE_API_KEY`        | `None`                               | Fallback provider credential         |
| Market data | `FINNHUB_BASE_URL`            | `https://finnhub.io/api/v1`          | Finnhub REST root                    |
| Market data | `ALPHAVANTAGE_BASE_URL`       | `https://www.alphavantage.co/query`  | Alpha Vantage query endpoint         |
| Market data | `HTTP_TIMEOUT`                | `15.0`                               | Per-request timeout in seconds       |
| Market data | `HTTP_USER_AGENT`             | `stock-analyst/<version>`            | Outbound User-Agent header           |
| Sentry      | `SENTRY_DSN`                  | `None`                               | Sentry ingest DSN                    |
| Sentry      | `SENTRY_TRACES_SAMPLE_RATE`   | `0.0`                                | Fraction of transactions to trace    |
| Sentry      | `SENTRY_ENVIRONMENT`          | `None`                               | Deployment environment label         |
| Logging     | `LOG_LEVEL`                   | `INFO`                               | Minimum level for log sinks          |
| Logging     | `ENV`                         | `local`                              | Environment tag attached to records  |

Credentials are opaque strings; only their presence is checked. Settings are
read from the environment on every `get_settings()` call and are frozen.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HTTP_TIMEOUT = 15.0
DEFAULT_USER_AGENT = "stock-analyst/1.0 (+https://example.local)"


class _SettingsBase(BaseSettings):
    """Common configuration for BaseSettings subclasses."""

    model_config = SettingsConfigDict(
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
        case_sensitive=True,
        frozen=True,
    )


class MarketDataSettings(_SettingsBase):
    """API credentials and transport options for the upstream providers."""

    finnhub_key: str | None = Field(default=None, alias="FINNHUB_API_KEY")
    alphavantage_key: str | None = Field(default=None, alias="ALPHAVANTAGE_API_KEY")
    finnhub_base_url: str = Field(
        default="https://finnhub.io/api/v1", alias="FINNHUB_BASE_URL"
    )
    alphavantage_base_url: str = Field(
        default="https://www.alphavantage.co/query", alias="ALPHAVANTAGE_BASE_URL"
    )
    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, alias="HTTP_TIMEOUT")
    http_user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="HTTP_USER_AGENT")

    @field_validator("finnhub_key", "alphavantage_key", mode="before")
    @classmethod
    def _blank_key_is_missing(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("http_timeout", mode="before")
    @classmethod
    def _coerce_timeout(cls, value: float | str | None) -> float:
        if value in (None, ""):
            return DEFAULT_HTTP_TIMEOUT
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            return DEFAULT_HTTP_TIMEOUT
        return timeout if timeout > 0 else DEFAULT_HTTP_TIMEOUT

    @computed_field
    @property
    def has_finnhub(self) -> bool:
        return bool(self.finnhub_key)

    @computed_field
    @property
    def has_alphavantage(self) -> bool:
        return bool(self.alphavantage_key)


class SentrySettings(_SettingsBase):
    """Sentry SDK configuration."""

    dsn: str | None = Field(default=None, alias="SENTRY_DSN")
    traces_sample_rate: float = Field(default=0.0, alias="SENTRY_TRACES_SAMPLE_RATE")
    environment: str | None = Field(default=None, alias="SENTRY_ENVIRONMENT")

    @computed_field
    @property
    def enabled(self) -> bool:
        return bool(self.dsn)


class LoggingSettings(_SettingsBase):
    level: str = Field(default="INFO", alias="LOG_LEVEL")
    environment: str = Field(default="local", alias="ENV")

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: str | None) -> str:
        return (value or "INFO").strip().upper() or "INFO"


class Settings(BaseModel):
    """Aggregate accessor for domain-specific settings."""

    market_data: MarketDataSettings = Field(default_factory=MarketDataSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }


def get_settings() -> Settings:
    """Instantiate settings from the current environment."""
    return Settings()


def reload_settings() -> Settings:
    """Alias for get_settings to maintain a consistent API."""
    return get_settings()


def get_market_data_settings() -> MarketDataSettings:
    return get_settings().market_data


def get_sentry_settings() -> SentrySettings:
    return get_settings().sentry


def get_logging_settings() -> LoggingSettings:
    return get_settings().logging


__all__ = [
    "DEFAULT_HTTP_TIMEOUT",
    "Settings",
    "get_settings",
    "reload_settings",
    "get_market_data_settings",
    "get_sentry_settings",
    "get_logging_settings",
    "MarketDataSettings",
    "SentrySettings",
    "LoggingSettings",
]
