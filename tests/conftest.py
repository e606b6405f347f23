from __future__ import annotations

import os

import pytest

from stock_analyst.logging_utils import setup_test_logging

os.environ.setdefault("ENV", "test")

_PROVIDER_ENV = (
    "FINNHUB_API_KEY",
    "ALPHAVANTAGE_API_KEY",
    "FINNHUB_BASE_URL",
    "ALPHAVANTAGE_BASE_URL",
    "HTTP_TIMEOUT",
    "HTTP_USER_AGENT",
    "SENTRY_DSN",
)


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    setup_test_logging("WARNING")
    yield


@pytest.fixture(autouse=True)
def _isolate_provider_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's real keys out of every test."""
    for key in _PROVIDER_ENV:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def anyio_backend():
    """Force anyio-powered async tests to run under asyncio backend only."""
    return "asyncio"
