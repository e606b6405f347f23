import logging
from pathlib import Path

import sentry_sdk
from dotenv import load_dotenv
from sentry_sdk.integrations.logging import LoggingIntegration

__version__ = "1.0.0"

# Load environment variables early so provider keys and SENTRY_DSN are available for local runs
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")

from stock_analyst.settings import get_logging_settings, get_sentry_settings  # noqa: E402

# Initialize Sentry as early as possible (only if DSN is provided)
_sentry = get_sentry_settings()
if _sentry.enabled:
    sentry_sdk.init(
        dsn=_sentry.dsn,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=_sentry.traces_sample_rate,
        environment=_sentry.environment or get_logging_settings().environment,
        release=__version__,
    )
else:
    logging.getLogger(__name__).info("Sentry DSN not set; Sentry disabled")
