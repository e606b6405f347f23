"""Loguru setup shared by the tool facade, adapters and tests."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from os import PathLike
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger

from stock_analyst import __version__
from stock_analyst.settings import get_logging_settings

PathLikeArg = Union[str, PathLike]

_LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | "
    "tool={extra[tool]} | call={extra[call_id]} | env={extra[environment]} | "
    "ver={extra[service_version]} | {message}"
)

_ctx_tool: ContextVar[str] = ContextVar("log_tool", default="-")
_ctx_call_id: ContextVar[str] = ContextVar("log_call_id", default="-")
_ctx_environment: ContextVar[str] = ContextVar("log_environment", default="local")
_ctx_service_version: ContextVar[str] = ContextVar("log_service_version", default=__version__)

_CONTEXT_VARS: Dict[str, ContextVar[str]] = {
    "tool": _ctx_tool,
    "call_id": _ctx_call_id,
    "environment": _ctx_environment,
    "service_version": _ctx_service_version,
}


def _inject_context(record: Dict[str, Any]) -> Dict[str, Any]:
    extra = record["extra"]
    for key, ctx in _CONTEXT_VARS.items():
        extra.setdefault(key, ctx.get())
    return record


def _std_logging_sink(message) -> None:
    """Forward loguru records to the stdlib root logger (and so to Sentry)."""
    record = message.record
    exc = record["exception"]
    exc_info = (exc.type, exc.value, exc.traceback) if exc else None

    log_record = logging.LogRecord(
        name=record["name"] or "stock_analyst",
        level=record["level"].no,
        pathname=record["file"].path,
        lineno=record["line"],
        msg=record["message"],
        args=(),
        exc_info=exc_info,
        func=record["function"],
    )
    for k, v in record["extra"].items():
        setattr(log_record, k, v)

    logging.getLogger().handle(log_record)


def setup_logging(*, force: bool = False, level: str | None = None) -> None:
    """Configure Loguru sinks, bridge to stdlib, and attach contextual metadata."""
    if not force and getattr(setup_logging, "_configured", False):
        return

    logger.remove()

    log_settings = get_logging_settings()
    log_level = (level or log_settings.level).upper()
    environment = log_settings.environment

    logger.configure(
        extra={
            "service_version": __version__,
            "environment": environment,
        },
        patcher=_inject_context,
    )
    _ctx_environment.set(environment)

    # stdout is reserved for stdio transports; log lines go to stderr
    logger.add(
        sys.stderr,
        level=log_level,
        format=_LOG_FORMAT,
        enqueue=False,
        backtrace=False,
        diagnose=False,
    )
    logger.add(
        _std_logging_sink,
        level=log_level,
        enqueue=False,
        backtrace=False,
        diagnose=False,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))
    setup_logging._configured = True  # type: ignore[attr-defined]


def setup_test_logging(
    arg: Optional[PathLikeArg] = None,
    *,
    level: Optional[str] = None,
    filename: str = "pytest.log",
) -> None:
    """
    Logging setup for pytest sessions.

    ``arg`` is either a level name ("DEBUG") or a path. A directory path gets
    ``<dir>/<filename>``; anything else is used as the log file itself.
    """
    inferred_level: Optional[str] = None
    target: Optional[Path] = None
    if arg is not None:
        if hasattr(arg, "__fspath__"):
            target = Path(arg)
        elif isinstance(arg, str) and ("/" in arg or arg.endswith(".log")):
            target = Path(arg)
        elif isinstance(arg, str):
            inferred_level = arg

    effective_level = (level or inferred_level or os.getenv("PYTEST_LOGLEVEL") or "INFO").upper()
    setup_logging(force=True, level=effective_level)

    if target is None:
        return
    if target.suffix != ".log":
        target.mkdir(parents=True, exist_ok=True)
        target = target / filename
    target.parent.mkdir(parents=True, exist_ok=True)

    logger.add(
        str(target),
        level=effective_level,
        format=_LOG_FORMAT,
        enqueue=False,
        backtrace=False,
        diagnose=False,
    )


@contextmanager
def logging_context(**values: str):
    """Bind structured fields (``tool``, ``call_id``) for everything logged inside."""
    tokens = []
    for key, value in values.items():
        ctx = _CONTEXT_VARS.get(key)
        if ctx is not None:
            tokens.append((ctx, ctx.set(value or "-")))
    try:
        with logger.contextualize(**values):
            yield
    finally:
        for ctx, token in reversed(tokens):
            ctx.reset(token)


__all__ = ["setup_logging", "setup_test_logging", "logging_context"]
