"""Primary -> fallback provider chain for a single logical query.

The chain is a two-stage state machine. Each stage runs at most one fetcher,
sequentially, and reports an ``Outcome``; ``next_stage`` decides what happens
next. Failures never escape: the caller always gets a ``FallbackResult``.
"""

from __future__ import annotations

from collections.abc import Sized
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from stock_analyst.core.exceptions import ErrorCode, ProviderError
from stock_analyst.orchestration.types import (
    FailureReason,
    FallbackResult,
    Fetcher,
    Outcome,
    Stage,
    T,
)

WARNING_PRIMARY_ERROR = "Used fallback provider due to primary provider error."
WARNING_PRIMARY_NO_DATA = "Used fallback provider because primary returned no data."

_TRANSITIONS = {
    (Stage.PRIMARY, Outcome.DATA): Stage.DONE,
    (Stage.PRIMARY, Outcome.NO_DATA): Stage.FALLBACK,
    (Stage.PRIMARY, Outcome.ERROR): Stage.FALLBACK,
    (Stage.PRIMARY, Outcome.SKIPPED): Stage.FALLBACK,
    (Stage.FALLBACK, Outcome.DATA): Stage.DONE,
    (Stage.FALLBACK, Outcome.NO_DATA): Stage.FAILED,
    (Stage.FALLBACK, Outcome.ERROR): Stage.FAILED,
    (Stage.FALLBACK, Outcome.SKIPPED): Stage.FAILED,
}


def next_stage(stage: Stage, outcome: Outcome) -> Stage:
    try:
        return _TRANSITIONS[(stage, outcome)]
    except KeyError as exc:
        raise ValueError(f"no transition from {stage.value} on {outcome.value}") from exc


def has_data(data: object) -> bool:
    """None and empty sequences both count as "no data"."""
    if data is None:
        return False
    if isinstance(data, Sized) and not isinstance(data, (str, bytes)):
        return len(data) > 0
    return True


def failure_reason(errors: Iterable[ProviderError], no_data: bool) -> FailureReason:
    """Pick the message class: RATE_LIMIT > AUTH > NOT_FOUND/no-data > generic."""
    codes = {error.code for error in errors}
    if ErrorCode.RATE_LIMIT in codes:
        return FailureReason.RATE_LIMIT
    if ErrorCode.AUTH in codes:
        return FailureReason.AUTH
    if ErrorCode.NOT_FOUND in codes or no_data:
        return FailureReason.NOT_FOUND
    return FailureReason.GENERIC


def user_error_message(tool_name: str, reason: FailureReason) -> str:
    if reason is FailureReason.RATE_LIMIT:
        return (
            f"{tool_name} failed: provider rate limit reached. "
            "Try again shortly or add higher-tier API keys."
        )
    if reason is FailureReason.AUTH:
        return (
            f"{tool_name} failed: missing or invalid API key. "
            "Check FINNHUB_API_KEY and ALPHAVANTAGE_API_KEY."
        )
    if reason is FailureReason.NOT_FOUND:
        return (
            f"{tool_name} failed: symbol may be unsupported or unavailable "
            "for this request window."
        )
    return f"{tool_name} failed due to provider/network errors. Try again in a moment."


async def _run_stage(
    tool_name: str,
    stage: Stage,
    source: str,
    fetcher: Optional[Fetcher[T]],
) -> Tuple[Outcome, Optional[T], Optional[ProviderError]]:
    if fetcher is None:
        return Outcome.SKIPPED, None, None
    try:
        data = await fetcher()
    except ProviderError as exc:
        logger.warning(
            "[fallback] tool={} stage={} source={} code={} status={} message={}",
            tool_name,
            stage.value,
            source,
            exc.code.value,
            exc.status,
            exc.message,
        )
        return Outcome.ERROR, None, exc
    except Exception as exc:
        logger.exception(
            "[fallback] tool={} stage={} source={} unexpected error", tool_name, stage.value, source
        )
        return Outcome.ERROR, None, ProviderError(source, ErrorCode.UPSTREAM, str(exc) or repr(exc))
    if not has_data(data):
        logger.info("[fallback] tool={} stage={} source={} no data", tool_name, stage.value, source)
        return Outcome.NO_DATA, None, None
    return Outcome.DATA, data, None


async def execute_with_fallback(
    tool_name: str,
    primary: Optional[Fetcher[T]] = None,
    fallback: Optional[Fetcher[T]] = None,
    *,
    primary_source: str = "primary",
    fallback_source: str = "fallback",
) -> FallbackResult[T]:
    """Try ``primary``, then ``fallback``; never raises.

    The fallback runs only after the primary definitively failed or came back
    empty. On success through the fallback the result carries a warning
    saying why the primary was skipped over.
    """
    errors: List[ProviderError] = []
    primary_no_data = False
    stage = Stage.PRIMARY

    while stage in (Stage.PRIMARY, Stage.FALLBACK):
        is_primary = stage is Stage.PRIMARY
        source = primary_source if is_primary else fallback_source
        fetcher = primary if is_primary else fallback
        outcome, data, error = await _run_stage(tool_name, stage, source, fetcher)

        if outcome is Outcome.DATA:
            if is_primary:
                return FallbackResult(data=data, source=source)
            if errors:
                warning = WARNING_PRIMARY_ERROR
            elif primary_no_data:
                warning = WARNING_PRIMARY_NO_DATA
            else:
                warning = None
            logger.info(
                "[fallback] tool={} served by {} after primary miss", tool_name, source
            )
            return FallbackResult(
                data=data,
                source=source,
                warning=warning,
                errors=errors,
                primary_no_data=primary_no_data,
            )
        if outcome is Outcome.NO_DATA and is_primary:
            primary_no_data = True
        if error is not None:
            errors.append(error)
        stage = next_stage(stage, outcome)

    reason = failure_reason(errors, primary_no_data)
    message = user_error_message(tool_name, reason)
    logger.warning("[fallback] tool={} exhausted reason={}", tool_name, reason.value)
    return FallbackResult(
        error=message,
        errors=errors,
        primary_no_data=primary_no_data,
    )


__all__ = [
    "WARNING_PRIMARY_ERROR",
    "WARNING_PRIMARY_NO_DATA",
    "execute_with_fallback",
    "failure_reason",
    "has_data",
    "next_stage",
    "user_error_message",
]
