from __future__ import annotations

import json
import re
import time
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from stock_analyst.core.exceptions import ErrorCode, ProviderError, code_for_status
from stock_analyst.settings import get_market_data_settings

_SECRET_PARAMS = re.compile(r"((?:token|apikey)=)[^&]+", re.IGNORECASE)

# ------------------------------------------------------------------------------
# Header helpers
# ------------------------------------------------------------------------------


def _ensure_ua(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    merged = {
        "Accept": "application/json",
        "User-Agent": get_market_data_settings().http_user_agent,
    }
    if headers:
        merged.update(headers)
    return merged


def redact_url(url: str) -> str:
    """Strip credential query params before a URL reaches the logs."""
    return _SECRET_PARAMS.sub(r"\1***", url)


def _log_http_event(
    *,
    level: str,
    provider: str,
    url: str,
    status: int,
    start_time: float,
    note: str = "",
) -> None:
    latency_ms = round((time.perf_counter() - start_time) * 1000.0, 1)
    logger.log(
        level,
        "[http] provider={} method=GET url={} status={} latency_ms={:.1f} {}",
        provider,
        redact_url(url),
        status,
        latency_ms,
        note,
    )


# ------------------------------------------------------------------------------
# Core HTTP (JSON), single attempt, bounded by timeout
# ------------------------------------------------------------------------------


async def fetch_json(
    url: str,
    *,
    provider: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    """GET `url` and return the decoded JSON body.

    - One attempt only; there is no retry loop.
    - A timeout cancels the in-flight request and raises NETWORK.
    - A body that is not JSON raises BAD_RESPONSE, even on non-2xx.
    - A non-2xx status raises AUTH / NOT_FOUND / RATE_LIMIT / UPSTREAM.
    - An empty 2xx body decodes to an empty dict.
    """
    timeout = timeout if timeout is not None else get_market_data_settings().http_timeout
    query = {k: v for k, v in (params or {}).items() if v is not None}

    start_time = time.perf_counter()
    try:
        async with httpx.AsyncClient(
            timeout=timeout, transport=transport, headers=_ensure_ua(headers)
        ) as client:
            resp = await client.get(url, params=query)
    except httpx.TimeoutException as exc:
        _log_http_event(
            level="WARNING",
            provider=provider,
            url=url,
            status=599,
            start_time=start_time,
            note="timeout",
        )
        raise ProviderError(
            provider,
            ErrorCode.NETWORK,
            f"Provider request timed out after {timeout:g}s.",
        ) from exc
    except httpx.HTTPError as exc:
        _log_http_event(
            level="WARNING",
            provider=provider,
            url=url,
            status=599,
            start_time=start_time,
            note=f"error={exc.__class__.__name__}",
        )
        raise ProviderError(
            provider, ErrorCode.NETWORK, f"Provider request failed: {exc}"
        ) from exc

    request_url = str(resp.request.url)
    raw = resp.text
    payload: Any = {}
    if raw.strip():
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            _log_http_event(
                level="WARNING",
                provider=provider,
                url=request_url,
                status=resp.status_code,
                start_time=start_time,
                note="non-json",
            )
            logger.debug("Non-JSON response for {}: {}", redact_url(request_url), raw[:400])
            raise ProviderError(
                provider,
                ErrorCode.BAD_RESPONSE,
                "Provider returned non-JSON content.",
                resp.status_code,
            ) from exc

    if not resp.is_success:
        _log_http_event(
            level="WARNING",
            provider=provider,
            url=request_url,
            status=resp.status_code,
            start_time=start_time,
            note="non-2xx",
        )
        raise ProviderError(
            provider,
            code_for_status(resp.status_code),
            f"Provider request failed with status {resp.status_code}.",
            resp.status_code,
        )

    _log_http_event(
        level="INFO",
        provider=provider,
        url=request_url,
        status=resp.status_code,
        start_time=start_time,
        note="ok",
    )
    return payload


__all__ = ["fetch_json", "redact_url"]
