# stock_analyst/utils/formatting.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from stock_analyst.dal.schemas import Candle, MacdPoint, NewsItem, RsiPoint

FINANCIAL_DISCLAIMER = "Informational use only. This is not financial advice."
NOT_AVAILABLE = "n/a"


def fmt_number(x: Optional[float], decimals: int = 2) -> str:
    if x is None:
        return NOT_AVAILABLE
    try:
        return f"{float(x):.{decimals}f}"
    except (TypeError, ValueError):
        return NOT_AVAILABLE


def fmt_money(x: Optional[float]) -> str:
    value = fmt_number(x)
    return value if value == NOT_AVAILABLE else f"${value}"


def fmt_percent(x: Optional[float]) -> str:
    value = fmt_number(x)
    return value if value == NOT_AVAILABLE else f"{value}%"


def fmt_unix(ts: Optional[int]) -> str:
    if not ts:
        return NOT_AVAILABLE
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def line_money(label: str, value: Optional[float]) -> str:
    return f"{label}: {fmt_money(value)}"


def line_number(label: str, value: Optional[float], decimals: int = 2) -> str:
    return f"{label}: {fmt_number(value, decimals)}"


def line_percent(label: str, value: Optional[float]) -> str:
    return f"{label}: {fmt_percent(value)}"


def line_date(label: str, timestamp: Optional[int]) -> str:
    return f"{label}: {fmt_unix(timestamp)}"


def line_text(label: str, value: Optional[str]) -> str:
    return f"{label}: {value or NOT_AVAILABLE}"


def format_response(
    title: str,
    lines: Sequence[str],
    *,
    source: Optional[str] = None,
    warning: Optional[str] = None,
    include_disclaimer: bool = True,
) -> str:
    chunks: List[str] = [title]
    if source:
        chunks.append(f"Source: {source}")
    if warning:
        chunks.append(f"Warning: {warning}")
    chunks.extend(lines)
    if include_disclaimer:
        chunks.extend(["---", FINANCIAL_DISCLAIMER])
    return "\n".join(chunks)


def format_candles(candles: Sequence[Candle], limit: int) -> List[str]:
    """Most recent ``limit`` candles, one line each."""
    selected = list(candles)[-limit:] if limit > 0 else []
    return [
        f"{fmt_unix(c.timestamp)} | O {c.open:.2f} | H {c.high:.2f} | "
        f"L {c.low:.2f} | C {c.close:.2f} | V {round(c.volume)}"
        for c in selected
    ]


def format_news(items: Sequence[NewsItem]) -> List[str]:
    lines = []
    for idx, item in enumerate(items, start=1):
        date = fmt_unix(item.datetime) if item.datetime else "unknown-date"
        source = item.source or "unknown-source"
        link = f" ({item.url})" if item.url else ""
        lines.append(f"{idx}. [{date}] {item.headline} - {source}{link}")
    return lines


def rsi_zone(value: float) -> str:
    if value >= 70:
        return "overbought"
    if value <= 30:
        return "oversold"
    return "neutral"


def format_rsi_summary(points: Sequence[RsiPoint]) -> List[str]:
    if not points:
        return ["No RSI datapoint returned."]
    point = points[-1]
    return [
        line_number("Latest RSI", point.value, 2),
        f"Signal zone: {rsi_zone(point.value)}",
        line_date("Timestamp", point.timestamp),
    ]


def macd_momentum(histogram: float) -> str:
    if histogram > 0:
        return "bullish"
    if histogram < 0:
        return "bearish"
    return "neutral"


def format_macd_summary(points: Sequence[MacdPoint]) -> List[str]:
    if not points:
        return ["No MACD datapoint returned."]
    point = points[-1]
    return [
        line_number("MACD", point.macd, 4),
        line_number("Signal", point.signal, 4),
        line_number("Histogram", point.histogram, 4),
        f"Momentum: {macd_momentum(point.histogram)}",
        line_date("Timestamp", point.timestamp),
    ]


__all__ = [
    "FINANCIAL_DISCLAIMER",
    "fmt_money",
    "fmt_number",
    "fmt_percent",
    "fmt_unix",
    "format_candles",
    "format_macd_summary",
    "format_news",
    "format_response",
    "format_rsi_summary",
    "line_date",
    "line_money",
    "line_number",
    "line_percent",
    "line_text",
]
