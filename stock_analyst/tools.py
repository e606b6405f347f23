"""Tool facade: validated arguments in, plain-text responses out.

A transport (MCP server, HTTP route, CLI) registers these coroutines and
forwards raw argument dictionaries; it never talks to providers directly.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from stock_analyst.dal.schemas import Interval
from stock_analyst.logging_utils import logging_context, setup_logging
from stock_analyst.services.market_data import MarketDataService
from stock_analyst.utils.formatting import (
    format_candles,
    format_macd_summary,
    format_news,
    format_response,
    format_rsi_summary,
    line_date,
    line_money,
    line_number,
    line_percent,
    line_text,
)

_SYMBOL_RE = re.compile(r"^[A-Z][A-Z0-9.\-]{0,9}$")
_DATE_RE = r"^\d{4}-\d{2}-\d{2}$"
MAX_RANGE_SECONDS = 60 * 60 * 24 * 365 * 5


@dataclass(frozen=True, slots=True)
class ToolResponse:
    text: str
    is_error: bool = False


class SymbolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    symbol: str = Field(min_length=1, max_length=10, description="Ticker symbol, e.g. AAPL, MSFT, TSLA.")

    @field_validator("symbol", mode="after")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not _SYMBOL_RE.match(value):
            raise ValueError("Symbol must be 1-10 chars: A-Z, 0-9, dot, hyphen.")
        return value


class RangeArgs(SymbolArgs):
    interval: Interval = Field(description="One of 1,5,15,30,60,D,W,M")
    start: int = Field(alias="from", gt=0, description="Unix seconds start time.")
    end: int = Field(alias="to", gt=0, description="Unix seconds end time.")

    @model_validator(mode="after")
    def _check_window(self) -> "RangeArgs":
        if self.start >= self.end:
            raise ValueError("`from` must be less than `to`.")
        if self.end - self.start > MAX_RANGE_SECONDS:
            raise ValueError("Date window is too large. Maximum range is 5 years.")
        return self


class CandlesArgs(RangeArgs):
    limit: int = Field(default=20, ge=1, le=200)


class NewsArgs(SymbolArgs):
    from_date: str = Field(alias="from", pattern=_DATE_RE)
    to_date: str = Field(alias="to", pattern=_DATE_RE)
    limit: int = Field(default=10, ge=1, le=50)

    @model_validator(mode="after")
    def _check_dates(self) -> "NewsArgs":
        if self.from_date > self.to_date:
            raise ValueError("`from` must be before or equal to `to`.")
        return self


class RsiArgs(RangeArgs):
    period: int = Field(default=14, ge=2, le=100)


class MacdArgs(RangeArgs):
    fast_period: int = Field(default=12, ge=2, le=50, alias="fastPeriod")
    slow_period: int = Field(default=26, ge=3, le=100, alias="slowPeriod")
    signal_period: int = Field(default=9, ge=2, le=50, alias="signalPeriod")

    @model_validator(mode="after")
    def _check_periods(self) -> "MacdArgs":
        if self.fast_period >= self.slow_period:
            raise ValueError("fastPeriod must be smaller than slowPeriod.")
        return self


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Validation failed: " + "; ".join(parts)


def _error(text: Optional[str], default: str = "No data") -> ToolResponse:
    return ToolResponse(text=text or default, is_error=True)


class StockAnalystTools:
    """Stock market tools backed by a ``MarketDataService``."""

    def __init__(self, service: Optional[MarketDataService] = None) -> None:
        setup_logging()
        self.service = service or MarketDataService.from_settings()

    async def call(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResponse:
        """Dispatch a tool by name; unknown names and bad arguments become error responses."""
        handler: Optional[Callable[..., Awaitable[ToolResponse]]] = (
            getattr(self, name, None) if name in TOOL_NAMES else None
        )
        if handler is None:
            return _error(f"Unknown tool: {name}")
        with logging_context(tool=name, call_id=uuid.uuid4().hex[:12]):
            response = await handler(**(arguments or {}))
            if response.is_error:
                logger.info("tool call failed: {}", response.text)
            return response

    async def get_stock_price(self, **arguments: Any) -> ToolResponse:
        try:
            args = SymbolArgs.model_validate(arguments)
        except ValidationError as exc:
            return _error(_validation_message(exc))

        result = await self.service.get_quote(args.symbol, tool_name="get_stock_price")
        if result.data is None:
            return _error(result.error)
        quote = result.data
        return ToolResponse(
            format_response(
                f"Latest price for {args.symbol}",
                [
                    line_money("Price", quote.price),
                    line_money("Change", quote.change),
                    line_percent("Change %", quote.percent_change),
                    line_date("Timestamp", quote.timestamp),
                ],
                source=result.source,
                warning=result.warning,
            )
        )

    async def get_quote(self, **arguments: Any) -> ToolResponse:
        try:
            args = SymbolArgs.model_validate(arguments)
        except ValidationError as exc:
            return _error(_validation_message(exc))

        result = await self.service.get_quote(args.symbol)
        if result.data is None:
            return _error(result.error)
        quote = result.data
        return ToolResponse(
            format_response(
                f"Quote for {args.symbol}",
                [
                    line_money("Price", quote.price),
                    line_money("Open", quote.open),
                    line_money("High", quote.high),
                    line_money("Low", quote.low),
                    line_money("Previous Close", quote.previous_close),
                    line_money("Change", quote.change),
                    line_percent("Change %", quote.percent_change),
                    line_date("Timestamp", quote.timestamp),
                ],
                source=result.source,
                warning=result.warning,
            )
        )

    async def get_company_profile(self, **arguments: Any) -> ToolResponse:
        try:
            args = SymbolArgs.model_validate(arguments)
        except ValidationError as exc:
            return _error(_validation_message(exc))

        result = await self.service.get_company_profile(args.symbol)
        if result.data is None:
            return _error(result.error)
        profile = result.data
        return ToolResponse(
            format_response(
                f"Company profile for {args.symbol}",
                [
                    line_text("Name", profile.name),
                    line_text("Exchange", profile.exchange),
                    line_text("Industry", profile.industry),
                    line_text("Country", profile.country),
                    line_text("Currency", profile.currency),
                    line_text("IPO", profile.ipo),
                    line_money("Market Cap (M)", profile.market_capitalization),
                    line_text("Website", profile.website),
                ],
                source=result.source,
                warning=result.warning,
            )
        )

    async def get_candles(self, **arguments: Any) -> ToolResponse:
        try:
            args = CandlesArgs.model_validate(arguments)
        except ValidationError as exc:
            return _error(_validation_message(exc))

        result = await self.service.get_candles(args.symbol, args.interval, args.start, args.end)
        if not result.data:
            return _error(result.error, "No candles returned for this range.")
        return ToolResponse(
            format_response(
                f"Candles for {args.symbol} ({args.interval.value})",
                [f"Returned candles: {len(result.data)}", *format_candles(result.data, args.limit)],
                source=result.source,
                warning=result.warning,
            )
        )

    async def get_stock_news(self, **arguments: Any) -> ToolResponse:
        try:
            args = NewsArgs.model_validate(arguments)
        except ValidationError as exc:
            return _error(_validation_message(exc))

        result = await self.service.get_news(args.symbol, args.from_date, args.to_date, args.limit)
        if not result.data:
            return _error(result.error, "No news found.")
        return ToolResponse(
            format_response(
                f"Stock news for {args.symbol}",
                format_news(result.data),
                source=result.source,
                warning=result.warning,
            )
        )

    async def get_rsi(self, **arguments: Any) -> ToolResponse:
        try:
            args = RsiArgs.model_validate(arguments)
        except ValidationError as exc:
            return _error(_validation_message(exc))

        result = await self.service.get_rsi(
            args.symbol, args.interval, args.start, args.end, args.period
        )
        if not result.data:
            return _error(result.error, "Could not compute RSI.")
        return ToolResponse(
            format_response(
                f"RSI for {args.symbol}",
                format_rsi_summary(result.data),
                source=result.source,
                warning=result.warning,
            )
        )

    async def get_macd(self, **arguments: Any) -> ToolResponse:
        try:
            args = MacdArgs.model_validate(arguments)
        except ValidationError as exc:
            return _error(_validation_message(exc))

        result = await self.service.get_macd(
            args.symbol,
            args.interval,
            args.start,
            args.end,
            args.fast_period,
            args.slow_period,
            args.signal_period,
        )
        if not result.data:
            return _error(result.error, "Could not compute MACD.")
        return ToolResponse(
            format_response(
                f"MACD for {args.symbol}",
                format_macd_summary(result.data),
                source=result.source,
                warning=result.warning,
            )
        )

    async def get_key_financials(self, **arguments: Any) -> ToolResponse:
        try:
            args = SymbolArgs.model_validate(arguments)
        except ValidationError as exc:
            return _error(_validation_message(exc))

        result = await self.service.get_key_financials(args.symbol)
        if result.data is None:
            return _error(result.error)
        metrics = result.data
        return ToolResponse(
            format_response(
                f"Key financials for {args.symbol}",
                [
                    line_number("P/E", metrics.pe_ratio),
                    line_number("EPS", metrics.eps),
                    line_number("Book Value", metrics.book_value),
                    line_percent("Dividend Yield", metrics.dividend_yield),
                    line_money("52W High", metrics.week52_high),
                    line_money("52W Low", metrics.week52_low),
                    line_money("Market Cap", metrics.market_capitalization),
                    line_number("Beta", metrics.beta),
                ],
                source=result.source,
                warning=result.warning,
            )
        )


TOOL_NAMES = (
    "get_stock_price",
    "get_quote",
    "get_company_profile",
    "get_candles",
    "get_stock_news",
    "get_rsi",
    "get_macd",
    "get_key_financials",
)

__all__ = [
    "TOOL_NAMES",
    "StockAnalystTools",
    "ToolResponse",
    "SymbolArgs",
    "CandlesArgs",
    "NewsArgs",
    "RsiArgs",
    "MacdArgs",
]
