from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from stock_analyst.core.exceptions import ErrorCode, ProviderError
from stock_analyst.dal.schemas import (
    Candle,
    CompanyProfile,
    Interval,
    KeyFinancials,
    MacdPoint,
    NewsItem,
    ProviderName,
    Quote,
    RsiPoint,
    sort_and_window,
)
from stock_analyst.dal.vendors.base import VendorClient, to_float
from stock_analyst.settings import get_market_data_settings
from stock_analyst.utils.http import fetch_json

_INTERVAL_MAP = {
    Interval.MIN_1: "1min",
    Interval.MIN_5: "5min",
    Interval.MIN_15: "15min",
    Interval.MIN_30: "30min",
    Interval.MIN_60: "60min",
    Interval.DAY: "daily",
    Interval.WEEK: "weekly",
    Interval.MONTH: "monthly",
}

_SERIES_FUNCTIONS = {
    Interval.DAY: ("TIME_SERIES_DAILY", "Time Series (Daily)"),
    Interval.WEEK: ("TIME_SERIES_WEEKLY", "Weekly Time Series"),
    Interval.MONTH: ("TIME_SERIES_MONTHLY", "Monthly Time Series"),
}

_ERROR_KEYS = ("Note", "Error Message", "Information")


def classify_alphavantage_error(payload: Dict[str, Any]) -> ProviderError:
    """Turn an error body (Note / Error Message / Information) into a ProviderError."""
    note = payload.get("Note") if isinstance(payload.get("Note"), str) else None
    error_message = (
        payload.get("Error Message") if isinstance(payload.get("Error Message"), str) else None
    )
    information = (
        payload.get("Information") if isinstance(payload.get("Information"), str) else None
    )
    text = note or error_message or information or "Alpha Vantage returned an error."
    lowered = text.lower()
    provider = ProviderName.ALPHAVANTAGE.value

    if (note and "frequency" in note.lower()) or "rate limit" in lowered:
        return ProviderError(provider, ErrorCode.RATE_LIMIT, text)
    if "api key" in lowered or "apikey" in lowered:
        return ProviderError(provider, ErrorCode.AUTH, text)
    if "invalid api call" in lowered:
        return ProviderError(provider, ErrorCode.UPSTREAM, text)
    if error_message:
        return ProviderError(provider, ErrorCode.NOT_FOUND, text)
    return ProviderError(provider, ErrorCode.UPSTREAM, text)


def parse_timestamp(raw: str) -> Optional[int]:
    """Epoch seconds for Alpha Vantage keys ("2024-01-03", "2024-01-03 16:00:00"), read as UTC."""
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def parse_published(raw: Any) -> Optional[int]:
    """Epoch seconds for NEWS_SENTIMENT ``time_published`` ("20240103T153000")."""
    if not isinstance(raw, str) or not raw:
        return None
    for fmt in ("%Y%m%dT%H%M%S", "%Y%m%dT%H%M"):
        try:
            parsed = datetime.strptime(raw, fmt)
        except ValueError:
            continue
        return int(parsed.replace(tzinfo=timezone.utc).timestamp())
    return parse_timestamp(raw)


def _news_bound(date_str: str, *, end_of_day: bool) -> Optional[str]:
    try:
        day = datetime.strptime(date_str, "%Y-%m-%d")
    except (TypeError, ValueError):
        return None
    return day.strftime("%Y%m%dT2359" if end_of_day else "%Y%m%dT0000")


def _parse_series_entry(ts_str: str, values: Dict[str, Any]) -> Optional[Candle]:
    timestamp = parse_timestamp(ts_str)
    if timestamp is None or not isinstance(values, dict):
        return None
    open_ = to_float(values.get("1. open"))
    high = to_float(values.get("2. high"))
    low = to_float(values.get("3. low"))
    close = to_float(values.get("4. close"))
    if open_ is None or high is None or low is None or close is None:
        return None
    volume = to_float(values.get("5. volume"))
    if volume is None:
        volume = to_float(values.get("6. volume"))
    return Candle(
        timestamp=timestamp,
        open=open_,
        high=high,
        low=low,
        close=close,
        volume=volume or 0.0,
    )


def _keyed_entries(
    payload: Dict[str, Any], key: str
) -> Optional[Iterable[Tuple[str, Dict[str, Any]]]]:
    section = payload.get(key)
    if not isinstance(section, dict):
        return None
    return ((ts, values) for ts, values in section.items() if isinstance(values, dict))


class AlphaVantageVendor(VendorClient):
    """Alpha Vantage query API normalized onto the shared schema."""

    name = ProviderName.ALPHAVANTAGE

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_market_data_settings()
        self.api_key = api_key or settings.alphavantage_key
        self.base_url = base_url or settings.alphavantage_base_url
        self.timeout = timeout if timeout is not None else settings.http_timeout
        if not self.api_key:
            logger.warning("AlphaVantage API key not configured; fetches will fail")

    async def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise ProviderError(self.name.value, ErrorCode.AUTH, "AlphaVantage API key missing")

        query = dict(params)
        query["apikey"] = self.api_key
        payload = await fetch_json(
            self.base_url,
            provider=self.name.value,
            params=query,
            timeout=self.timeout,
        )
        if not isinstance(payload, dict):
            return {}
        if any(payload.get(key) for key in _ERROR_KEYS):
            error = classify_alphavantage_error(payload)
            logger.warning(
                "alphavantage reported error function={} code={} message={}",
                params.get("function"),
                error.code.value,
                error.message,
            )
            raise error
        return payload

    async def get_quote(self, symbol: str) -> Optional[Quote]:
        data = await self._request({"function": "GLOBAL_QUOTE", "symbol": symbol})
        quote = data.get("Global Quote")
        if not isinstance(quote, dict):
            return None
        price = to_float(quote.get("05. price"))
        if price is None or price <= 0:
            return None

        def _or_price(key: str) -> float:
            value = to_float(quote.get(key))
            return price if value is None else value

        change_pct = str(quote.get("10. change percent") or "0").replace("%", "")
        return Quote(
            symbol=symbol,
            price=price,
            change=to_float(quote.get("09. change")) or 0.0,
            percent_change=to_float(change_pct) or 0.0,
            high=_or_price("03. high"),
            low=_or_price("04. low"),
            open=_or_price("02. open"),
            previous_close=_or_price("08. previous close"),
            source=self.name,
        )

    async def _overview(self, symbol: str) -> Optional[Dict[str, Any]]:
        data = await self._request({"function": "OVERVIEW", "symbol": symbol})
        return data if data.get("Symbol") else None

    async def get_company_profile(self, symbol: str) -> Optional[CompanyProfile]:
        data = await self._overview(symbol)
        if data is None:
            return None
        return CompanyProfile(
            symbol=symbol,
            name=data.get("Name"),
            exchange=data.get("Exchange"),
            currency=data.get("Currency"),
            country=data.get("Country"),
            industry=data.get("Industry"),
            ipo=data.get("LatestQuarter"),
            market_capitalization=to_float(data.get("MarketCapitalization")),
            website=data.get("OfficialSite"),
            source=self.name,
        )

    async def get_candles(
        self, symbol: str, interval: Interval, start: int, end: int
    ) -> Optional[List[Candle]]:
        interval = Interval.parse(interval)
        params: Dict[str, Any] = {"symbol": symbol, "outputsize": "full"}
        if interval.is_intraday:
            av_interval = _INTERVAL_MAP[interval]
            params["function"] = "TIME_SERIES_INTRADAY"
            params["interval"] = av_interval
            series_key = f"Time Series ({av_interval})"
        else:
            params["function"], series_key = _SERIES_FUNCTIONS[interval]

        data = await self._request(params)
        entries = _keyed_entries(data, series_key)
        if entries is None:
            return None
        candles = (_parse_series_entry(ts, values) for ts, values in entries)
        return sort_and_window((c for c in candles if c is not None), start, end)

    async def get_news(
        self, symbol: str, from_date: str, to_date: str, limit: int
    ) -> Optional[List[NewsItem]]:
        data = await self._request(
            {
                "function": "NEWS_SENTIMENT",
                "tickers": symbol,
                "limit": limit,
                "sort": "LATEST",
                "time_from": _news_bound(from_date, end_of_day=False),
                "time_to": _news_bound(to_date, end_of_day=True),
            }
        )
        feed = data.get("feed")
        if not isinstance(feed, list) or not feed:
            return None
        news = [
            NewsItem(
                headline=item.get("title") or "Untitled",
                summary=item.get("summary") or None,
                url=item.get("url") or None,
                source=item.get("source") or None,
                datetime=parse_published(item.get("time_published")),
            )
            for item in feed
            if isinstance(item, dict)
        ][: max(limit, 0)]
        return news or None

    async def get_rsi(
        self, symbol: str, interval: Interval, start: int, end: int, period: int
    ) -> Optional[List[RsiPoint]]:
        data = await self._request(
            {
                "function": "RSI",
                "symbol": symbol,
                "interval": _INTERVAL_MAP[Interval.parse(interval)],
                "time_period": period,
                "series_type": "close",
            }
        )
        entries = _keyed_entries(data, "Technical Analysis: RSI")
        if entries is None:
            return None
        points = []
        for ts_str, values in entries:
            timestamp = parse_timestamp(ts_str)
            value = to_float(values.get("RSI"))
            if timestamp is None or value is None:
                continue
            points.append(RsiPoint(timestamp=timestamp, value=value))
        return sort_and_window(points, start, end)

    async def get_macd(
        self,
        symbol: str,
        interval: Interval,
        start: int,
        end: int,
        fast_period: int,
        slow_period: int,
        signal_period: int,
    ) -> Optional[List[MacdPoint]]:
        data = await self._request(
            {
                "function": "MACD",
                "symbol": symbol,
                "interval": _INTERVAL_MAP[Interval.parse(interval)],
                "series_type": "close",
                "fastperiod": fast_period,
                "slowperiod": slow_period,
                "signalperiod": signal_period,
            }
        )
        entries = _keyed_entries(data, "Technical Analysis: MACD")
        if entries is None:
            return None
        points = []
        for ts_str, values in entries:
            timestamp = parse_timestamp(ts_str)
            macd = to_float(values.get("MACD"))
            signal = to_float(values.get("MACD_Signal"))
            if timestamp is None or macd is None or signal is None:
                continue
            histogram = to_float(values.get("MACD_Hist"))
            points.append(
                MacdPoint(
                    timestamp=timestamp,
                    macd=macd,
                    signal=signal,
                    histogram=macd - signal if histogram is None else histogram,
                )
            )
        return sort_and_window(points, start, end)

    async def get_key_financials(self, symbol: str) -> Optional[KeyFinancials]:
        data = await self._overview(symbol)
        if data is None:
            return None
        return KeyFinancials(
            symbol=symbol,
            pe_ratio=to_float(data.get("PERatio")),
            eps=to_float(data.get("EPS")),
            book_value=to_float(data.get("BookValue")),
            dividend_yield=to_float(data.get("DividendYield")),
            week52_high=to_float(data.get("52WeekHigh")),
            week52_low=to_float(data.get("52WeekLow")),
            market_capitalization=to_float(data.get("MarketCapitalization")),
            beta=to_float(data.get("Beta")),
            source=self.name,
        )


__all__ = [
    "AlphaVantageVendor",
    "classify_alphavantage_error",
    "parse_published",
    "parse_timestamp",
]
