from __future__ import annotations

from typing import Any, Dict, List, Optional

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

_RESOLUTION_MAP = {
    Interval.MIN_1: "1",
    Interval.MIN_5: "5",
    Interval.MIN_15: "15",
    Interval.MIN_30: "30",
    Interval.MIN_60: "60",
    Interval.DAY: "D",
    Interval.WEEK: "W",
    Interval.MONTH: "M",
}


def classify_finnhub_error(text: str) -> ErrorCode:
    lowered = text.lower()
    if "limit" in lowered:
        return ErrorCode.RATE_LIMIT
    if "token" in lowered or "auth" in lowered:
        return ErrorCode.AUTH
    return ErrorCode.UPSTREAM


def _series(payload: Dict[str, Any], key: str) -> List[Any]:
    values = payload.get(key)
    return values if isinstance(values, list) else []


def _at(values: List[Any], index: int) -> Optional[float]:
    return to_float(values[index]) if index < len(values) else None


class FinnhubVendor(VendorClient):
    """Finnhub REST client normalized onto the shared schema."""

    name = ProviderName.FINNHUB

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_market_data_settings()
        self.api_key = api_key or settings.finnhub_key
        self.base_url = (base_url or settings.finnhub_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout
        if not self.api_key:
            logger.warning("Finnhub API key not configured; fetches will fail")

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Any:
        if not self.api_key:
            raise ProviderError(self.name.value, ErrorCode.AUTH, "Finnhub API key missing")

        query = dict(params)
        query["token"] = self.api_key
        payload = await fetch_json(
            f"{self.base_url}{endpoint}",
            provider=self.name.value,
            params=query,
            timeout=self.timeout,
        )
        if isinstance(payload, dict) and payload.get("error"):
            text = str(payload["error"])
            code = classify_finnhub_error(text)
            logger.warning(
                "finnhub reported error endpoint={} code={} message={}",
                endpoint,
                code.value,
                text,
            )
            raise ProviderError(self.name.value, code, text)
        return payload

    async def _request_object(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        payload = await self._request(endpoint, params)
        return payload if isinstance(payload, dict) else {}

    async def get_quote(self, symbol: str) -> Optional[Quote]:
        data = await self._request_object("/quote", {"symbol": symbol})
        price = to_float(data.get("c"))
        if price is None or price <= 0:
            return None

        def _or_price(key: str) -> float:
            value = to_float(data.get(key))
            return price if value is None else value

        ts = to_float(data.get("t"))
        return Quote(
            symbol=symbol,
            price=price,
            change=to_float(data.get("d")) or 0.0,
            percent_change=to_float(data.get("dp")) or 0.0,
            high=_or_price("h"),
            low=_or_price("l"),
            open=_or_price("o"),
            previous_close=_or_price("pc"),
            timestamp=int(ts) if ts else None,
            source=self.name,
        )

    async def get_company_profile(self, symbol: str) -> Optional[CompanyProfile]:
        data = await self._request_object("/stock/profile2", {"symbol": symbol})
        if not data.get("ticker"):
            return None
        return CompanyProfile(
            symbol=symbol,
            name=data.get("name"),
            exchange=data.get("exchange"),
            currency=data.get("currency"),
            country=data.get("country"),
            industry=data.get("finnhubIndustry"),
            ipo=data.get("ipo"),
            market_capitalization=to_float(data.get("marketCapitalization")),
            website=data.get("weburl"),
            logo=data.get("logo"),
            source=self.name,
        )

    async def get_candles(
        self, symbol: str, interval: Interval, start: int, end: int
    ) -> Optional[List[Candle]]:
        data = await self._request_object(
            "/stock/candle",
            {
                "symbol": symbol,
                "resolution": _RESOLUTION_MAP[Interval.parse(interval)],
                "from": start,
                "to": end,
            },
        )
        timestamps = _series(data, "t")
        if data.get("s") != "ok" or not timestamps:
            return None

        opens, highs, lows = _series(data, "o"), _series(data, "h"), _series(data, "l")
        closes, volumes = _series(data, "c"), _series(data, "v")
        candles = [
            Candle(
                timestamp=int(float(ts)),
                open=_at(opens, idx) or 0.0,
                high=_at(highs, idx) or 0.0,
                low=_at(lows, idx) or 0.0,
                close=_at(closes, idx) or 0.0,
                volume=_at(volumes, idx) or 0.0,
            )
            for idx, ts in enumerate(timestamps)
            if to_float(ts) is not None
        ]
        return sort_and_window(candles) or None

    async def get_news(
        self, symbol: str, from_date: str, to_date: str, limit: int
    ) -> Optional[List[NewsItem]]:
        data = await self._request(
            "/company-news", {"symbol": symbol, "from": from_date, "to": to_date}
        )
        items = [
            item for item in (data if isinstance(data, list) else [])
            if isinstance(item, dict) and item.get("headline")
        ][: max(limit, 0)]
        if not items:
            return None

        news: List[NewsItem] = []
        for item in items:
            published = to_float(item.get("datetime"))
            news.append(
                NewsItem(
                    headline=item.get("headline") or "Untitled",
                    summary=item.get("summary") or None,
                    url=item.get("url") or None,
                    source=item.get("source") or None,
                    datetime=int(published) if published else None,
                )
            )
        return news

    async def get_rsi(
        self, symbol: str, interval: Interval, start: int, end: int, period: int
    ) -> Optional[List[RsiPoint]]:
        data = await self._request_object(
            "/indicator",
            {
                "symbol": symbol,
                "resolution": _RESOLUTION_MAP[Interval.parse(interval)],
                "from": start,
                "to": end,
                "indicator": "rsi",
                "timeperiod": period,
            },
        )
        timestamps = _series(data, "t")
        values = _series(data, "rsi")
        if data.get("s") != "ok" or not timestamps or not values:
            return None

        points = []
        for idx, ts in enumerate(timestamps):
            value = _at(values, idx)
            if value is None or to_float(ts) is None:
                continue
            points.append(RsiPoint(timestamp=int(float(ts)), value=value))
        return sort_and_window(points)

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
        data = await self._request_object(
            "/indicator",
            {
                "symbol": symbol,
                "resolution": _RESOLUTION_MAP[Interval.parse(interval)],
                "from": start,
                "to": end,
                "indicator": "macd",
                "fastperiod": fast_period,
                "slowperiod": slow_period,
                "signalperiod": signal_period,
            },
        )
        timestamps = _series(data, "t")
        macd_values = _series(data, "macd")
        signal_values = _series(data, "signal")
        hist_values = _series(data, "histogram")
        if data.get("s") != "ok" or not timestamps or not macd_values or not signal_values:
            return None

        points = []
        for idx, ts in enumerate(timestamps):
            macd = _at(macd_values, idx)
            signal = _at(signal_values, idx)
            if macd is None or signal is None or to_float(ts) is None:
                continue
            histogram = _at(hist_values, idx)
            points.append(
                MacdPoint(
                    timestamp=int(float(ts)),
                    macd=macd,
                    signal=signal,
                    histogram=macd - signal if histogram is None else histogram,
                )
            )
        return sort_and_window(points)

    async def get_key_financials(self, symbol: str) -> Optional[KeyFinancials]:
        data = await self._request_object("/stock/metric", {"symbol": symbol, "metric": "all"})
        metric = data.get("metric")
        if not isinstance(metric, dict) or not metric:
            return None
        return KeyFinancials(
            symbol=symbol,
            pe_ratio=to_float(metric.get("peBasicExclExtraTTM")),
            eps=to_float(metric.get("epsBasicExclExtraItemsTTM")),
            book_value=to_float(metric.get("bookValuePerShareQuarterly")),
            dividend_yield=to_float(metric.get("dividendYieldIndicatedAnnual")),
            week52_high=to_float(metric.get("52WeekHigh")),
            week52_low=to_float(metric.get("52WeekLow")),
            market_capitalization=to_float(metric.get("marketCapitalization")),
            beta=to_float(metric.get("beta")),
            source=self.name,
        )


__all__ = ["FinnhubVendor", "classify_finnhub_error"]
