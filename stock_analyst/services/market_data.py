from __future__ import annotations

from functools import partial
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from stock_analyst.dal.schemas import (
    Candle,
    CompanyProfile,
    Interval,
    KeyFinancials,
    MacdPoint,
    NewsItem,
    Quote,
    RsiPoint,
)
from stock_analyst.dal.vendors import AlphaVantageVendor, FinnhubVendor, VendorClient
from stock_analyst.features.indicators import (
    calculate_macd_from_candles,
    calculate_rsi_from_candles,
)
from stock_analyst.orchestration.fallback import execute_with_fallback
from stock_analyst.orchestration.types import FallbackResult, T
from stock_analyst.settings import MarketDataSettings, get_market_data_settings

VendorCall = Callable[[VendorClient], Awaitable[Optional[T]]]


class MarketDataService:
    """Runs every logical query through the primary -> fallback provider chain."""

    def __init__(
        self,
        primary: Optional[VendorClient] = None,
        fallback: Optional[VendorClient] = None,
    ) -> None:
        self.primary = primary
        self.fallback = fallback

    @classmethod
    def from_settings(cls, settings: Optional[MarketDataSettings] = None) -> "MarketDataService":
        """Finnhub as primary and Alpha Vantage as fallback, each only if keyed."""
        settings = settings or get_market_data_settings()
        primary = (
            FinnhubVendor(
                settings.finnhub_key,
                base_url=settings.finnhub_base_url,
                timeout=settings.http_timeout,
            )
            if settings.has_finnhub
            else None
        )
        fallback = (
            AlphaVantageVendor(
                settings.alphavantage_key,
                base_url=settings.alphavantage_base_url,
                timeout=settings.http_timeout,
            )
            if settings.has_alphavantage
            else None
        )
        if primary is None and fallback is None:
            logger.warning(
                "no API keys detected. Set FINNHUB_API_KEY and/or ALPHAVANTAGE_API_KEY."
            )
        return cls(primary=primary, fallback=fallback)

    @property
    def has_providers(self) -> bool:
        return self.primary is not None or self.fallback is not None

    async def _run(self, tool_name: str, call: VendorCall[T]) -> FallbackResult[T]:
        return await execute_with_fallback(
            tool_name,
            primary=partial(call, self.primary) if self.primary else None,
            fallback=partial(call, self.fallback) if self.fallback else None,
            primary_source=self.primary.display_name if self.primary else "primary",
            fallback_source=self.fallback.display_name if self.fallback else "fallback",
        )

    async def get_quote(self, symbol: str, *, tool_name: str = "get_quote") -> FallbackResult[Quote]:
        return await self._run(tool_name, lambda vendor: vendor.get_quote(symbol))

    async def get_company_profile(
        self, symbol: str, *, tool_name: str = "get_company_profile"
    ) -> FallbackResult[CompanyProfile]:
        return await self._run(tool_name, lambda vendor: vendor.get_company_profile(symbol))

    async def get_candles(
        self,
        symbol: str,
        interval: Interval,
        start: int,
        end: int,
        *,
        tool_name: str = "get_candles",
    ) -> FallbackResult[List[Candle]]:
        interval = Interval.parse(interval)
        return await self._run(
            tool_name, lambda vendor: vendor.get_candles(symbol, interval, start, end)
        )

    async def get_news(
        self,
        symbol: str,
        from_date: str,
        to_date: str,
        limit: int = 10,
        *,
        tool_name: str = "get_stock_news",
    ) -> FallbackResult[List[NewsItem]]:
        return await self._run(
            tool_name, lambda vendor: vendor.get_news(symbol, from_date, to_date, limit)
        )

    async def get_key_financials(
        self, symbol: str, *, tool_name: str = "get_key_financials"
    ) -> FallbackResult[KeyFinancials]:
        return await self._run(tool_name, lambda vendor: vendor.get_key_financials(symbol))

    async def get_rsi(
        self,
        symbol: str,
        interval: Interval,
        start: int,
        end: int,
        period: int = 14,
        *,
        tool_name: str = "get_rsi",
    ) -> FallbackResult[List[RsiPoint]]:
        """Provider RSI, else RSI computed locally from provider candles."""
        interval = Interval.parse(interval)
        provider_result = await self._run(
            tool_name, lambda vendor: vendor.get_rsi(symbol, interval, start, end, period)
        )
        if provider_result.ok:
            return provider_result

        candles_result = await self.get_candles(
            symbol, interval, start, end, tool_name=f"{tool_name}(candle-fallback)"
        )
        if not candles_result.ok:
            return FallbackResult(
                error=provider_result.error or candles_result.error or "Could not compute RSI.",
                errors=provider_result.errors + candles_result.errors,
            )

        candles = candles_result.data or []
        points = calculate_rsi_from_candles(candles, period)
        source = f"{candles_result.source or 'provider'} + local RSI calculation"
        warning = "Provider RSI unavailable; computed RSI from candle closes."
        if not points:
            logger.info(
                "rsi local computation empty symbol={} candles={} period={}",
                symbol,
                len(candles),
                period,
            )
            return FallbackResult(
                source=source,
                warning=warning,
                error=(
                    f"{tool_name} failed: could not compute RSI from {len(candles)} candles "
                    f"(need at least {period + 2})."
                ),
            )
        return FallbackResult(data=points, source=source, warning=warning)

    async def get_macd(
        self,
        symbol: str,
        interval: Interval,
        start: int,
        end: int,
        fast_period: int = 12,
        slow_period: int = 26,
        signal_period: int = 9,
        *,
        tool_name: str = "get_macd",
    ) -> FallbackResult[List[MacdPoint]]:
        """Provider MACD, else MACD computed locally from provider candles."""
        if fast_period >= slow_period:
            raise ValueError("fast_period must be smaller than slow_period")
        interval = Interval.parse(interval)
        provider_result = await self._run(
            tool_name,
            lambda vendor: vendor.get_macd(
                symbol, interval, start, end, fast_period, slow_period, signal_period
            ),
        )
        if provider_result.ok:
            return provider_result

        candles_result = await self.get_candles(
            symbol, interval, start, end, tool_name=f"{tool_name}(candle-fallback)"
        )
        if not candles_result.ok:
            return FallbackResult(
                error=provider_result.error or candles_result.error or "Could not compute MACD.",
                errors=provider_result.errors + candles_result.errors,
            )

        candles = candles_result.data or []
        points = calculate_macd_from_candles(candles, fast_period, slow_period, signal_period)
        source = f"{candles_result.source or 'provider'} + local MACD calculation"
        warning = "Provider MACD unavailable; computed MACD from candle closes."
        if not points:
            logger.info(
                "macd local computation empty symbol={} candles={} needed={}",
                symbol,
                len(candles),
                slow_period + signal_period,
            )
            return FallbackResult(
                source=source,
                warning=warning,
                error=(
                    f"{tool_name} failed: could not compute MACD from {len(candles)} candles "
                    f"(need at least {slow_period + signal_period})."
                ),
            )
        return FallbackResult(data=points, source=source, warning=warning)


__all__ = ["MarketDataService"]
