from __future__ import annotations

import abc
import math
from typing import List, Optional

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
)


class VendorClient(abc.ABC):
    """Interface every upstream market data provider implements.

    Each method returns normalized records, ``None`` when the provider had no
    usable data, or raises ``ProviderError``. Implementations hold nothing but
    immutable configuration so one instance can serve concurrent requests.
    """

    name: ProviderName

    @property
    def display_name(self) -> str:
        return self.name.display_name

    @abc.abstractmethod
    async def get_quote(self, symbol: str) -> Optional[Quote]:
        """Latest quote for ``symbol``."""

    @abc.abstractmethod
    async def get_company_profile(self, symbol: str) -> Optional[CompanyProfile]:
        """Descriptive company profile."""

    @abc.abstractmethod
    async def get_candles(
        self, symbol: str, interval: Interval, start: int, end: int
    ) -> Optional[List[Candle]]:
        """OHLCV candles inside ``[start, end]`` (epoch seconds), ascending."""

    @abc.abstractmethod
    async def get_news(
        self, symbol: str, from_date: str, to_date: str, limit: int
    ) -> Optional[List[NewsItem]]:
        """Company news between two ``YYYY-MM-DD`` dates, at most ``limit`` items."""

    @abc.abstractmethod
    async def get_rsi(
        self, symbol: str, interval: Interval, start: int, end: int, period: int
    ) -> Optional[List[RsiPoint]]:
        """Provider-computed RSI points."""

    @abc.abstractmethod
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
        """Provider-computed MACD points."""

    @abc.abstractmethod
    async def get_key_financials(self, symbol: str) -> Optional[KeyFinancials]:
        """Valuation and per-share metrics."""


def to_float(value: object) -> Optional[float]:
    """Parse a number from provider JSON; blanks and non-finite values become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value or value.lower() in {"none", "null", "-", "n/a"}:
            return None
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


__all__ = ["VendorClient", "to_float"]
