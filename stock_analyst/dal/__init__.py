"""Normalized market data model and provider adapters."""

from .schemas import (
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

__all__ = [
    "Candle",
    "CompanyProfile",
    "Interval",
    "KeyFinancials",
    "MacdPoint",
    "NewsItem",
    "ProviderName",
    "Quote",
    "RsiPoint",
]
