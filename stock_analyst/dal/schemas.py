from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterable, List, Optional, TypeVar


class ProviderName(str, Enum):
    FINNHUB = "finnhub"
    ALPHAVANTAGE = "alphavantage"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    ProviderName.FINNHUB: "Finnhub",
    ProviderName.ALPHAVANTAGE: "Alpha Vantage",
}


class Interval(str, Enum):
    """Candle interval vocabulary accepted at the boundary."""

    MIN_1 = "1"
    MIN_5 = "5"
    MIN_15 = "15"
    MIN_30 = "30"
    MIN_60 = "60"
    DAY = "D"
    WEEK = "W"
    MONTH = "M"

    @classmethod
    def parse(cls, value: "Interval | str") -> "Interval":
        if isinstance(value, Interval):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            allowed = ",".join(item.value for item in cls)
            raise ValueError(f"Unsupported interval {value!r}; expected one of {allowed}") from None

    @property
    def is_intraday(self) -> bool:
        return self in _INTRADAY


_INTRADAY = frozenset(
    {Interval.MIN_1, Interval.MIN_5, Interval.MIN_15, Interval.MIN_30, Interval.MIN_60}
)


class _Record:
    """Shared serialization for normalized records."""

    __slots__ = ()

    def as_dict(self) -> dict:
        out = asdict(self)  # type: ignore[call-overload]
        source = out.get("source")
        if isinstance(source, ProviderName):
            out["source"] = source.value
        return out


@dataclass(frozen=True, slots=True)
class Quote(_Record):
    symbol: str
    price: float
    change: float
    percent_change: float
    high: float
    low: float
    open: float
    previous_close: float
    source: ProviderName
    timestamp: Optional[int] = None


@dataclass(frozen=True, slots=True)
class CompanyProfile(_Record):
    symbol: str
    source: ProviderName
    name: Optional[str] = None
    exchange: Optional[str] = None
    currency: Optional[str] = None
    country: Optional[str] = None
    industry: Optional[str] = None
    ipo: Optional[str] = None
    market_capitalization: Optional[float] = None
    website: Optional[str] = None
    logo: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Candle(_Record):
    """Normalized OHLCV candle keyed by epoch seconds."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True, slots=True)
class NewsItem(_Record):
    headline: str = "Untitled"
    summary: Optional[str] = None
    url: Optional[str] = None
    source: Optional[str] = None
    datetime: Optional[int] = None


@dataclass(frozen=True, slots=True)
class RsiPoint(_Record):
    timestamp: int
    value: float


@dataclass(frozen=True, slots=True)
class MacdPoint(_Record):
    timestamp: int
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True, slots=True)
class KeyFinancials(_Record):
    symbol: str
    source: ProviderName
    pe_ratio: Optional[float] = None
    eps: Optional[float] = None
    book_value: Optional[float] = None
    dividend_yield: Optional[float] = None
    week52_high: Optional[float] = None
    week52_low: Optional[float] = None
    market_capitalization: Optional[float] = None
    beta: Optional[float] = None


TimedT = TypeVar("TimedT", Candle, RsiPoint, MacdPoint)


def sort_and_window(
    points: Iterable[TimedT],
    start: Optional[int] = None,
    end: Optional[int] = None,
) -> List[TimedT]:
    """Sort ascending by timestamp, keep the inclusive [start, end] window.

    Later duplicates of a timestamp are dropped so the result is strictly
    increasing.
    """
    out: List[TimedT] = []
    last_ts: Optional[int] = None
    for point in sorted(points, key=lambda p: p.timestamp):
        if start is not None and point.timestamp < start:
            continue
        if end is not None and point.timestamp > end:
            continue
        if point.timestamp == last_ts:
            continue
        out.append(point)
        last_ts = point.timestamp
    return out


__all__ = [
    "ProviderName",
    "Interval",
    "Quote",
    "CompanyProfile",
    "Candle",
    "NewsItem",
    "RsiPoint",
    "MacdPoint",
    "KeyFinancials",
    "sort_and_window",
]
