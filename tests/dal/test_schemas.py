from __future__ import annotations

import pytest

from stock_analyst.dal.schemas import (
    Candle,
    Interval,
    ProviderName,
    Quote,
    RsiPoint,
    sort_and_window,
)
from stock_analyst.dal.vendors.base import to_float


def _candle(ts: int, close: float = 1.0) -> Candle:
    return Candle(timestamp=ts, open=close, high=close, low=close, close=close, volume=10)


def test_sort_and_window_inclusive_and_deduplicated() -> None:
    points = [RsiPoint(300, 3.0), RsiPoint(100, 1.0), RsiPoint(200, 2.0), RsiPoint(200, 9.0), RsiPoint(400, 4.0)]

    out = sort_and_window(points, 100, 300)

    assert [p.timestamp for p in out] == [100, 200, 300]
    assert out[1].value == 2.0


def test_sort_and_window_without_bounds_keeps_everything() -> None:
    assert [c.timestamp for c in sort_and_window([_candle(2), _candle(1)])] == [1, 2]


def test_interval_parse() -> None:
    assert Interval.parse("D") is Interval.DAY
    assert Interval.parse(" 15 ") is Interval.MIN_15
    assert Interval.MIN_60.is_intraday
    assert not Interval.WEEK.is_intraday
    with pytest.raises(ValueError):
        Interval.parse("2h")


def test_record_as_dict_flattens_provider() -> None:
    quote = Quote(
        symbol="AAPL",
        price=1.0,
        change=0.0,
        percent_change=0.0,
        high=1.0,
        low=1.0,
        open=1.0,
        previous_close=1.0,
        source=ProviderName.ALPHAVANTAGE,
    )
    data = quote.as_dict()
    assert data["source"] == "alphavantage"
    assert data["timestamp"] is None
    assert ProviderName.ALPHAVANTAGE.display_name == "Alpha Vantage"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12.5", 12.5),
        (3, 3.0),
        ("None", None),
        ("-", None),
        ("", None),
        (None, None),
        (True, None),
        (float("nan"), None),
        ("abc", None),
    ],
)
def test_to_float(raw, expected) -> None:
    assert to_float(raw) == expected
