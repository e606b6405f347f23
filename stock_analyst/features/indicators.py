"""
Local technical indicators computed from normalized candles.

Used when neither provider returns indicator points directly. Every function
is pure: inputs are never mutated and identical inputs give identical output.
Insufficient history is an empty result, never an error.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from stock_analyst.dal.schemas import Candle, MacdPoint, RsiPoint

log = logging.getLogger(__name__)


def _check_period(name: str, period: int) -> None:
    if period < 1:
        raise ValueError(f"{name} must be a positive integer (got {period})")


def ema(values: Sequence[float], period: int) -> List[Optional[float]]:
    """
    Exponential moving average seeded with a simple mean.

    Parameters
    ----------
    values : sequence of float
        Input series, oldest first.
    period : int
        Smoothing window; multiplier is ``2 / (period + 1)``.

    Returns
    -------
    list of float or None
        Same length as ``values``. The first ``period - 1`` entries are
        ``None``; index ``period - 1`` holds the mean of the first ``period``
        values. Empty when ``len(values) < period``.
    """
    _check_period("period", period)
    if len(values) < period:
        return []

    multiplier = 2.0 / (period + 1)
    output: List[Optional[float]] = [None] * len(values)
    previous = sum(float(v) for v in values[:period]) / period
    output[period - 1] = previous
    for idx in range(period, len(values)):
        previous = (float(values[idx]) - previous) * multiplier + previous
        output[idx] = previous
    return output


def calculate_rsi_from_candles(candles: Sequence[Candle], period: int = 14) -> List[RsiPoint]:
    """
    Relative Strength Index with Wilder smoothing.

    Parameters
    ----------
    candles : sequence of Candle
        Ascending candles.
    period : int, default 14
        Lookback period.

    Returns
    -------
    list of RsiPoint
        One point per close-to-close delta after the seed window, stamped with
        the timestamp of the candle the move ended on. RSI is exactly 100 when
        the smoothed average loss is 0.
    """
    _check_period("period", period)
    if len(candles) <= period:
        log.debug("RSI input too short (len=%s <= period=%s)", len(candles), period)
        return []

    closes = np.asarray([candle.close for candle in candles], dtype=float)
    deltas = np.diff(closes)
    gains = np.clip(deltas, 0.0, None)
    losses = np.clip(-deltas, 0.0, None)

    avg_gain = float(gains[:period].sum()) / period
    avg_loss = float(losses[:period].sum()) / period

    points: List[RsiPoint] = []
    for idx in range(period, len(gains)):
        avg_gain = (avg_gain * (period - 1) + float(gains[idx])) / period
        avg_loss = (avg_loss * (period - 1) + float(losses[idx])) / period
        if avg_loss == 0:
            value = 100.0
        else:
            value = 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)
        points.append(RsiPoint(timestamp=candles[idx + 1].timestamp, value=value))
    return points


def calculate_macd_from_candles(
    candles: Sequence[Candle],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> List[MacdPoint]:
    """MACD line, signal line and histogram from candle closes.

    Needs at least ``slow_period + signal_period`` candles. The signal EMA runs
    over the MACD values that exist and is mapped back onto their candles.
    """
    _check_period("fast_period", fast_period)
    _check_period("slow_period", slow_period)
    _check_period("signal_period", signal_period)
    if len(candles) < slow_period + signal_period:
        log.debug(
            "MACD input too short (len=%s < slow+signal=%s)",
            len(candles),
            slow_period + signal_period,
        )
        return []

    closes = [candle.close for candle in candles]
    fast = ema(closes, fast_period)
    slow = ema(closes, slow_period)

    macd_line: List[Optional[float]] = []
    for fast_val, slow_val in zip(fast, slow):
        if fast_val is None or slow_val is None:
            macd_line.append(None)
        else:
            macd_line.append(fast_val - slow_val)

    compact = [value for value in macd_line if value is not None]
    signal_raw = ema(compact, signal_period)
    if not signal_raw:
        return []

    output: List[MacdPoint] = []
    cursor = 0
    for idx, macd in enumerate(macd_line):
        if macd is None:
            continue
        signal = signal_raw[cursor]
        cursor += 1
        if signal is None:
            continue
        output.append(
            MacdPoint(
                timestamp=candles[idx].timestamp,
                macd=macd,
                signal=signal,
                histogram=macd - signal,
            )
        )
    return output


__all__ = ["ema", "calculate_rsi_from_candles", "calculate_macd_from_candles"]
