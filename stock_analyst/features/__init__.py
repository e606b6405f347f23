"""
Stock Analyst: Feature Engineering Package

This package includes:
- `indicators`: EMA, RSI and MACD computed locally from normalized candles

Usage:
    from stock_analyst.features import indicators

All modules under this package are pure (no I/O) and safe to call from
concurrent async tasks.
"""

from . import indicators

__all__ = ["indicators"]
