from __future__ import annotations

import logging

import pytest
from loguru import logger

from stock_analyst import logging_utils
from stock_analyst.core.exceptions import ErrorCode, ProviderError
from stock_analyst.dal.schemas import (
    CompanyProfile,
    KeyFinancials,
    NewsItem,
    ProviderName,
    Quote,
)
from stock_analyst.services.market_data import MarketDataService
from stock_analyst.tools import TOOL_NAMES, MacdArgs, RangeArgs, StockAnalystTools, SymbolArgs
from stock_analyst.utils.formatting import FINANCIAL_DISCLAIMER
from tests.support.fakes import FakeVendor, rising_candles

QUOTE = Quote(
    symbol="AAPL",
    price=190.5,
    change=1.5,
    percent_change=0.79,
    high=191.0,
    low=188.2,
    open=189.0,
    previous_close=189.0,
    source=ProviderName.FINNHUB,
    timestamp=1704300000,
)

RANGE = {"symbol": "AAPL", "interval": "D", "from": 1_700_000_000, "to": 1_710_000_000}


def _tools(primary=None, fallback=None) -> StockAnalystTools:
    return StockAnalystTools(MarketDataService(primary=primary, fallback=fallback))


@pytest.mark.anyio("asyncio")
async def test_get_stock_price_renders_lines():
    tools = _tools(FakeVendor(ProviderName.FINNHUB, get_quote=QUOTE))

    response = await tools.get_stock_price(symbol=" aapl ")

    assert response.is_error is False
    lines = response.text.splitlines()
    assert lines[0] == "Latest price for AAPL"
    assert "Source: Finnhub" in lines
    assert "Price: $190.50" in lines
    assert "Change %: 0.79%" in lines
    assert "Timestamp: 2024-01-03T16:40:00Z" in lines
    assert lines[-1] == FINANCIAL_DISCLAIMER


@pytest.mark.anyio("asyncio")
async def test_fallback_warning_reaches_output():
    tools = _tools(
        FakeVendor(ProviderName.FINNHUB, get_quote=ProviderError("finnhub", ErrorCode.NETWORK, "timeout")),
        FakeVendor(ProviderName.ALPHAVANTAGE, get_quote=QUOTE),
    )

    response = await tools.get_quote(symbol="AAPL")

    assert "Source: Alpha Vantage" in response.text
    assert "Warning: Used fallback provider due to primary provider error." in response.text
    assert "Previous Close: $189.00" in response.text


@pytest.mark.anyio("asyncio")
async def test_invalid_symbol_is_validation_error():
    tools = _tools(FakeVendor(ProviderName.FINNHUB, get_quote=QUOTE))

    response = await tools.get_quote(symbol="1BAD$")

    assert response.is_error
    assert response.text.startswith("Validation failed: symbol:")


@pytest.mark.anyio("asyncio")
async def test_provider_failure_is_error_response():
    tools = _tools(
        FakeVendor(ProviderName.FINNHUB, get_company_profile=ProviderError("finnhub", ErrorCode.AUTH, "bad token")),
    )

    response = await tools.get_company_profile(symbol="AAPL")

    assert response.is_error
    assert "missing or invalid API key" in response.text


@pytest.mark.anyio("asyncio")
async def test_company_profile_and_key_financials():
    profile = CompanyProfile(symbol="AAPL", source=ProviderName.FINNHUB, name="Apple Inc", exchange="NASDAQ")
    metrics = KeyFinancials(symbol="AAPL", source=ProviderName.FINNHUB, pe_ratio=28.44, dividend_yield=0.5)
    tools = _tools(FakeVendor(ProviderName.FINNHUB, get_company_profile=profile, get_key_financials=metrics))

    profile_text = (await tools.get_company_profile(symbol="AAPL")).text
    metrics_text = (await tools.get_key_financials(symbol="AAPL")).text

    assert "Name: Apple Inc" in profile_text
    assert "Website: n/a" in profile_text
    assert "P/E: 28.44" in metrics_text
    assert "Dividend Yield: 0.50%" in metrics_text
    assert "Beta: n/a" in metrics_text


@pytest.mark.anyio("asyncio")
async def test_get_candles_limits_rendered_rows():
    tools = _tools(FakeVendor(ProviderName.FINNHUB, get_candles=rising_candles(30)))

    response = await tools.get_candles(**RANGE, limit=5)

    lines = response.text.splitlines()
    assert lines[0] == "Candles for AAPL (D)"
    assert "Returned candles: 30" in lines
    assert sum(1 for line in lines if " | O " in line) == 5


@pytest.mark.anyio("asyncio")
async def test_get_stock_news_lists_items():
    news = [NewsItem(headline="Apple ships", source="Reuters", url="https://n.test/1", datetime=1704300000)]
    tools = _tools(FakeVendor(ProviderName.FINNHUB, get_news=news))

    response = await tools.get_stock_news(symbol="AAPL", **{"from": "2024-01-01", "to": "2024-01-05"})

    assert "1. [2024-01-03T16:40:00Z] Apple ships - Reuters (https://n.test/1)" in response.text


@pytest.mark.anyio("asyncio")
async def test_get_rsi_local_fallback_summary():
    tools = _tools(FakeVendor(ProviderName.FINNHUB, get_rsi=None, get_candles=rising_candles(30)))

    response = await tools.get_rsi(**RANGE)

    assert response.is_error is False
    assert "Latest RSI: 100.00" in response.text
    assert "Signal zone: overbought" in response.text
    assert "Source: Finnhub + local RSI calculation" in response.text


@pytest.mark.anyio("asyncio")
async def test_get_macd_rejects_fast_not_below_slow():
    tools = _tools(FakeVendor(ProviderName.FINNHUB))

    response = await tools.get_macd(**RANGE, fastPeriod=30, slowPeriod=26)

    assert response.is_error
    assert "fastPeriod must be smaller than slowPeriod." in response.text


@pytest.mark.anyio("asyncio")
async def test_call_dispatches_and_rejects_unknown_tools():
    tools = _tools(FakeVendor(ProviderName.FINNHUB, get_quote=QUOTE))

    ok = await tools.call("get_stock_price", {"symbol": "AAPL"})
    unknown = await tools.call("place_order", {"symbol": "AAPL"})

    assert ok.is_error is False
    assert unknown.is_error
    assert unknown.text == "Unknown tool: place_order"
    assert "get_macd" in TOOL_NAMES


def test_symbol_normalized_and_range_checked():
    assert SymbolArgs.model_validate({"symbol": " brk.b "}).symbol == "BRK.B"
    with pytest.raises(ValueError):
        RangeArgs.model_validate({**RANGE, "from": 1_710_000_000, "to": 1_700_000_000})
    with pytest.raises(ValueError):
        RangeArgs.model_validate({**RANGE, "from": 1_000_000_000, "to": 1_710_000_000})
    with pytest.raises(ValueError):
        RangeArgs.model_validate({**RANGE, "interval": "2h"})


def test_macd_defaults():
    args = MacdArgs.model_validate(RANGE)
    assert (args.fast_period, args.slow_period, args.signal_period) == (12, 26, 9)


def test_constructing_tools_installs_logging_bridge(monkeypatch, caplog):
    monkeypatch.setattr(logging_utils.setup_logging, "_configured", False, raising=False)
    logger.remove()
    caplog.set_level(logging.WARNING)

    _tools(FakeVendor(ProviderName.FINNHUB))
    logger.warning("provider hiccup")

    record = next(r for r in caplog.records if r.getMessage() == "provider hiccup")
    assert record.tool == "-"
    assert record.service_version == logging_utils.__version__
