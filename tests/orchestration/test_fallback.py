from __future__ import annotations

import pytest

from stock_analyst.core.exceptions import ErrorCode, ProviderError
from stock_analyst.orchestration import fallback as module
from stock_analyst.orchestration.fallback import (
    WARNING_PRIMARY_ERROR,
    WARNING_PRIMARY_NO_DATA,
    execute_with_fallback,
    failure_reason,
    next_stage,
)
from stock_analyst.orchestration.types import FailureReason, Outcome, Stage


class Recorder:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def _err(code: ErrorCode, provider: str = "finnhub") -> ProviderError:
    return ProviderError(provider, code, f"{code.value} happened")


@pytest.mark.anyio("asyncio")
async def test_primary_data_short_circuits_fallback():
    primary = Recorder(result={"price": 1})
    fallback = Recorder(result={"price": 2})

    result = await execute_with_fallback(
        "get_quote", primary, fallback, primary_source="Finnhub", fallback_source="Alpha Vantage"
    )

    assert result.data == {"price": 1}
    assert result.source == "Finnhub"
    assert result.warning is None
    assert result.error is None
    assert fallback.calls == 0


@pytest.mark.anyio("asyncio")
async def test_fallback_after_primary_error_carries_warning():
    primary = Recorder(error=_err(ErrorCode.UPSTREAM))
    fallback = Recorder(result=[1, 2])

    result = await execute_with_fallback("get_candles", primary, fallback, fallback_source="Alpha Vantage")

    assert result.data == [1, 2]
    assert result.source == "Alpha Vantage"
    assert result.warning == WARNING_PRIMARY_ERROR
    assert [e.code for e in result.errors] == [ErrorCode.UPSTREAM]


@pytest.mark.anyio("asyncio")
async def test_fallback_after_primary_empty_list_carries_no_data_warning():
    primary = Recorder(result=[])
    fallback = Recorder(result=[1])

    result = await execute_with_fallback("get_candles", primary, fallback)

    assert result.data == [1]
    assert result.warning == WARNING_PRIMARY_NO_DATA
    assert result.primary_no_data is True
    assert primary.calls == 1
    assert fallback.calls == 1


@pytest.mark.anyio("asyncio")
async def test_missing_primary_goes_straight_to_fallback_without_warning():
    fallback = Recorder(result="x")

    result = await execute_with_fallback("get_quote", None, fallback, fallback_source="Alpha Vantage")

    assert result.data == "x"
    assert result.warning is None


@pytest.mark.anyio("asyncio")
async def test_rate_limit_wins_over_auth():
    result = await execute_with_fallback(
        "get_quote",
        Recorder(error=_err(ErrorCode.AUTH)),
        Recorder(error=_err(ErrorCode.RATE_LIMIT, "alphavantage")),
    )

    assert result.data is None
    assert result.error.startswith("get_quote failed: provider rate limit reached.")
    assert len(result.errors) == 2


@pytest.mark.anyio("asyncio")
async def test_auth_message_names_both_keys():
    result = await execute_with_fallback(
        "get_quote",
        Recorder(error=_err(ErrorCode.AUTH)),
        Recorder(error=_err(ErrorCode.NETWORK)),
    )

    assert "FINNHUB_API_KEY" in result.error
    assert "ALPHAVANTAGE_API_KEY" in result.error


@pytest.mark.anyio("asyncio")
async def test_no_data_everywhere_reports_unavailable_symbol():
    result = await execute_with_fallback("get_company_profile", Recorder(result=None), Recorder(result=None))

    assert result.error == (
        "get_company_profile failed: symbol may be unsupported or unavailable for this request window."
    )
    assert result.errors == []


@pytest.mark.anyio("asyncio")
async def test_no_providers_is_generic_failure():
    result = await execute_with_fallback("get_quote")

    assert result.error == "get_quote failed due to provider/network errors. Try again in a moment."


@pytest.mark.anyio("asyncio")
async def test_unexpected_exception_recorded_as_upstream():
    result = await execute_with_fallback(
        "get_quote",
        Recorder(error=RuntimeError("boom")),
        Recorder(result=None),
        primary_source="Finnhub",
    )

    assert result.errors[0].code is ErrorCode.UPSTREAM
    assert result.errors[0].provider == "Finnhub"
    assert result.error == "get_quote failed due to provider/network errors. Try again in a moment."


@pytest.mark.anyio("asyncio")
async def test_primary_error_then_empty_fallback_is_generic_failure():
    result = await execute_with_fallback(
        "get_quote",
        Recorder(error=_err(ErrorCode.UPSTREAM)),
        Recorder(result=None),
    )

    assert result.primary_no_data is False
    assert result.error == "get_quote failed due to provider/network errors. Try again in a moment."


@pytest.mark.anyio("asyncio")
async def test_primary_empty_then_fallback_error_reports_unavailable_symbol():
    result = await execute_with_fallback(
        "get_quote",
        Recorder(result=[]),
        Recorder(error=_err(ErrorCode.NETWORK, "alphavantage")),
    )

    assert result.primary_no_data is True
    assert "symbol may be unsupported" in result.error


def test_transition_table():
    assert next_stage(Stage.PRIMARY, Outcome.DATA) is Stage.DONE
    assert next_stage(Stage.PRIMARY, Outcome.ERROR) is Stage.FALLBACK
    assert next_stage(Stage.FALLBACK, Outcome.NO_DATA) is Stage.FAILED
    with pytest.raises(ValueError):
        next_stage(Stage.DONE, Outcome.DATA)


def test_failure_reason_priority():
    assert failure_reason([_err(ErrorCode.NOT_FOUND), _err(ErrorCode.AUTH)], False) is FailureReason.AUTH
    assert failure_reason([_err(ErrorCode.UPSTREAM)], True) is FailureReason.NOT_FOUND
    assert failure_reason([_err(ErrorCode.BAD_RESPONSE)], False) is FailureReason.GENERIC
    assert module.has_data([]) is False
    assert module.has_data("text") is True
