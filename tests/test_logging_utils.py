from __future__ import annotations

import logging
from contextlib import contextmanager

import pytest
from loguru import logger

from stock_analyst import __version__
from stock_analyst.logging_utils import logging_context, setup_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    setup_logging(force=True, level="INFO")
    yield
    setup_logging(force=True, level="WARNING")


@contextmanager
def capture_records(level=logging.INFO):
    records = []

    class ListHandler(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = ListHandler()
    handler.setLevel(level)
    root = logging.getLogger()
    prev_level = root.level
    root.setLevel(level)
    root.addHandler(handler)
    try:
        yield records
    finally:
        root.removeHandler(handler)
        root.setLevel(prev_level)


def test_setup_logging_attaches_metadata(monkeypatch):
    monkeypatch.setenv("ENV", "staging")

    setup_logging(force=True, level="INFO")

    with capture_records() as records:
        logger.info("hello world")

    record = records[-1]
    assert record.getMessage() == "hello world"
    assert record.environment == "staging"
    assert record.service_version == __version__
    assert record.tool == "-"
    assert record.call_id == "-"


def test_logging_context_binds_tool_fields():
    with capture_records() as records:
        with logging_context(tool="get_quote", call_id="abc123"):
            logger.info("inside")
        logger.info("outside")

    inside, outside = records[-2], records[-1]
    assert inside.tool == "get_quote"
    assert inside.call_id == "abc123"
    assert outside.tool == "-"


def test_level_filters_bridge():
    setup_logging(force=True, level="WARNING")

    with capture_records(logging.DEBUG) as records:
        logger.info("dropped")
        logger.warning("kept")

    assert [r.getMessage() for r in records] == ["kept"]
