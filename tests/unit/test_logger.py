#! /usr/bin/env python3
# tests/unit/test_logger.py
"""
Module: tests.unit
Provides unit testing functionality for structured logging.
"""
import json
import logging

import pytest

from manual_trader.utils.exceptions import LoggingError
from manual_trader.utils.logger import StructuredFormatter, event_fields, setup_logging


def make_record(msg="hello", **extra):
    record = logging.LogRecord("Test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_emits_json():
    payload = json.loads(StructuredFormatter().format(make_record()))
    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "Test"


def test_structured_formatter_includes_extra_fields():
    record = make_record(**event_fields(event="position_opened", instrument="BTC/USD"))
    payload = json.loads(StructuredFormatter().format(record))
    assert payload["event"] == "position_opened"
    assert payload["instrument"] == "BTC/USD"


def test_setup_logging_does_not_duplicate_handlers(tmp_path):
    log_file = tmp_path / "logs" / "trader.log"
    logger = setup_logging("TestSetup", log_level="DEBUG", log_file=str(log_file))
    setup_logging("TestSetup", log_level="DEBUG", log_file=str(log_file))

    try:
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        logger.info("written", extra=event_fields(event="check"))
        for handler in logger.handlers:
            handler.flush()
        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["event"] == "check"
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_setup_logging_invalid_level():
    with pytest.raises(LoggingError):
        setup_logging("TestInvalid", log_level="LOUD")
