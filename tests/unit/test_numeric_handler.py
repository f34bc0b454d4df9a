#! /usr/bin/env python3
# tests/unit/test_numeric_handler.py
"""
Module: tests.unit
Provides unit testing functionality for the numeric handler module.
"""
from decimal import Decimal

import pytest

from manual_trader.utils.exceptions import InvalidInputError
from manual_trader.utils.numeric_handler import NumericHandler


@pytest.fixture
def numeric_handler():
    return NumericHandler()


def test_to_decimal(numeric_handler):
    assert numeric_handler.to_decimal("123.45") == Decimal("123.45")
    assert numeric_handler.to_decimal(123.45) == Decimal("123.45")
    assert numeric_handler.to_decimal("abc") is None
    assert numeric_handler.to_decimal(None) is None
    assert numeric_handler.to_decimal(True) is None


def test_convert_to_decimal_rejects_non_finite(numeric_handler):
    with pytest.raises(InvalidInputError):
        numeric_handler.convert_to_decimal(float("nan"), "price")
    with pytest.raises(InvalidInputError):
        numeric_handler.convert_to_decimal("Infinity", "price")
    with pytest.raises(InvalidInputError, match="price"):
        numeric_handler.convert_to_decimal("abc", "price")
