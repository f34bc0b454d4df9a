#! /usr/bin/env python3
# src/manual_trader/utils/numeric_handler.py
"""
Module: manual_trader.utils
Decimal conversion for prices, amounts and percentages coming from callers.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from manual_trader.utils.exceptions import InvalidInputError


class NumericHandler:
    """Turns host-supplied numbers (str, int, float, Decimal) into Decimal"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def to_decimal(self, value: Any) -> Optional[Decimal]:
        """Lenient conversion: None for anything that is not a number.

        Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not its
        binary expansion. NaN and infinities are returned as-is.
        """
        if isinstance(value, Decimal):
            return value
        if value is None or isinstance(value, bool):
            return None
        try:
            return Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError) as e:
            self.logger.debug(f"Not a decimal: {value!r} [{e.__class__.__name__}]")
            return None

    def convert_to_decimal(self, value: Any, field_name: str = "value") -> Decimal:
        """Strict conversion to a finite Decimal.

        Raises:
            InvalidInputError: If the value is missing, malformed, NaN or infinite
        """
        result = self.to_decimal(value)
        if result is None:
            raise InvalidInputError(f"{field_name} is not a number: {value!r}")
        if not result.is_finite():
            raise InvalidInputError(f"{field_name} must be finite, got {value!r}")
        return result
