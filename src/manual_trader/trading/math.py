#! /usr/bin/env python3
# src/manual_trader/trading/math.py
"""
Module: manual_trader.trading
Provides fee and profit/loss calculations for closed positions.
"""
from decimal import Decimal
from typing import Any

from manual_trader.utils.numeric_handler import NumericHandler

_HUNDRED = Decimal("100")


class FeeCalculator:
    """Turns a notional amount and a fee percentage into an absolute fee."""

    def __init__(self, numeric_handler: NumericHandler = None):
        self.nh = numeric_handler or NumericHandler()

    def fee(self, notional: Any, fee_pct: Any) -> Decimal:
        """
        Calculate the fee charged on a notional amount.

        Args:
            notional: Quote-currency amount committed to the trade
            fee_pct: Fee rate in percent, e.g. 0.1 for 0.1%

        Returns:
            Unrounded fee amount, ``fee_pct / 100 * notional``

        Raises:
            InvalidInputError: If either input is not a finite number
        """
        notional = self.nh.convert_to_decimal(notional, "notional")
        fee_pct = self.nh.convert_to_decimal(fee_pct, "fee_pct")
        return fee_pct / _HUNDRED * notional


class PnLCalculator:
    """Realized profit/loss for long-only positions."""

    @staticmethod
    def realized_pnl(entry_price: Decimal, exit_price: Decimal, size: Decimal) -> Decimal:
        """Gross PnL before fees: ``(exit - entry) * size``."""
        return (exit_price - entry_price) * size

    @staticmethod
    def pnl_after_fee(raw_pnl: Decimal, fee_amount: Decimal) -> Decimal:
        return raw_pnl - fee_amount
