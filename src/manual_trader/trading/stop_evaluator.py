#!/usr/bin/env python3
# src/manual_trader/trading/stop_evaluator.py
"""
Module: manual_trader.trading
Stop-loss / take-profit trigger policy.
"""
from decimal import Decimal
from typing import Optional

from manual_trader.trading.position import CloseReason, Position


class StopEvaluator:
    """
    Decides whether an incoming price closes an open position.

    Thresholds are checked in a fixed order: stop-loss first, then
    take-profit. When a single price crosses both (a gap through a narrow
    band), the position closes as StopLoss.
    """

    def evaluate(self, position: Position, current_price: Decimal) -> Optional[CloseReason]:
        if current_price <= position.stop_loss:
            return CloseReason.STOP_LOSS
        if current_price >= position.take_profit:
            return CloseReason.TAKE_PROFIT
        return None
