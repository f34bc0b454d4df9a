#!/usr/bin/env python3
# src/manual_trader/trading/position.py
"""
Module: manual_trader.trading
Position and closed-trade records.
"""
from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict

MAX_FEE_PCT = Decimal("5")


class CloseReason(str, Enum):
    """Why a position was closed."""

    STOP_LOSS = "StopLoss"
    TAKE_PROFIT = "TakeProfit"
    MANUAL = "Manual"


@dataclass(frozen=True)
class Position:
    """
    One open manual long position.

    Stop-loss and take-profit are absolute prices fixed at open time, and
    ``size`` is ``notional / entry_price`` as computed at open. None of the
    fields change while the position is open.
    """

    instrument: str
    entry_price: Decimal
    size: Decimal
    notional: Decimal
    fee_pct: Decimal
    stop_loss: Decimal
    take_profit: Decimal
    opened_at: int

    def __post_init__(self):
        """Validate initial state"""
        if not self.instrument or not isinstance(self.instrument, str):
            raise ValueError("Position must have an instrument")
        if self.entry_price <= 0:
            raise ValueError("Entry price must be positive")
        if self.size <= 0:
            raise ValueError("Position size must be positive")
        if self.notional <= 0:
            raise ValueError("Notional must be positive")
        if not Decimal("0") <= self.fee_pct <= MAX_FEE_PCT:
            raise ValueError(f"Fee percentage out of range: {self.fee_pct}")

    def unrealized_pnl(self, current_price: Decimal) -> Decimal:
        """Gross mark-to-market PnL at ``current_price``, fees excluded."""
        return (current_price - self.entry_price) * self.size


@dataclass(frozen=True)
class ClosedTrade:
    """Outcome of closing a position."""

    instrument: str
    entry_price: Decimal
    exit_price: Decimal
    size: Decimal
    notional: Decimal
    raw_pnl: Decimal
    fee: Decimal
    pnl_after_fee: Decimal
    reason: CloseReason
    opened_at: int
    closed_at: int

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reason"] = self.reason.value
        return data
