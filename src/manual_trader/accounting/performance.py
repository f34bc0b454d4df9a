#!/usr/bin/env python3
# src/manual_trader/accounting/performance.py
"""
Module: manual_trader.accounting
Performance statistics for the manual trading account.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Sequence

import pandas as pd

from manual_trader.trading.position import ClosedTrade
from manual_trader.trading.position_store import AccountSnapshot


# dataclass for the performance stats
@dataclass
class PerformanceStats:
    # Required fields (no defaults)
    initial_balance: Decimal
    balance: Decimal
    total_pnl: Decimal
    return_pct: float
    total_trades: int
    win_rate: float

    # Optional fields (with defaults)
    total_fees: Decimal = Decimal("0")
    best_trade: Decimal = Decimal("0")
    worst_trade: Decimal = Decimal("0")
    max_drawdown: float = 0.0
    trades_by_reason: Dict[str, int] = field(default_factory=dict)

    def __str__(self) -> str:
        return (
            f"Balance: {self.balance:.2f} (initial {self.initial_balance:.2f})\n"
            f"Total PnL: {self.total_pnl:.2f} ({self.return_pct:.2f}%)\n"
            f"Total Trades: {self.total_trades}\n"
            f"Win Rate: {self.win_rate:.2%}\n"
            f"Max Drawdown: {self.max_drawdown:.2%}\n"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial_balance": float(self.initial_balance),
            "balance": float(self.balance),
            "total_pnl": float(self.total_pnl),
            "return_pct": self.return_pct,
            "total_trades": self.total_trades,
            "win_rate": self.win_rate,
            "total_fees": float(self.total_fees),
            "best_trade": float(self.best_trade),
            "worst_trade": float(self.worst_trade),
            "max_drawdown": self.max_drawdown,
            "trades_by_reason": dict(self.trades_by_reason),
        }


def equity_frame(snapshot: AccountSnapshot) -> pd.DataFrame:
    """Equity curve as a DataFrame indexed by UTC timestamp."""
    frame = pd.DataFrame(
        [(ts, float(equity)) for ts, equity in snapshot.equity_curve],
        columns=["timestamp", "equity"],
    )
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], unit="s", utc=True)
    return frame.set_index("timestamp")


def max_drawdown(equity: pd.Series) -> float:
    """Largest peak-to-trough decline as a fraction of the peak."""
    if equity.empty:
        return 0.0
    peaks = equity.cummax()
    drawdowns = (peaks - equity) / peaks
    return float(drawdowns.max())


def calculate_performance(
    snapshot: AccountSnapshot, trades: Sequence[ClosedTrade] = ()
) -> PerformanceStats:
    """
    Summarize the account from its snapshot and closed trade history.

    PnL and return come from the balance, so they stay correct even when the
    trade history is incomplete; the per-trade figures only cover ``trades``.
    """
    total_pnl = snapshot.balance - snapshot.initial_balance
    return_pct = float(total_pnl / snapshot.initial_balance * 100)

    stats = PerformanceStats(
        initial_balance=snapshot.initial_balance,
        balance=snapshot.balance,
        total_pnl=total_pnl,
        return_pct=return_pct,
        total_trades=len(trades),
        win_rate=0.0,
        max_drawdown=max_drawdown(equity_frame(snapshot)["equity"]),
    )
    if not trades:
        return stats

    frame = pd.DataFrame([trade.to_dict() for trade in trades])
    net = frame["pnl_after_fee"]
    stats.win_rate = float((net > 0).mean())
    stats.total_fees = sum(frame["fee"], Decimal("0"))
    stats.best_trade = max(net)
    stats.worst_trade = min(net)
    stats.trades_by_reason = {
        str(reason): int(count) for reason, count in frame["reason"].value_counts().items()
    }
    return stats
