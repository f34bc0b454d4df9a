#!/usr/bin/env python3
# src/manual_trader/trading/position_store.py
"""
Module: manual_trader.trading
Account state: open positions keyed by instrument, balance and equity history.
"""
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from manual_trader.trading.position import Position
from manual_trader.utils.exceptions import DuplicatePositionError, PositionNotFoundError

EquityPoint = Tuple[int, Decimal]


@dataclass(frozen=True)
class AccountSnapshot:
    """Immutable copy of the account state at one point in time."""

    initial_balance: Decimal
    balance: Decimal
    positions: Mapping[str, Position]
    equity_curve: Tuple[EquityPoint, ...]

    @property
    def realized_pnl(self) -> Decimal:
        return self.balance - self.initial_balance


class PositionStore:
    """
    Holds at most one open Position per instrument plus the account balance
    and the append-only equity curve.

    The store enforces its own invariants but does no locking; the
    PositionManager is its only writer and serializes access.
    """

    def __init__(
        self,
        initial_balance: Decimal,
        balance: Optional[Decimal] = None,
        positions: Optional[Iterable[Position]] = None,
        equity_curve: Optional[Iterable[EquityPoint]] = None,
    ):
        self._initial_balance = initial_balance
        self._balance = initial_balance if balance is None else balance
        self._positions: Dict[str, Position] = {}
        for position in positions or ():
            self.insert(position)
        self._equity_curve: List[EquityPoint] = list(equity_curve or ())

    @classmethod
    def fresh(cls, initial_balance: Decimal, created_at: int) -> "PositionStore":
        """New account whose equity curve starts at the initial balance."""
        return cls(initial_balance, equity_curve=[(created_at, initial_balance)])

    @classmethod
    def from_snapshot(cls, snapshot: AccountSnapshot) -> "PositionStore":
        return cls(
            snapshot.initial_balance,
            balance=snapshot.balance,
            positions=snapshot.positions.values(),
            equity_curve=snapshot.equity_curve,
        )

    @property
    def initial_balance(self) -> Decimal:
        return self._initial_balance

    @property
    def balance(self) -> Decimal:
        return self._balance

    @property
    def equity_curve(self) -> Tuple[EquityPoint, ...]:
        return tuple(self._equity_curve)

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, instrument: str) -> bool:
        return instrument in self._positions

    def get(self, instrument: str) -> Optional[Position]:
        return self._positions.get(instrument)

    def open_instruments(self) -> List[str]:
        return list(self._positions)

    def insert(self, position: Position) -> None:
        """
        Add a newly opened position.

        Raises:
            DuplicatePositionError: If the instrument already has an open position
        """
        if position.instrument in self._positions:
            raise DuplicatePositionError(position.instrument)
        self._positions[position.instrument] = position

    def settle(self, instrument: str, pnl_after_fee: Decimal, timestamp: int) -> Position:
        """
        Remove a position and book its result in one step.

        The balance moves by exactly ``pnl_after_fee`` and the new balance is
        appended to the equity curve.

        Raises:
            PositionNotFoundError: If nothing is open for the instrument
        """
        if instrument not in self._positions:
            raise PositionNotFoundError(instrument)
        new_balance = self._balance + pnl_after_fee
        position = self._positions.pop(instrument)
        self._balance = new_balance
        self._equity_curve.append((timestamp, new_balance))
        return position

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            initial_balance=self._initial_balance,
            balance=self._balance,
            positions=MappingProxyType(dict(self._positions)),
            equity_curve=tuple(self._equity_curve),
        )
