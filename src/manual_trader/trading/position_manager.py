#!/usr/bin/env python3
# src/manual_trader/trading/position_manager.py
"""
Module: manual_trader.trading
Opens, closes and auto-closes manual positions with proper concurrency control.
"""
import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Callable, Optional, Type

from manual_trader.database.persistence import PersistenceWriter
from manual_trader.trading.math import FeeCalculator, PnLCalculator
from manual_trader.trading.position import MAX_FEE_PCT, CloseReason, ClosedTrade, Position
from manual_trader.trading.position_store import AccountSnapshot, PositionStore
from manual_trader.trading.stop_evaluator import StopEvaluator
from manual_trader.utils.exceptions import (
    DuplicatePositionError,
    InvalidFeePctError,
    InvalidInputError,
    InvalidNotionalError,
    InvalidPriceError,
    PositionNotFoundError,
)
from manual_trader.utils.numeric_handler import NumericHandler

_ONE = Decimal("1")
_HUNDRED = Decimal("100")


class PositionManager:
    """
    Single writer of the PositionStore.

    Every open, close and price evaluation runs under one asyncio lock and
    performs no awaits between its first and last mutation, so readers see
    the account either before or after an operation, never in between. The
    existence check and removal of a position share that critical section,
    which keeps a manual close and a stop trigger from both settling the
    same position.
    """

    def __init__(
        self,
        store: PositionStore,
        persistence: Optional[PersistenceWriter] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
        stop_evaluator: Optional[StopEvaluator] = None,
    ):
        self.store = store
        self.persistence = persistence
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._lock = asyncio.Lock()
        self.nh = NumericHandler(self.logger)
        self.fees = FeeCalculator(self.nh)
        self.pnl = PnLCalculator()
        self.stop_evaluator = stop_evaluator or StopEvaluator()

    def has_position(self, instrument: str) -> bool:
        return isinstance(instrument, str) and instrument in self.store

    async def open(
        self,
        instrument: str,
        current_price: Any,
        notional: Any,
        fee_pct: Any,
        stop_loss_pct: Any,
        take_profit_pct: Any,
    ) -> Position:
        """
        Open a long position at ``current_price``.

        Raises:
            DuplicatePositionError: If the instrument already has an open position
            InvalidPriceError: If the price is not strictly positive
            InvalidNotionalError: If the notional is not strictly positive
            InvalidFeePctError: If the fee is outside [0, 5] percent
            InvalidInputError: If an input is malformed or a percentage is out of range
        """
        self._check_instrument(instrument)
        price = self._to_decimal(current_price, "current_price", InvalidPriceError)
        if price <= 0:
            raise InvalidPriceError(f"current_price must be positive, got {price}")
        notional = self._to_decimal(notional, "notional", InvalidNotionalError)
        if notional <= 0:
            raise InvalidNotionalError(f"notional must be positive, got {notional}")
        fee_pct = self._to_decimal(fee_pct, "fee_pct", InvalidFeePctError)
        if not Decimal("0") <= fee_pct <= MAX_FEE_PCT:
            raise InvalidFeePctError(f"fee_pct must be within [0, {MAX_FEE_PCT}], got {fee_pct}")
        stop_loss_pct = self._to_decimal(stop_loss_pct, "stop_loss_pct", InvalidInputError)
        if not Decimal("0") <= stop_loss_pct < _HUNDRED:
            raise InvalidInputError(f"stop_loss_pct must be within [0, 100), got {stop_loss_pct}")
        take_profit_pct = self._to_decimal(take_profit_pct, "take_profit_pct", InvalidInputError)
        if take_profit_pct < 0:
            raise InvalidInputError(f"take_profit_pct must not be negative, got {take_profit_pct}")

        async with self._lock:
            if instrument in self.store:
                self.logger.warning(f"Rejected open for {instrument}: position already open")
                raise DuplicatePositionError(instrument)

            position = Position(
                instrument=instrument,
                entry_price=price,
                size=notional / price,
                notional=notional,
                fee_pct=fee_pct,
                stop_loss=price * (_ONE - stop_loss_pct / _HUNDRED),
                take_profit=price * (_ONE + take_profit_pct / _HUNDRED),
                opened_at=self._now(),
            )
            self.store.insert(position)
            self._schedule_persist()

        self.logger.info(
            f"OPEN {instrument} at {price} size {position.size} amount {notional} "
            f"SL={position.stop_loss} TP={position.take_profit} fee={fee_pct}%",
            extra={
                "extra_fields": {
                    "event": "position_opened",
                    "instrument": instrument,
                    "entry_price": str(price),
                    "size": str(position.size),
                    "notional": str(notional),
                    "stop_loss": str(position.stop_loss),
                    "take_profit": str(position.take_profit),
                    "fee_pct": str(fee_pct),
                }
            },
        )
        return position

    async def close(
        self,
        instrument: str,
        current_price: Any,
        reason: CloseReason = CloseReason.MANUAL,
    ) -> ClosedTrade:
        """
        Close the open position for ``instrument`` at ``current_price``.

        Raises:
            PositionNotFoundError: If nothing is open for the instrument
            InvalidInputError: If the instrument is not a non-empty string
            InvalidPriceError: If the price is not strictly positive
        """
        self._check_instrument(instrument)
        price = self._to_decimal(current_price, "current_price", InvalidPriceError)
        if price <= 0:
            raise InvalidPriceError(f"current_price must be positive, got {price}")
        async with self._lock:
            return self._close_locked(instrument, price, reason)

    async def on_price_update(self, instrument: str, current_price: Any) -> Optional[ClosedTrade]:
        """
        Evaluate stop-loss / take-profit for one price tick.

        Instruments without an open position return immediately, so only the
        open-position set is ever evaluated.

        Returns:
            The ClosedTrade when the tick triggered a close, otherwise None
        """
        self._check_instrument(instrument)
        if instrument not in self.store:
            return None
        price = self._to_decimal(current_price, "current_price", InvalidPriceError)
        if price <= 0:
            raise InvalidPriceError(f"current_price must be positive, got {price}")

        async with self._lock:
            # May have been closed while waiting for the lock
            position = self.store.get(instrument)
            if position is None:
                return None
            reason = self.stop_evaluator.evaluate(position, price)
            if reason is None:
                return None
            self.logger.info(
                f"{reason.value} triggered for {instrument} at {price}",
                extra={
                    "extra_fields": {
                        "event": "stop_triggered",
                        "instrument": instrument,
                        "price": str(price),
                        "stop_loss": str(position.stop_loss),
                        "take_profit": str(position.take_profit),
                        "reason": reason.value,
                    }
                },
            )
            return self._close_locked(instrument, price, reason)

    async def snapshot(self) -> AccountSnapshot:
        async with self._lock:
            return self.store.snapshot()

    def _close_locked(self, instrument: str, price: Decimal, reason: CloseReason) -> ClosedTrade:
        position = self.store.get(instrument)
        if position is None:
            self.logger.warning(f"No existing position for instrument: {instrument}")
            raise PositionNotFoundError(instrument)

        raw_pnl = self.pnl.realized_pnl(position.entry_price, price, position.size)
        fee = self.fees.fee(position.notional, position.fee_pct)
        net_pnl = self.pnl.pnl_after_fee(raw_pnl, fee)
        closed_at = self._now()

        self.store.settle(instrument, net_pnl, closed_at)
        trade = ClosedTrade(
            instrument=instrument,
            entry_price=position.entry_price,
            exit_price=price,
            size=position.size,
            notional=position.notional,
            raw_pnl=raw_pnl,
            fee=fee,
            pnl_after_fee=net_pnl,
            reason=reason,
            opened_at=position.opened_at,
            closed_at=closed_at,
        )
        self._schedule_persist(trade)

        self.logger.info(
            f"CLOSED {instrument} at {price} Gross PnL={raw_pnl:.2f} Fee={fee:.2f} "
            f"Net PnL={net_pnl:.2f} ({reason.value})",
            extra={
                "extra_fields": {
                    "event": "position_closed",
                    "instrument": instrument,
                    "exit_price": str(price),
                    "raw_pnl": str(raw_pnl),
                    "fee": str(fee),
                    "pnl_after_fee": str(net_pnl),
                    "balance": str(self.store.balance),
                    "reason": reason.value,
                }
            },
        )
        return trade

    def _schedule_persist(self, closed_trade: Optional[ClosedTrade] = None) -> None:
        if self.persistence is not None:
            self.persistence.schedule(self.store.snapshot(), closed_trade)

    def _to_decimal(self, value: Any, name: str, error_cls: Type[InvalidInputError]) -> Decimal:
        try:
            return self.nh.convert_to_decimal(value, name)
        except InvalidInputError as e:
            if error_cls is InvalidInputError:
                raise
            raise error_cls(str(e)) from e

    @staticmethod
    def _check_instrument(instrument: Any) -> None:
        if not instrument or not isinstance(instrument, str):
            raise InvalidInputError(f"Invalid instrument: {instrument!r}")

    def _now(self) -> int:
        return int(self._clock())
