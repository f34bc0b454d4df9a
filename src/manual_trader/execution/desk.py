#!/usr/bin/env python3
# src/manual_trader/execution/desk.py
"""
Module: manual_trader.execution
Command interface the host application uses to drive manual trading.
"""
import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from manual_trader.accounting.performance import PerformanceStats, calculate_performance
from manual_trader.config.settings import Settings
from manual_trader.database.persistence import PersistenceWriter
from manual_trader.database.snapshot import load_snapshot
from manual_trader.database.trade_journal import TradeJournal
from manual_trader.trading.position import ClosedTrade, Position
from manual_trader.trading.position_manager import PositionManager
from manual_trader.trading.position_store import AccountSnapshot, PositionStore
from manual_trader.utils.exceptions import InvalidFeePctError, InvalidNotionalError
from manual_trader.utils.numeric_handler import NumericHandler


class TradingDesk:
    """
    Owns the account for the lifetime of the process.

    ``start`` loads the persisted snapshot (or creates a fresh account) and
    starts the persistence worker; ``shutdown`` drains pending writes. All
    state changes go through the PositionManager.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self.nh = NumericHandler(self.logger)
        self.journal: Optional[TradeJournal] = None
        self.persistence: Optional[PersistenceWriter] = None
        self.manager: Optional[PositionManager] = None
        self._last_prices: Dict[str, Decimal] = {}
        self._cleanup_lock = asyncio.Lock()
        self.running = False

    async def __aenter__(self) -> "TradingDesk":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    async def start(self) -> None:
        """
        Load or create the account and start persistence.

        Raises:
            SnapshotFormatError: If the persisted snapshot cannot be accepted
            PersistenceError: If the trade journal cannot be initialized
        """
        persistence_cfg = self.settings.persistence
        snapshot = await asyncio.to_thread(
            load_snapshot,
            persistence_cfg.snapshot_path,
            persistence_cfg.migrate_legacy_snapshot,
        )
        if snapshot is None:
            store = PositionStore.fresh(
                self.settings.trading.initial_balance, int(self._clock())
            )
            self.logger.info(
                f"No snapshot at {persistence_cfg.snapshot_path}, starting fresh account"
            )
        else:
            store = PositionStore.from_snapshot(snapshot)
            self.logger.info(
                f"Loaded account from {persistence_cfg.snapshot_path}: "
                f"balance {store.balance}, {len(store)} open positions"
            )

        if persistence_cfg.journal_path:
            self.journal = TradeJournal(persistence_cfg.journal_path, self.logger)
            await self.journal.initialize()

        self.persistence = PersistenceWriter(
            persistence_cfg.snapshot_path,
            equity_path=persistence_cfg.equity_path,
            journal=self.journal,
            logger=self.logger,
        )
        await self.persistence.start()
        self.manager = PositionManager(
            store, persistence=self.persistence, logger=self.logger, clock=self._clock
        )
        self.running = True

    async def shutdown(self) -> None:
        """Flush pending writes and stop the persistence worker."""
        async with self._cleanup_lock:
            if not self.running:
                return
            self.running = False
            if self.persistence is not None:
                self.logger.info(
                    f"Shutting down persistence ({self.persistence.pending} pending writes)"
                )
                await self.persistence.close()
            self.logger.info("Shutdown complete")

    async def open_position(
        self,
        instrument: str,
        current_price: Any,
        notional: Any = None,
        fee_pct: Any = None,
        stop_loss_pct: Any = None,
        take_profit_pct: Any = None,
    ) -> Position:
        """
        Open a position, filling omitted values from the trading settings.

        Raises:
            InvalidNotionalError: If the notional is below the configured minimum
            InvalidFeePctError: If the fee exceeds the configured maximum
            plus everything PositionManager.open raises
        """
        trading = self.settings.trading
        notional = trading.default_notional if notional is None else notional
        fee_pct = trading.default_fee_pct if fee_pct is None else fee_pct
        stop_loss_pct = trading.default_stop_loss_pct if stop_loss_pct is None else stop_loss_pct
        take_profit_pct = (
            trading.default_take_profit_pct if take_profit_pct is None else take_profit_pct
        )

        amount = self.nh.to_decimal(notional)
        if amount is not None and amount.is_finite() and amount < trading.min_notional:
            raise InvalidNotionalError(
                f"notional {amount} is below the minimum of {trading.min_notional}"
            )
        fee = self.nh.to_decimal(fee_pct)
        if fee is not None and fee.is_finite() and fee > trading.max_fee_pct:
            raise InvalidFeePctError(
                f"fee_pct {fee} exceeds the configured maximum of {trading.max_fee_pct}"
            )

        position = await self._manager.open(
            instrument, current_price, notional, fee_pct, stop_loss_pct, take_profit_pct
        )
        self._last_prices[instrument] = position.entry_price
        return position

    async def close_position(self, instrument: str, current_price: Any) -> ClosedTrade:
        trade = await self._manager.close(instrument, current_price)
        self._last_prices.pop(instrument, None)
        return trade

    async def price_update(self, instrument: str, current_price: Any) -> Optional[ClosedTrade]:
        """
        Feed one tick; returns the ClosedTrade if it triggered a stop.

        Last prices are kept for open positions only.
        """
        trade = await self._manager.on_price_update(instrument, current_price)
        if trade is not None:
            self._last_prices.pop(instrument, None)
        elif self._manager.has_position(instrument):
            # The manager validated this price before evaluating it
            self._last_prices[instrument] = self.nh.convert_to_decimal(current_price)
        return trade

    async def snapshot(self) -> AccountSnapshot:
        return await self._manager.snapshot()

    def last_price(self, instrument: str) -> Optional[Decimal]:
        return self._last_prices.get(instrument)

    async def trades_view(self) -> List[Dict[str, Any]]:
        """Open positions marked to the last observed price, for display."""
        snapshot = await self.snapshot()
        view = []
        for instrument, position in snapshot.positions.items():
            current_price = self._last_prices.get(instrument, position.entry_price)
            pnl_pct = (current_price - position.entry_price) / position.entry_price * 100
            view.append(
                {
                    "pair": instrument,
                    "entry_price": float(position.entry_price),
                    "size": float(position.size),
                    "open_ts": position.opened_at,
                    "stop_loss": float(position.stop_loss),
                    "take_profit": float(position.take_profit),
                    "current_price": float(current_price),
                    "pnl_abs": float(position.unrealized_pnl(current_price)),
                    "pnl_pct": float(pnl_pct),
                    "fee_pct": float(position.fee_pct),
                    "notional": float(position.notional),
                }
            )
        return view

    async def equity_curve(self) -> List[List[Any]]:
        snapshot = await self.snapshot()
        return [[ts, float(equity)] for ts, equity in snapshot.equity_curve]

    async def performance(self) -> PerformanceStats:
        """Account statistics over the journal of closed trades."""
        snapshot = await self.snapshot()
        trades: List[ClosedTrade] = []
        if self.journal is not None:
            await self.persistence.flush()
            trades = await self.journal.fetch_trades()
        return calculate_performance(snapshot, trades)

    @property
    def _manager(self) -> PositionManager:
        if self.manager is None:
            raise RuntimeError("TradingDesk.start() has not been called")
        return self.manager
