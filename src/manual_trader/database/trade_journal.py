#! /usr/bin/env python3
# src/manual_trader/database/trade_journal.py
"""
Module: manual_trader.database
Durable history of closed trades in sqlite.
"""
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from manual_trader.trading.position import CloseReason, ClosedTrade
from manual_trader.utils.exceptions import PersistenceError

_DECIMAL_COLUMNS = (
    "entry_price",
    "exit_price",
    "size",
    "notional",
    "raw_pnl",
    "fee",
    "pnl_after_fee",
)


class TradeJournal:
    """Append-only journal of ClosedTrade records"""

    def __init__(self, db_path: str, logger: Optional[logging.Logger] = None):
        self.db_path = db_path
        self.logger = logger or logging.getLogger(__name__)
        self._initialized = False

    async def initialize(self) -> None:
        """Create the database file and table if needed"""
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS closed_trades (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        instrument TEXT NOT NULL,
                        entry_price TEXT NOT NULL,
                        exit_price TEXT NOT NULL,
                        size TEXT NOT NULL,
                        notional TEXT NOT NULL,
                        raw_pnl TEXT NOT NULL,
                        fee TEXT NOT NULL,
                        pnl_after_fee TEXT NOT NULL,
                        reason TEXT NOT NULL,
                        opened_at INTEGER NOT NULL,
                        closed_at INTEGER NOT NULL
                    )
                """
                )
                await conn.commit()
            self._initialized = True
            self.logger.info(f"Trade journal ready at {self.db_path}")
        except (aiosqlite.Error, OSError) as e:
            raise PersistenceError(f"Failed to initialize trade journal: {e}") from e

    async def record(self, trade: ClosedTrade) -> None:
        """Append one closed trade"""
        if not self._initialized:
            await self.initialize()
        try:
            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute(
                    """
                    INSERT INTO closed_trades (
                        instrument, entry_price, exit_price, size, notional,
                        raw_pnl, fee, pnl_after_fee, reason, opened_at, closed_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        trade.instrument,
                        str(trade.entry_price),
                        str(trade.exit_price),
                        str(trade.size),
                        str(trade.notional),
                        str(trade.raw_pnl),
                        str(trade.fee),
                        str(trade.pnl_after_fee),
                        trade.reason.value,
                        trade.opened_at,
                        trade.closed_at,
                    ),
                )
                await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to record trade for {trade.instrument}: {e}") from e

    async def fetch_trades(
        self, instrument: Optional[str] = None, limit: Optional[int] = None
    ) -> List[ClosedTrade]:
        """Closed trades in the order they were recorded"""
        if not self._initialized:
            await self.initialize()
        query = "SELECT * FROM closed_trades"
        params: List[Any] = []
        if instrument:
            query += " WHERE instrument = ?"
            params.append(instrument)
        query += " ORDER BY id"
        if limit:
            query += " LIMIT ?"
            params.append(int(limit))
        try:
            async with aiosqlite.connect(self.db_path) as conn:
                conn.row_factory = aiosqlite.Row
                async with conn.execute(query, params) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to read trade journal: {e}") from e
        return [self._row_to_trade(dict(row)) for row in rows]

    @staticmethod
    def _row_to_trade(row: Dict[str, Any]) -> ClosedTrade:
        values = {name: Decimal(row[name]) for name in _DECIMAL_COLUMNS}
        return ClosedTrade(
            instrument=row["instrument"],
            reason=CloseReason(row["reason"]),
            opened_at=row["opened_at"],
            closed_at=row["closed_at"],
            **values,
        )
