#!/usr/bin/env python3
# src/manual_trader/database/persistence.py
"""
Module: manual_trader.database
Ordered, fire-and-forget persistence of account snapshots.

Callers hand over immutable snapshots with ``schedule`` and return at once.
A single worker task drains one FIFO queue, so the Nth scheduled write is
finished before the (N+1)th starts and an older snapshot can never replace
a newer one on disk. A failed write is logged and dropped; the next
successful write brings the durable copy up to date. Closed trades are
journaled independently of the snapshot write of the same job.
"""
import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import simplejson

from manual_trader.database.snapshot import equity_to_list, snapshot_to_dict
from manual_trader.database.trade_journal import TradeJournal
from manual_trader.trading.position import ClosedTrade
from manual_trader.trading.position_store import AccountSnapshot
from manual_trader.utils.error_handler import handle_error_async
from manual_trader.utils.exceptions import PersistenceError
from manual_trader.utils.logger import event_fields


@dataclass(frozen=True)
class PersistenceJob:
    sequence: int
    snapshot: AccountSnapshot
    closed_trade: Optional[ClosedTrade] = None


def write_json_atomic(path: Union[str, Path], payload: Any) -> None:
    """Write JSON to a temp file in the target directory, then rename over the target."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            simplejson.dump(payload, f, indent=2, use_decimal=True)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class PersistenceWriter:
    """Serializes snapshot writes through one in-order queue."""

    def __init__(
        self,
        snapshot_path: Union[str, Path],
        equity_path: Optional[Union[str, Path]] = None,
        journal: Optional[TradeJournal] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.snapshot_path = Path(snapshot_path)
        self.equity_path = Path(equity_path) if equity_path else None
        self.journal = journal
        self.logger = logger or logging.getLogger(__name__)
        self._queue: "asyncio.Queue[PersistenceJob]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._sequence = 0
        self.last_written_sequence = 0
        self.failed_writes = 0
        self.failed_journal_writes = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="persistence-writer")

    def schedule(
        self, snapshot: AccountSnapshot, closed_trade: Optional[ClosedTrade] = None
    ) -> int:
        """
        Queue a snapshot for writing without waiting for it.

        Returns:
            The sequence number assigned to the write
        """
        self._sequence += 1
        self._queue.put_nowait(PersistenceJob(self._sequence, snapshot, closed_trade))
        return self._sequence

    async def flush(self) -> None:
        """Wait until every write scheduled so far has been attempted."""
        await self.start()
        await self._queue.join()

    async def close(self) -> None:
        """Drain the queue, then stop the worker."""
        if self._worker is None and self._queue.empty():
            return
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._write_snapshot(job)
                await self._record_trade(job)
            finally:
                self._queue.task_done()

    async def _write_snapshot(self, job: PersistenceJob) -> None:
        try:
            await asyncio.to_thread(
                write_json_atomic, self.snapshot_path, snapshot_to_dict(job.snapshot)
            )
            if self.equity_path is not None:
                await asyncio.to_thread(
                    write_json_atomic,
                    self.equity_path,
                    equity_to_list(job.snapshot.equity_curve),
                )
        except Exception as e:
            self.failed_writes += 1
            await handle_error_async(
                PersistenceError(f"Snapshot write {job.sequence} dropped: {e}"),
                "PersistenceWriter._write_snapshot",
                self.logger,
                exc_info=False,
                metadata={
                    "sequence": job.sequence,
                    "snapshot_path": str(self.snapshot_path),
                    "cause": e.__class__.__name__,
                },
            )
            return
        self.last_written_sequence = job.sequence
        self.logger.debug(
            f"Snapshot {job.sequence} written to {self.snapshot_path}",
            extra=event_fields(sequence=job.sequence),
        )

    async def _record_trade(self, job: PersistenceJob) -> None:
        # Later snapshots do not carry this trade, so it is journaled even
        # when the snapshot write above failed
        if job.closed_trade is None or self.journal is None:
            return
        try:
            await self.journal.record(job.closed_trade)
        except Exception as e:
            self.failed_journal_writes += 1
            await handle_error_async(
                PersistenceError(
                    f"Journal record for {job.closed_trade.instrument} dropped: {e}"
                ),
                "PersistenceWriter._record_trade",
                self.logger,
                exc_info=False,
                metadata={
                    "sequence": job.sequence,
                    "instrument": job.closed_trade.instrument,
                    "cause": e.__class__.__name__,
                },
            )
