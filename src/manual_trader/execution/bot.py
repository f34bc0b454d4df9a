#!/usr/bin/env python3
# src/manual_trader/execution/bot.py
"""
Module: manual_trader.execution
Process entry point: serves JSON-line commands from stdin against a TradingDesk.

Each input line is an object with a ``cmd`` key, e.g.
    {"cmd": "open", "pair": "BTC/USD", "price": "50000", "notional": "100"}
    {"cmd": "price", "pair": "BTC/USD", "price": "52500"}
and each reply is one JSON object on stdout. stdin must be a pipe or terminal.
"""
import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Dict, Optional

import simplejson

from manual_trader.config.settings import Settings
from manual_trader.database.snapshot import position_to_dict
from manual_trader.execution.desk import TradingDesk
from manual_trader.utils.error_handler import handle_error
from manual_trader.utils.exceptions import TradingError
from manual_trader.utils.logger import setup_logging


async def handle_command(desk: TradingDesk, command: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute one command and build its reply.

    TradingError subclasses become ``{"ok": false, ...}`` replies; anything
    else propagates.
    """
    cmd = command.get("cmd")
    try:
        if cmd == "open":
            position = await desk.open_position(
                command.get("pair"),
                command.get("price"),
                notional=command.get("notional"),
                fee_pct=command.get("fee_pct"),
                stop_loss_pct=command.get("stop_loss_pct"),
                take_profit_pct=command.get("take_profit_pct"),
            )
            return {"ok": True, "position": position_to_dict(position)}
        if cmd == "close":
            trade = await desk.close_position(command.get("pair"), command.get("price"))
            return {"ok": True, "trade": trade.to_dict()}
        if cmd == "price":
            trade = await desk.price_update(command.get("pair"), command.get("price"))
            return {"ok": True, "trade": trade.to_dict() if trade else None}
        if cmd == "trades":
            return {"ok": True, "trades": await desk.trades_view()}
        if cmd == "equity":
            return {"ok": True, "equity_curve": await desk.equity_curve()}
        if cmd == "balance":
            snapshot = await desk.snapshot()
            return {
                "ok": True,
                "balance": snapshot.balance,
                "initial_balance": snapshot.initial_balance,
                "realized_pnl": snapshot.realized_pnl,
            }
        if cmd == "performance":
            stats = await desk.performance()
            return {"ok": True, "performance": stats.to_dict()}
    except TradingError as e:
        handle_error(e, f"command {cmd}", desk.logger, exc_info=False)
        return {"ok": False, "error": e.__class__.__name__, "message": str(e)}
    return {"ok": False, "error": "UnknownCommand", "message": f"Unknown command: {cmd!r}"}


def _emit(reply: Dict[str, Any]) -> None:
    sys.stdout.write(simplejson.dumps(reply, use_decimal=True, default=str) + "\n")
    sys.stdout.flush()


async def setup_signal_handlers(stop: asyncio.Event) -> None:
    """Setup signal handlers for graceful shutdown."""
    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop.set)
    except NotImplementedError:
        # Windows doesn't support SIGTERM
        pass


async def _serve_stdin(desk: TradingDesk) -> None:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    while True:
        line = await reader.readline()
        if not line:
            break
        line = line.decode("utf-8", errors="replace").strip()
        if not line:
            continue
        try:
            command = simplejson.loads(line, use_decimal=True)
        except simplejson.JSONDecodeError as e:
            _emit({"ok": False, "error": "MalformedCommand", "message": str(e)})
            continue
        if not isinstance(command, dict):
            _emit({"ok": False, "error": "MalformedCommand", "message": "expected an object"})
            continue
        _emit(await handle_command(desk, command))


async def run_bot(config_path: Optional[str] = None) -> None:
    """Load settings, start the desk and serve commands until EOF or a signal."""
    settings = Settings(config_path)
    log_cfg = settings.logging
    logger = setup_logging(
        "ManualTrader",
        log_level=log_cfg.level,
        log_file=log_cfg.file_path,
        max_bytes=log_cfg.max_size,
        backup_count=log_cfg.backup_count,
    )
    stop = asyncio.Event()
    await setup_signal_handlers(stop)

    async with TradingDesk(settings, logger=logger) as desk:
        serve = asyncio.create_task(_serve_stdin(desk), name="stdin_commands")
        stopper = asyncio.create_task(stop.wait(), name="shutdown_signal")
        done, _ = await asyncio.wait({serve, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if stopper in done:
            logger.info("Received shutdown signal")
        for task in (serve, stopper):
            if not task.done():
                task.cancel()
        if serve in done:
            serve.result()


def main():
    """Entry point with proper asyncio handling."""
    parser = argparse.ArgumentParser(description="Manual trading position engine")
    parser.add_argument("--config", help="Path to the YAML settings file")
    args = parser.parse_args()
    try:
        asyncio.run(run_bot(args.config))
    except KeyboardInterrupt:
        pass  # Handled by signal handlers
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
