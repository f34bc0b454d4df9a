#!/usr/bin/env python3
# src/manual_trader/execution/main_loop.py
"""
Module: manual_trader.execution
Feeds an external price stream into the trading desk.
"""
import logging
from typing import Any, AsyncIterable, Optional, Tuple

from manual_trader.execution.desk import TradingDesk
from manual_trader.utils.error_handler import handle_error_async
from manual_trader.utils.exceptions import ValidationError


async def run_price_loop(
    desk: TradingDesk,
    ticks: AsyncIterable[Tuple[str, Any]],
    logger: Optional[logging.Logger] = None,
) -> int:
    """
    Drain ``(instrument, price)`` ticks until the stream ends or the desk stops.

    A malformed tick is logged and skipped.

    Returns:
        Number of positions closed by stop-loss or take-profit
    """
    logger = logger or logging.getLogger(__name__)
    closed = 0
    async for instrument, price in ticks:
        if not desk.running:
            break
        try:
            trade = await desk.price_update(instrument, price)
        except ValidationError as e:
            await handle_error_async(
                e,
                "run_price_loop",
                logger,
                exc_info=False,
                metadata={"instrument": instrument, "price": repr(price)},
            )
            continue
        if trade is not None:
            closed += 1
    return closed
