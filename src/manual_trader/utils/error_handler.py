#! /usr/bin/env python3
# src/manual_trader/utils/error_handler.py
"""
Module: manual_trader.utils
Provides error handling functionality.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Dict

_error_counts: Dict[str, int] = defaultdict(int)


def handle_error(exception, context, logger, **kwargs):
    """Log an error with its context and count it by type"""
    _error_counts[exception.__class__.__name__] += 1
    fields = dict(kwargs.get("metadata") or {})
    fields.setdefault("error_type", exception.__class__.__name__)
    fields.setdefault("context", context)
    logger.error(
        f"Error in {context}: {exception}",
        exc_info=kwargs.get("exc_info", True),
        extra={"extra_fields": fields},
    )


async def handle_error_async(exception, context, logger, **kwargs):
    """Async variant of handle_error that yields control back to the loop"""
    handle_error(exception, context, logger, **kwargs)
    await asyncio.sleep(0)


def get_error_counts() -> Dict[str, int]:
    """Return a copy of the per-type error counters"""
    return dict(_error_counts)


def reset_error_counts() -> None:
    _error_counts.clear()
