#! /usr/bin/env python3
# src/manual_trader/utils/logger.py
"""
Module: manual_trader.utils
JSON log lines for the trading desk, one object per record.

Position events attach their fields through ``extra=event_fields(...)`` so
that instrument, prices and PnL land as top-level keys next to the message.
"""
import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from manual_trader.utils.exceptions import LoggingError

DEFAULT_MAX_BYTES = 10_485_760  # 10MB


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON object."""

    def __init__(self, *args, include_extra_fields: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["error"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": self.formatException(record.exc_info),
            }

        fields = getattr(record, "extra_fields", None)
        if self.include_extra_fields and fields:
            # Reserved keys win over event fields of the same name
            entry = {**fields, **entry}

        return json.dumps(entry, default=str)


def setup_logging(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = 5,
) -> logging.Logger:
    """Configure ``name`` with a JSON console handler and an optional rotating file.

    Safe to call repeatedly: a second call only adjusts the level and adds a
    file handler for a path not yet attached.

    Raises:
        LoggingError: If the level name is unknown
    """
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        raise LoggingError(f"Invalid log level: {log_level}")

    logger = logging.getLogger(name)
    logger.setLevel(level)
    formatter = StructuredFormatter()

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        attached = {getattr(h, "baseFilename", None) for h in logger.handlers}
        if str(path.resolve()) not in attached:
            rotating = logging.handlers.RotatingFileHandler(
                path, maxBytes=max_bytes, backupCount=backup_count
            )
            rotating.setFormatter(formatter)
            logger.addHandler(rotating)

    return logger


def event_fields(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping consumed by StructuredFormatter."""
    return {"extra_fields": fields}
