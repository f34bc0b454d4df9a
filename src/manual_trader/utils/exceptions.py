#! /usr/bin/env python3
# src/manual_trader/utils/exceptions.py
"""
Module: manual_trader.utils
Provides custom exceptions.
"""


# trading error class
class TradingError(Exception):
    """Base class for trading system exceptions"""

    pass


class PositionError(TradingError):
    """Exception related to position management."""

    pass


class DuplicatePositionError(PositionError):
    """Raised when an open is requested for an instrument that is already open"""

    def __init__(self, instrument: str):
        super().__init__(f"Position already exists for {instrument}")
        self.instrument = instrument


class PositionNotFoundError(PositionError):
    """Raised when a close is requested for an instrument with no open position"""

    def __init__(self, instrument: str):
        super().__init__(f"No open position for {instrument}")
        self.instrument = instrument


class ValidationError(TradingError):
    """Exception raised for validation-related errors."""

    pass


class InvalidInputError(ValidationError):
    """Raised when a numeric input is missing, malformed or non-finite"""

    pass


class InvalidNotionalError(InvalidInputError):
    """Raised when the notional amount is not strictly positive"""

    pass


class InvalidFeePctError(InvalidInputError):
    """Raised when the fee percentage is outside the allowed range"""

    pass


class InvalidPriceError(InvalidInputError):
    """Raised when a price is not strictly positive"""

    pass


class PersistenceError(TradingError):
    """Raised when a snapshot or journal write fails"""

    pass


class SnapshotFormatError(TradingError):
    """Raised when a persisted snapshot cannot be accepted as-is"""

    pass


class ConfigError(TradingError):
    """Raised when the configuration is missing or invalid"""

    pass


class LoggingError(Exception):
    """Raised when logging cannot be configured"""

    pass
