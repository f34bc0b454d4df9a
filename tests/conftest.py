#! /usr/bin/env python3
# tests/conftest.py
"""
Module: tests
Provides test configuration and shared fixtures for all test types.
"""
import logging
import os
import sys
from decimal import Decimal

import pytest

# Add src to Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
src_path = os.path.join(project_root, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from manual_trader.config.settings import Settings
from manual_trader.trading.position_manager import PositionManager
from manual_trader.trading.position_store import PositionStore
from manual_trader.utils.error_handler import reset_error_counts

START_TS = 1_700_000_000


class FakeClock:
    """Deterministic clock advanced by hand"""

    def __init__(self, start: float = START_TS):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingPersistence:
    """Captures scheduled snapshots instead of writing them"""

    def __init__(self):
        self.jobs = []

    def schedule(self, snapshot, closed_trade=None) -> int:
        self.jobs.append((snapshot, closed_trade))
        return len(self.jobs)


@pytest.fixture
def logger():
    return logging.getLogger("Test")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return PositionStore.fresh(Decimal("10000"), START_TS)


@pytest.fixture
def recorder():
    return RecordingPersistence()


@pytest.fixture
def manager(store, recorder, logger, clock):
    return PositionManager(store, persistence=recorder, logger=logger, clock=clock)


@pytest.fixture
def settings_data(tmp_path):
    return {
        "trading": {"initial_balance": 10000},
        "persistence": {
            "snapshot_path": str(tmp_path / "manual_trades.json"),
            "equity_path": str(tmp_path / "manual_trades_equity.json"),
            "journal_path": str(tmp_path / "data" / "manual_trades.db"),
        },
        "logging": {"level": "DEBUG"},
    }


@pytest.fixture
def settings(settings_data):
    return Settings.from_dict(settings_data)


@pytest.fixture(autouse=True)
def clear_error_counts():
    reset_error_counts()
    yield
    reset_error_counts()
