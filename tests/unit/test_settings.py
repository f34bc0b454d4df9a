#! /usr/bin/env python3
# tests/unit/test_settings.py
"""
Module: tests.unit
Provides unit testing functionality for YAML settings.
"""
from decimal import Decimal

import pytest

from manual_trader.config.settings import Settings
from manual_trader.utils.exceptions import ConfigError


def test_defaults_without_config():
    settings = Settings()
    assert settings.trading.initial_balance == Decimal("10000")
    assert settings.trading.default_fee_pct == Decimal("0.26")
    assert settings.trading.min_notional == Decimal("10")
    assert settings.persistence.snapshot_path == "manual_trades.json"
    assert settings.persistence.migrate_legacy_snapshot is False
    assert settings.logging.level == "INFO"


def test_load_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "trading:\n"
        "  initial_balance: 5000\n"
        "  default_fee_pct: 0.1\n"
        "persistence:\n"
        "  snapshot_path: state.json\n"
        "  migrate_legacy_snapshot: true\n"
        "logging:\n"
        "  level: debug\n"
    )
    settings = Settings(path)

    assert settings.trading.initial_balance == Decimal("5000")
    assert settings.trading.default_fee_pct == Decimal("0.1")
    assert settings.trading.default_notional == Decimal("100")
    assert settings.persistence.snapshot_path == "state.json"
    assert settings.persistence.migrate_legacy_snapshot is True
    assert settings.get("logging") == {"level": "debug"}


def test_empty_yaml_uses_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("")
    assert Settings(path).trading.max_fee_pct == Decimal("5")


@pytest.mark.parametrize(
    "data",
    [
        {"trading": {"initial_balance": 0}},
        {"trading": {"max_fee_pct": 6}},
        {"trading": {"default_fee_pct": 3, "max_fee_pct": 2}},
        {"trading": {"min_notional": 500}},
        {"trading": {"default_stop_loss_pct": 100}},
        {"trading": {"default_take_profit_pct": -1}},
        {"trading": {"initial_balance": "abc"}},
        {"trading": ["not", "a", "mapping"]},
        {"persistence": {"snapshot_path": ""}},
        {"logging": {"level": "LOUD"}},
    ],
)
def test_invalid_settings(data):
    with pytest.raises(ConfigError):
        Settings.from_dict(data)


def test_unreadable_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("trading: [unclosed")
    with pytest.raises(ConfigError):
        Settings(path)

    with pytest.raises(ConfigError):
        Settings(tmp_path / "missing.yaml")


def test_non_mapping_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigError):
        Settings(path)
