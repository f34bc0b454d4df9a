#! /usr/bin/env python3
# src/manual_trader/config/settings.py
"""
Module: manual_trader.config
Provides configuration management.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from manual_trader.utils.exceptions import ConfigError, InvalidInputError
from manual_trader.utils.numeric_handler import NumericHandler


@dataclass
class TradingSettings:
    initial_balance: Decimal = Decimal("10000")
    default_fee_pct: Decimal = Decimal("0.26")
    default_notional: Decimal = Decimal("100")
    min_notional: Decimal = Decimal("10")
    default_stop_loss_pct: Decimal = Decimal("2")
    default_take_profit_pct: Decimal = Decimal("5")
    max_fee_pct: Decimal = Decimal("5")


@dataclass
class PersistenceSettings:
    snapshot_path: str = "manual_trades.json"
    equity_path: Optional[str] = "manual_trades_equity.json"
    journal_path: Optional[str] = "data/manual_trades.db"
    migrate_legacy_snapshot: bool = False


@dataclass
class LogSettings:
    level: str = "INFO"
    file_path: Optional[str] = None
    max_size: int = 10_485_760  # 10MB
    backup_count: int = 5


class Settings:
    """Central configuration management"""

    def __init__(self, config_path: Optional[Union[str, Path]] = None, data: Optional[Dict[str, Any]] = None):
        self.config_path = Path(config_path) if config_path else None
        self.logger = logging.getLogger("Settings")
        self.nh = NumericHandler(self.logger)
        self._settings: Dict[str, Any] = {}
        if data is not None:
            self._settings = dict(data)
        elif self.config_path is not None:
            self._load_config()
        self._validate_settings()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        return cls(data=data)

    def _load_config(self) -> None:
        """Load configuration from YAML file"""
        try:
            with open(self.config_path) as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {self.config_path}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config {self.config_path} must be a mapping")
        self._settings = loaded

    def _validate_settings(self) -> None:
        """Validate section types and value ranges"""
        for section in ("trading", "persistence", "logging"):
            value = self._settings.get(section, {})
            if value is not None and not isinstance(value, dict):
                raise ConfigError(f"Setting {section} must be a dictionary")

        trading = self.trading
        if trading.initial_balance <= 0:
            raise ConfigError("trading.initial_balance must be positive")
        if not Decimal("0") < trading.max_fee_pct <= Decimal("5"):
            raise ConfigError("trading.max_fee_pct must be within (0, 5]")
        if not Decimal("0") <= trading.default_fee_pct <= trading.max_fee_pct:
            raise ConfigError("trading.default_fee_pct must be within [0, max_fee_pct]")
        if trading.min_notional <= 0:
            raise ConfigError("trading.min_notional must be positive")
        if trading.default_notional < trading.min_notional:
            raise ConfigError("trading.default_notional must be at least min_notional")
        if not Decimal("0") <= trading.default_stop_loss_pct < Decimal("100"):
            raise ConfigError("trading.default_stop_loss_pct must be within [0, 100)")
        if trading.default_take_profit_pct < 0:
            raise ConfigError("trading.default_take_profit_pct must not be negative")

        if not self.persistence.snapshot_path:
            raise ConfigError("persistence.snapshot_path is required")

        level = logging.getLevelName(self.logging.level.upper())
        if not isinstance(level, int):
            raise ConfigError(f"Invalid logging.level: {self.logging.level}")

    def _section(self, name: str) -> Dict[str, Any]:
        return self._settings.get(name) or {}

    def _decimal(self, section: Dict[str, Any], key: str, default: Decimal) -> Decimal:
        if key not in section:
            return default
        try:
            return self.nh.convert_to_decimal(section[key], key)
        except InvalidInputError as e:
            raise ConfigError(f"Invalid value for {key}: {e}") from e

    @property
    def trading(self) -> TradingSettings:
        """Get trading defaults and limits"""
        cfg = self._section("trading")
        defaults = TradingSettings()
        return TradingSettings(
            initial_balance=self._decimal(cfg, "initial_balance", defaults.initial_balance),
            default_fee_pct=self._decimal(cfg, "default_fee_pct", defaults.default_fee_pct),
            default_notional=self._decimal(cfg, "default_notional", defaults.default_notional),
            min_notional=self._decimal(cfg, "min_notional", defaults.min_notional),
            default_stop_loss_pct=self._decimal(
                cfg, "default_stop_loss_pct", defaults.default_stop_loss_pct
            ),
            default_take_profit_pct=self._decimal(
                cfg, "default_take_profit_pct", defaults.default_take_profit_pct
            ),
            max_fee_pct=self._decimal(cfg, "max_fee_pct", defaults.max_fee_pct),
        )

    @property
    def persistence(self) -> PersistenceSettings:
        """Get persistence settings"""
        cfg = self._section("persistence")
        defaults = PersistenceSettings()
        return PersistenceSettings(
            snapshot_path=cfg.get("snapshot_path", defaults.snapshot_path),
            equity_path=cfg.get("equity_path", defaults.equity_path),
            journal_path=cfg.get("journal_path", defaults.journal_path),
            migrate_legacy_snapshot=bool(
                cfg.get("migrate_legacy_snapshot", defaults.migrate_legacy_snapshot)
            ),
        )

    @property
    def logging(self) -> LogSettings:
        """Get logging settings"""
        log_config = self._section("logging")
        return LogSettings(
            level=str(log_config.get("level", "INFO")),
            file_path=log_config.get("file_path"),
            max_size=int(log_config.get("max_size", 10_485_760)),
            backup_count=int(log_config.get("backup_count", 5)),
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Safely get a configuration value"""
        return self._settings.get(key, default)
