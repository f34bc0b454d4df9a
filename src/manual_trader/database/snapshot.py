#!/usr/bin/env python3
# src/manual_trader/database/snapshot.py
"""
Module: manual_trader.database
Versioned JSON schema for persisted account snapshots.

Version 1 is the format written before fees and notionals were tracked per
position: no ``version`` key, and trades may lack ``fee_pct`` and
``notional`` (some carry the notional as ``manual_amount``). A version 1
file whose trades all carry both fields is read as-is; any other is only
accepted after ``migrate_snapshot`` has filled the missing fields.

Amounts are Decimals in memory and plain JSON numbers on disk, written and
read with simplejson's ``use_decimal`` so no digits are lost on a restart.
"""
import logging
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Union

import simplejson

from manual_trader.trading.position import Position
from manual_trader.trading.position_store import AccountSnapshot
from manual_trader.utils.exceptions import InvalidInputError, SnapshotFormatError
from manual_trader.utils.logger import event_fields
from manual_trader.utils.numeric_handler import NumericHandler

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 2
LEGACY_FEE_PCT = Decimal("0.1")
TRADE_FIELDS = (
    "pair",
    "entry_price",
    "size",
    "open_ts",
    "stop_loss",
    "take_profit",
    "fee_pct",
    "notional",
)

_nh = NumericHandler()


def snapshot_to_dict(snapshot: AccountSnapshot) -> Dict[str, Any]:
    """Serialize a snapshot to the current JSON layout."""
    return {
        "version": SNAPSHOT_VERSION,
        "initial_balance": snapshot.initial_balance,
        "balance": snapshot.balance,
        "trades": {
            instrument: position_to_dict(position)
            for instrument, position in snapshot.positions.items()
        },
        "equity_curve": equity_to_list(snapshot.equity_curve),
    }


def equity_to_list(equity_curve) -> List[List[Any]]:
    return [[int(ts), equity] for ts, equity in equity_curve]


def position_to_dict(position: Position) -> Dict[str, Any]:
    return {
        "pair": position.instrument,
        "entry_price": position.entry_price,
        "size": position.size,
        "open_ts": position.opened_at,
        "stop_loss": position.stop_loss,
        "take_profit": position.take_profit,
        "fee_pct": position.fee_pct,
        "notional": position.notional,
    }


def snapshot_version(data: Dict[str, Any]) -> int:
    version = data.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool):
        raise SnapshotFormatError(f"Invalid snapshot version: {version!r}")
    return version


def needs_migration(data: Dict[str, Any]) -> bool:
    """True when the snapshot predates the current schema and some trade lacks
    ``fee_pct`` or ``notional``."""
    if snapshot_version(data) >= SNAPSHOT_VERSION:
        return False
    trades = data.get("trades")
    if not isinstance(trades, dict):
        return True
    return any(
        not isinstance(trade, dict) or "fee_pct" not in trade or "notional" not in trade
        for trade in trades.values()
    )


def migrate_snapshot(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upgrade a version 1 snapshot to the current schema.

    Missing ``fee_pct`` defaults to 0.1. Missing ``notional`` is taken from
    ``manual_amount`` when present, otherwise ``entry_price * size``.

    Returns:
        A new dict; the input is left untouched.

    Raises:
        SnapshotFormatError: If the snapshot is newer than this code or its
            trades cannot be read
    """
    version = snapshot_version(data)
    if version > SNAPSHOT_VERSION:
        raise SnapshotFormatError(
            f"Snapshot version {version} is newer than supported {SNAPSHOT_VERSION}"
        )
    if version == SNAPSHOT_VERSION:
        return dict(data)

    trades = data.get("trades") or {}
    if not isinstance(trades, dict):
        raise SnapshotFormatError("Snapshot 'trades' must be an object")

    migrated = {}
    for instrument, trade in trades.items():
        if not isinstance(trade, dict):
            raise SnapshotFormatError(f"Trade entry for {instrument} must be an object")
        trade = dict(trade)
        trade.setdefault("pair", instrument)
        if "fee_pct" not in trade:
            trade["fee_pct"] = LEGACY_FEE_PCT
        if "notional" not in trade:
            if "manual_amount" in trade:
                trade["notional"] = trade["manual_amount"]
            else:
                try:
                    entry_price = _nh.convert_to_decimal(trade["entry_price"], "entry_price")
                    size = _nh.convert_to_decimal(trade["size"], "size")
                except (KeyError, InvalidInputError) as e:
                    raise SnapshotFormatError(
                        f"Cannot derive notional for {instrument}: {e}"
                    ) from e
                trade["notional"] = entry_price * size
        trade.pop("manual_amount", None)
        migrated[instrument] = trade

    logger.info(
        f"Migrated snapshot from version {version} to {SNAPSHOT_VERSION}",
        extra=event_fields(migrated_trades=len(migrated)),
    )
    return {**data, "version": SNAPSHOT_VERSION, "trades": migrated}


def snapshot_from_dict(data: Dict[str, Any], allow_migration: bool = False) -> AccountSnapshot:
    """
    Build an AccountSnapshot from decoded JSON.

    Args:
        data: Decoded snapshot object
        allow_migration: Run ``migrate_snapshot`` on older snapshots instead
            of rejecting them

    Raises:
        SnapshotFormatError: If an older snapshot lacks per-trade fees or notionals
            and migration is not allowed, or if any field is missing or invalid
    """
    if not isinstance(data, dict):
        raise SnapshotFormatError("Snapshot must be a JSON object")

    version = snapshot_version(data)
    if needs_migration(data):
        if not allow_migration:
            raise SnapshotFormatError(
                f"Snapshot version {version} predates version "
                f"{SNAPSHOT_VERSION} (fee_pct/notional per trade); "
                "enable the legacy snapshot migration to load it"
            )
        data = migrate_snapshot(data)
    elif version > SNAPSHOT_VERSION:
        raise SnapshotFormatError(
            f"Snapshot version {version} is newer than supported "
            f"{SNAPSHOT_VERSION}"
        )

    try:
        initial_balance = _nh.convert_to_decimal(data["initial_balance"], "initial_balance")
        balance = _nh.convert_to_decimal(data["balance"], "balance")
        trades = data["trades"]
        equity_raw = data["equity_curve"]
        if not isinstance(trades, dict) or not isinstance(equity_raw, list):
            raise SnapshotFormatError("Snapshot 'trades' or 'equity_curve' has the wrong type")

        positions = {
            instrument: _position_from_dict(instrument, trade)
            for instrument, trade in trades.items()
        }
        equity_curve = tuple(
            (int(point[0]), _nh.convert_to_decimal(point[1], "equity"))
            for point in equity_raw
        )
    except SnapshotFormatError:
        raise
    except KeyError as e:
        raise SnapshotFormatError(f"Snapshot is missing field {e}") from e
    except (InvalidInputError, ValueError, TypeError, IndexError) as e:
        raise SnapshotFormatError(f"Invalid snapshot: {e}") from e

    return AccountSnapshot(
        initial_balance=initial_balance,
        balance=balance,
        positions=MappingProxyType(positions),
        equity_curve=equity_curve,
    )


def _position_from_dict(instrument: str, trade: Dict[str, Any]) -> Position:
    if not isinstance(trade, dict):
        raise SnapshotFormatError(f"Trade entry for {instrument} must be an object")
    missing = [name for name in TRADE_FIELDS if name not in trade]
    if missing:
        raise SnapshotFormatError(
            f"Trade {instrument} is missing fields: {', '.join(missing)}"
        )
    if trade["pair"] != instrument:
        raise SnapshotFormatError(
            f"Trade key {instrument} does not match pair {trade['pair']}"
        )
    return Position(
        instrument=instrument,
        entry_price=_nh.convert_to_decimal(trade["entry_price"], "entry_price"),
        size=_nh.convert_to_decimal(trade["size"], "size"),
        notional=_nh.convert_to_decimal(trade["notional"], "notional"),
        fee_pct=_nh.convert_to_decimal(trade["fee_pct"], "fee_pct"),
        stop_loss=_nh.convert_to_decimal(trade["stop_loss"], "stop_loss"),
        take_profit=_nh.convert_to_decimal(trade["take_profit"], "take_profit"),
        opened_at=int(trade["open_ts"]),
    )


def load_snapshot(
    path: Union[str, Path], allow_migration: bool = False
) -> Optional[AccountSnapshot]:
    """
    Read a snapshot file.

    Returns:
        The snapshot, or None when the file does not exist

    Raises:
        SnapshotFormatError: If the file is unreadable JSON or fails validation
    """
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = simplejson.load(f, use_decimal=True)
    except simplejson.JSONDecodeError as e:
        raise SnapshotFormatError(f"Failed to parse {path}: {e}") from e
    return snapshot_from_dict(data, allow_migration=allow_migration)
