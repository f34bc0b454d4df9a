#! /usr/bin/env python3
# tests/unit/test_position_manager.py
"""
Module: tests.unit
Provides unit testing functionality for opening, closing and auto-closing positions.
"""
import asyncio
from decimal import Decimal

import pytest

from manual_trader.trading.position import CloseReason
from manual_trader.utils.exceptions import (
    DuplicatePositionError,
    InvalidFeePctError,
    InvalidInputError,
    InvalidNotionalError,
    InvalidPriceError,
    PositionNotFoundError,
)


async def open_btc(manager, **overrides):
    params = dict(
        instrument="BTC/USD",
        current_price=Decimal("50000"),
        notional=Decimal("100"),
        fee_pct=Decimal("0.1"),
        stop_loss_pct=Decimal("2"),
        take_profit_pct=Decimal("5"),
    )
    params.update(overrides)
    return await manager.open(**params)


@pytest.mark.asyncio
async def test_open_computes_levels(manager, clock):
    position = await open_btc(manager)

    assert position.size == Decimal("0.002")
    assert position.stop_loss == Decimal("49000")
    assert position.take_profit == Decimal("52500")
    assert position.opened_at == int(clock.now)
    assert manager.has_position("BTC/USD")


@pytest.mark.asyncio
async def test_take_profit_closes_position(manager, store, clock):
    await open_btc(manager)
    clock.advance(60)

    assert await manager.on_price_update("BTC/USD", Decimal("51000")) is None
    trade = await manager.on_price_update("BTC/USD", Decimal("52500"))

    assert trade.reason is CloseReason.TAKE_PROFIT
    assert trade.raw_pnl == Decimal("5")
    assert trade.fee == Decimal("0.1")
    assert trade.pnl_after_fee == Decimal("4.9")
    assert trade.closed_at == int(clock.now)
    assert store.balance == Decimal("10004.9")
    assert store.equity_curve[-1] == (int(clock.now), Decimal("10004.9"))
    assert not manager.has_position("BTC/USD")


@pytest.mark.asyncio
async def test_stop_loss_closes_position(manager, store):
    await open_btc(manager)

    trade = await manager.on_price_update("BTC/USD", "48500")

    assert trade.reason is CloseReason.STOP_LOSS
    assert trade.raw_pnl == Decimal("-3")
    assert trade.pnl_after_fee == Decimal("-3.1")
    assert store.balance == Decimal("9996.9")


@pytest.mark.asyncio
async def test_manual_close(manager, store):
    await open_btc(manager)

    trade = await manager.close("BTC/USD", Decimal("50500"))

    assert trade.reason is CloseReason.MANUAL
    assert trade.raw_pnl == Decimal("1")
    assert trade.pnl_after_fee == Decimal("0.9")
    assert store.balance == Decimal("10000.9")


@pytest.mark.asyncio
async def test_duplicate_open_rejected(manager, store, recorder):
    await open_btc(manager)

    with pytest.raises(DuplicatePositionError):
        await open_btc(manager, current_price=Decimal("51000"))

    assert store.get("BTC/USD").entry_price == Decimal("50000")
    assert len(recorder.jobs) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,error",
    [
        ({"current_price": Decimal("0")}, InvalidPriceError),
        ({"current_price": "nan"}, InvalidPriceError),
        ({"notional": Decimal("-5")}, InvalidNotionalError),
        ({"notional": None}, InvalidNotionalError),
        ({"fee_pct": Decimal("5.5")}, InvalidFeePctError),
        ({"fee_pct": Decimal("-1")}, InvalidFeePctError),
        ({"stop_loss_pct": Decimal("100")}, InvalidInputError),
        ({"take_profit_pct": Decimal("-1")}, InvalidInputError),
        ({"instrument": ""}, InvalidInputError),
    ],
)
async def test_invalid_open_leaves_state_unchanged(manager, store, recorder, overrides, error):
    with pytest.raises(error):
        await open_btc(manager, **overrides)

    assert len(store) == 0
    assert store.balance == Decimal("10000")
    assert recorder.jobs == []


@pytest.mark.asyncio
async def test_price_update_without_position_is_noop(manager, store, recorder):
    assert await manager.on_price_update("ETH/USD", Decimal("2000")) is None
    assert await manager.on_price_update("ETH/USD", "garbage") is None
    assert store.balance == Decimal("10000")
    assert recorder.jobs == []


@pytest.mark.asyncio
async def test_invalid_tick_for_open_position(manager, store):
    await open_btc(manager)
    with pytest.raises(InvalidPriceError):
        await manager.on_price_update("BTC/USD", Decimal("-1"))
    assert manager.has_position("BTC/USD")


@pytest.mark.asyncio
async def test_close_is_not_repeatable(manager, store):
    await open_btc(manager)
    await manager.close("BTC/USD", Decimal("50000"))
    balance = store.balance

    with pytest.raises(PositionNotFoundError):
        await manager.close("BTC/USD", Decimal("50000"))
    assert await manager.on_price_update("BTC/USD", Decimal("40000")) is None
    assert store.balance == balance


@pytest.mark.asyncio
async def test_close_and_stop_race_settles_once(manager, store):
    await open_btc(manager)

    results = await asyncio.gather(
        manager.close("BTC/USD", Decimal("48000")),
        manager.on_price_update("BTC/USD", Decimal("48000")),
        return_exceptions=True,
    )

    trades = [r for r in results if r is not None and not isinstance(r, Exception)]
    assert len(trades) == 1
    assert all(r is None or isinstance(r, PositionNotFoundError) for r in results if r not in trades)
    assert store.balance == Decimal("10000") + trades[0].pnl_after_fee
    assert len(store.equity_curve) == 2


@pytest.mark.asyncio
async def test_zero_percent_levels_prefer_stop_loss(manager):
    await open_btc(manager, stop_loss_pct=Decimal("0"), take_profit_pct=Decimal("0"))
    trade = await manager.on_price_update("BTC/USD", Decimal("50000"))
    assert trade.reason is CloseReason.STOP_LOSS


@pytest.mark.asyncio
async def test_each_mutation_schedules_a_snapshot(manager, recorder):
    await open_btc(manager)
    assert len(recorder.jobs) == 1
    snapshot, closed = recorder.jobs[0]
    assert "BTC/USD" in snapshot.positions
    assert closed is None

    trade = await manager.close("BTC/USD", Decimal("51000"))
    assert len(recorder.jobs) == 2
    snapshot, closed = recorder.jobs[1]
    assert closed is trade
    assert snapshot.positions == {}
    assert snapshot.balance == trade.pnl_after_fee + Decimal("10000")


@pytest.mark.asyncio
async def test_positions_are_independent(manager, store):
    await open_btc(manager)
    await manager.open("ETH/USD", Decimal("2000"), Decimal("100"), Decimal("0.1"), Decimal("2"), Decimal("5"))

    trade = await manager.on_price_update("ETH/USD", Decimal("2100"))

    assert trade.instrument == "ETH/USD"
    assert store.open_instruments() == ["BTC/USD"]


@pytest.mark.asyncio
async def test_snapshot_under_lock(manager):
    await open_btc(manager)
    snapshot = await manager.snapshot()
    assert list(snapshot.positions) == ["BTC/USD"]
    assert snapshot.realized_pnl == Decimal("0")


@pytest.mark.asyncio
@pytest.mark.parametrize("instrument", [["BTC/USD"], {"pair": "BTC/USD"}, None, ""])
async def test_malformed_instrument_rejected(manager, store, instrument):
    await open_btc(manager)

    with pytest.raises(InvalidInputError):
        await manager.on_price_update(instrument, Decimal("48000"))
    with pytest.raises(InvalidInputError):
        await manager.close(instrument, Decimal("48000"))

    assert manager.has_position("BTC/USD")
    assert not manager.has_position(instrument)
    assert store.balance == Decimal("10000")
