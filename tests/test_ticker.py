"""Tests for latched asyncio tick sources."""

import asyncio

import pytest

from quizmaster.services.ticker import OneShot, Ticker


@pytest.mark.asyncio
async def test_ticker_start_is_latched():
    ticks = []
    ticker = Ticker(0.01, lambda: ticks.append(1), name="t")

    assert ticker.start() is True
    assert ticker.start() is False
    await asyncio.sleep(0.055)
    ticker.stop()
    count = len(ticks)
    await asyncio.sleep(0.03)

    assert count >= 2
    assert len(ticks) == count
    assert not ticker.running


@pytest.mark.asyncio
async def test_ticker_cannot_restart_after_stop():
    ticker = Ticker(0.01, lambda: None)
    ticker.start()
    ticker.stop()

    assert ticker.start() is False


@pytest.mark.asyncio
async def test_ticker_survives_callback_error():
    ticks = []

    def boom():
        ticks.append(1)
        raise RuntimeError("tick failed")

    ticker = Ticker(0.01, boom)
    ticker.start()
    await asyncio.sleep(0.045)
    ticker.stop()

    assert len(ticks) >= 2


@pytest.mark.asyncio
async def test_ticker_stop_from_inside_callback_finishes_callback():
    done = []

    async def callback():
        ticker.stop()
        await asyncio.sleep(0)
        done.append(1)

    ticker = Ticker(0.01, callback)
    ticker.start()
    await asyncio.sleep(0.05)

    assert done == [1]


@pytest.mark.asyncio
async def test_oneshot_fires_once():
    fired = []
    shot = OneShot(lambda: fired.append(1))

    assert shot.schedule(0.01) is True
    assert shot.schedule(0.01) is False
    assert shot.pending
    await asyncio.sleep(0.04)

    assert fired == [1]
    assert not shot.pending


@pytest.mark.asyncio
async def test_oneshot_cancel():
    fired = []
    shot = OneShot(lambda: fired.append(1))
    shot.schedule(0.02)
    shot.cancel()
    await asyncio.sleep(0.04)

    assert fired == []
