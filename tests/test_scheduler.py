"""Tests for the tick scheduler."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from event_relay.sync.scheduler import TickScheduler


class TestFire:
    """Tests for a single firing."""

    @pytest.mark.asyncio
    async def test_returns_tick_result(self):
        async def tick():
            return "done"

        assert await TickScheduler(tick).fire() == "done"

    @pytest.mark.asyncio
    async def test_overlapping_fire_is_skipped(self):
        release = asyncio.Event()
        calls = 0

        async def slow_tick():
            nonlocal calls
            calls += 1
            await release.wait()
            return calls

        scheduler = TickScheduler(slow_tick)
        first = asyncio.create_task(scheduler.fire())
        await asyncio.sleep(0)
        assert scheduler.in_progress

        assert await scheduler.fire() is None

        release.set()
        assert await first == 1
        assert calls == 1
        assert not scheduler.in_progress

    @pytest.mark.asyncio
    async def test_exception_is_swallowed_and_guard_released(self):
        async def failing_tick():
            raise RuntimeError("tick exploded")

        scheduler = TickScheduler(failing_tick)
        assert await scheduler.fire() is None
        assert not scheduler.in_progress


class TestRun:
    """Tests for the timer loop."""

    @pytest.mark.asyncio
    async def test_fires_immediately_and_repeatedly(self):
        calls = 0

        async def tick():
            nonlocal calls
            calls += 1

        scheduler = TickScheduler(tick, interval_seconds=0.01)
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.055)
        scheduler.stop()
        await asyncio.wait_for(runner, timeout=1)

        assert calls >= 3

    @pytest.mark.asyncio
    async def test_keeps_firing_after_failure(self):
        calls = 0

        async def tick():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("first tick fails")

        scheduler = TickScheduler(tick, interval_seconds=0.01)
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.05)
        scheduler.stop()
        await asyncio.wait_for(runner, timeout=1)

        assert calls >= 2


class TestNextSlot:
    """Tests for cadence slot arithmetic."""

    def test_on_time(self):
        scheduler = TickScheduler(AsyncMock(), interval_seconds=60)
        assert scheduler.next_slot(100.0, now=100.5) == 160.0

    def test_missed_slots_are_dropped(self):
        scheduler = TickScheduler(AsyncMock(), interval_seconds=60)
        # Loop blocked for three and a half intervals
        assert scheduler.next_slot(100.0, now=310.0) == 340.0

    def test_slot_due_now_is_kept(self):
        scheduler = TickScheduler(AsyncMock(), interval_seconds=60)
        assert scheduler.next_slot(100.0, now=160.0) == 160.0


class TestWaitIdle:
    """Tests for draining in-flight ticks."""

    @pytest.mark.asyncio
    async def test_returns_immediately_when_idle(self):
        scheduler = TickScheduler(AsyncMock())
        await asyncio.wait_for(scheduler.wait_idle(), timeout=1)

    @pytest.mark.asyncio
    async def test_waits_for_tick_in_flight(self):
        release = asyncio.Event()
        finished = []

        async def slow_tick():
            await release.wait()
            finished.append(True)

        scheduler = TickScheduler(slow_tick)
        firing = asyncio.create_task(scheduler.fire())
        await asyncio.sleep(0)

        waiter = asyncio.create_task(scheduler.wait_idle())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        release.set()
        await asyncio.wait_for(waiter, timeout=1)
        assert finished == [True]
        await firing

    @pytest.mark.asyncio
    async def test_stop_then_wait_idle_lets_launched_tick_finish(self):
        release = asyncio.Event()
        finished = []

        async def slow_tick():
            await release.wait()
            finished.append(True)

        scheduler = TickScheduler(slow_tick, interval_seconds=60)
        runner = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.01)
        assert scheduler.in_progress

        scheduler.stop()
        runner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runner
        waiter = asyncio.create_task(scheduler.wait_idle())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        release.set()
        await asyncio.wait_for(waiter, timeout=1)
        assert finished == [True]
