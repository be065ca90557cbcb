"""Unit tests for background sweep scheduling."""

import pytest

from engram.memory.scheduler import SweepScheduler


class TestSweepScheduler:
    """Test SweepScheduler lifecycle."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = SweepScheduler()
        scheduler.add("noop", lambda: None, 60)

        scheduler.start()
        assert scheduler.running

        await scheduler.stop()
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_scheduler(self):
        scheduler = SweepScheduler()
        scheduler.add("noop", lambda: None, 60)

        scheduler.start()
        first = scheduler._scheduler
        scheduler.start()

        assert scheduler._scheduler is first
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        await SweepScheduler().stop()

    @pytest.mark.asyncio
    async def test_run_now_counts_runs(self):
        scheduler = SweepScheduler()
        scheduler.add("count", lambda: "done", 60)

        assert await scheduler.run_now("count") == "done"
        assert scheduler.runs["count"] == 1

    @pytest.mark.asyncio
    async def test_failed_sweep_returns_none(self):
        def broken():
            raise RuntimeError("boom")

        scheduler = SweepScheduler()
        scheduler.add("broken", broken, 60)

        assert await scheduler.run_now("broken") is None
        assert scheduler.runs["broken"] == 0
