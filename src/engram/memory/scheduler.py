"""Background sweep scheduling.

Consolidation and forgetting run as APScheduler interval jobs on the
running event loop. Each job holds an asyncio lock while it sweeps, so
``stop`` can wait for a sweep in progress to finish instead of cutting it
short.
"""

import asyncio
from typing import Any, Callable

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = structlog.get_logger(__name__)

Sweep = Callable[[], Any]


class SweepScheduler:
    """Owns the periodic sweep jobs of one memory layer."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._jobs: dict[str, tuple[Sweep, float]] = {}
        self._sweep_lock = asyncio.Lock()
        self.runs: dict[str, int] = {}

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def add(self, name: str, sweep: Sweep, interval_seconds: float) -> None:
        """Register a sweep; takes effect on the next ``start``."""
        self._jobs[name] = (sweep, interval_seconds)
        self.runs.setdefault(name, 0)

    def start(self) -> None:
        if self.running:
            return
        scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        for name, (sweep, interval) in self._jobs.items():
            scheduler.add_job(
                self.run_now,
                IntervalTrigger(seconds=interval),
                args=[name],
                id=name,
                name=name,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
        scheduler.start()
        self._scheduler = scheduler
        logger.debug("sweeps_started", jobs=list(self._jobs))

    async def run_now(self, name: str) -> Any:
        """Run one sweep immediately, serialized with any scheduled run."""
        sweep, _ = self._jobs[name]
        async with self._sweep_lock:
            try:
                result = sweep()
                self.runs[name] += 1
                return result
            except Exception as e:
                logger.error("sweep_failed", sweep=name, error=f"{type(e).__name__}: {e}")
                return None

    async def stop(self) -> None:
        """Stop firing new sweeps, then wait for the current one to finish."""
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        async with self._sweep_lock:
            pass
        logger.debug("sweeps_stopped")
