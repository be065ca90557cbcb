"""
Pytest Configuration and Shared Fixtures.

This module provides common fixtures for all tests:

- clock: Controllable clock injected into the memory layer
- memory_config: Memory settings with persistence pointed at tmp_path
- store / index: Bare tier store and index
- layer: Initialized MemoryLayer, shut down after the test
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from engram.config.settings import MemorySettings
from engram.memory.index import MemoryIndex
from engram.memory.item import MemoryItem
from engram.memory.layer import MemoryLayer
from engram.memory.store import MemoryStore


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, hours: float = 0) -> datetime:
        self.now += timedelta(seconds=seconds, hours=hours)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Return a clock frozen at a fixed instant."""
    return FakeClock()


@pytest.fixture
def memory_config(tmp_path) -> MemorySettings:
    """Return memory settings that never touch the home directory."""
    return MemorySettings(
        persistence_enabled=False,
        memory_file=tmp_path / "memory_store.json",
        random_seed=7,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore(working_capacity=7, episodic_retention=100)


@pytest.fixture
def index() -> MemoryIndex:
    return MemoryIndex()


@pytest.fixture
def make_item(clock):
    """Factory for items stamped with the fake clock."""

    def _make(content="note alpha", **kwargs) -> MemoryItem:
        kwargs.setdefault("now", clock())
        return MemoryItem.create(content, **kwargs)

    return _make


@pytest.fixture
async def layer(memory_config, clock):
    """Initialized memory layer with a seeded random source."""
    memory_layer = MemoryLayer(memory_config, clock=clock, rng=random.Random(7))
    await memory_layer.initialize()
    yield memory_layer
    await memory_layer.shutdown()
