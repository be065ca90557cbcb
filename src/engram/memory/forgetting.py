"""Forgetting - stochastic decay of short-term memories.

Retention follows an Ebbinghaus-style curve ``R = e^(-t * k / S)`` where
``t`` is age in hours, ``k`` the decay factor and ``S`` the memory strength
(importance reinforced by access count). Each sweep removes an item with
probability ``1 - R``, so decay is gradual rather than a hard cut-off.
"""

import math
import random
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from engram.memory.index import MemoryIndex
from engram.memory.item import Clock, MemoryItem, utc_now
from engram.memory.store import MemoryStore

logger = structlog.get_logger(__name__)


def memory_strength(item: MemoryItem) -> float:
    return item.importance * (1 + item.access_count * 0.1)


def forget_probability(item: MemoryItem, age_seconds: float, decay_factor: float) -> float:
    """Probability in [0, 1] that ``item`` is forgotten at the given age."""
    age_hours = max(age_seconds, 0.0) / 3600
    if age_hours == 0:
        return 0.0
    strength = memory_strength(item)
    if strength <= 0:
        return 1.0
    retention = math.exp(-age_hours * decay_factor / strength)
    return 1 - retention


@dataclass
class ForgettingResult:
    examined: int = 0
    forgotten: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, int]:
        return {
            "examined": self.examined,
            "forgotten": len(self.forgotten),
            "failed": len(self.failed),
        }


class Forgetter:
    """Applies the forgetting curve to short-term memory only."""

    def __init__(
        self,
        store: MemoryStore,
        index: MemoryIndex,
        *,
        decay_factor: float,
        rng: random.Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.index = index
        self.decay_factor = decay_factor
        self.rng = rng or random.Random()
        self.clock = clock
        self.forgetting_count = 0

    def probability(self, item: MemoryItem, now: datetime | None = None) -> float:
        now = now or self.clock()
        return forget_probability(item, item.age_seconds(now), self.decay_factor)

    def sweep(self, now: datetime | None = None) -> ForgettingResult:
        now = now or self.clock()
        result = ForgettingResult()

        for item in self.store.short_term.all():
            result.examined += 1
            try:
                if self.rng.random() < self.probability(item, now):
                    with self.store.lock:
                        if self.store.short_term.delete(item.id) is None:
                            continue
                        self.index.forget(item.id)
                    self.forgetting_count += 1
                    result.forgotten.append(item.id)
                    logger.debug("memory_decayed", memory_id=item.id)
            except Exception as e:
                result.failed.append(item.id)
                logger.error(
                    "forgetting_item_failed",
                    memory_id=item.id,
                    error=f"{type(e).__name__}: {e}",
                )

        logger.debug("forgetting_completed", **result.to_dict())
        return result
