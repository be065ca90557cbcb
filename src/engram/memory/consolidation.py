"""Consolidation - promote or retire short-term memories."""

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from engram.memory.index import MemoryIndex
from engram.memory.item import Clock, MemoryItem, Tier, utc_now
from engram.memory.store import MemoryStore

logger = structlog.get_logger(__name__)

PROMOTION_ACCESS_COUNT = 3
RETIREMENT_IMPORTANCE = 0.3


@dataclass
class ConsolidationResult:
    """Outcome of one consolidation sweep."""

    processed: int = 0
    promoted: list[str] = field(default_factory=list)
    forgotten: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "promoted": len(self.promoted),
            "forgotten": len(self.forgotten),
            "retained": len(self.retained),
            "failed": len(self.failed),
        }


class Consolidator:
    """Drains the short-term candidate queue.

    Eligibility is re-derived from the item's state at sweep time. Items
    that stay in short-term memory go back on the queue for the next cycle.
    """

    def __init__(
        self,
        store: MemoryStore,
        index: MemoryIndex,
        *,
        long_term_threshold: float,
        short_term_seconds: float,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.index = index
        self.long_term_threshold = long_term_threshold
        self.short_term_seconds = short_term_seconds
        self.clock = clock
        self.consolidation_count = 0
        self.forgetting_count = 0

    def should_promote(self, item: MemoryItem) -> bool:
        return (
            item.importance >= self.long_term_threshold
            or item.access_count >= PROMOTION_ACCESS_COUNT
            or "important" in item.tags
        )

    def should_retire(self, item: MemoryItem, now: datetime) -> bool:
        return (
            item.age_seconds(now) > self.short_term_seconds
            and item.importance < RETIREMENT_IMPORTANCE
        )

    def sweep(self, now: datetime | None = None) -> ConsolidationResult:
        now = now or self.clock()
        result = ConsolidationResult()

        for item_id in self.store.short_term.drain_queue():
            try:
                self._consolidate_one(item_id, now, result)
            except Exception as e:
                result.failed.append(item_id)
                logger.error(
                    "consolidation_item_failed",
                    memory_id=item_id,
                    error=f"{type(e).__name__}: {e}",
                )
                if self.store.short_term.get(item_id) is not None:
                    self.store.short_term.enqueue(item_id)

        logger.debug("consolidation_completed", **result.to_dict())
        return result

    def _consolidate_one(self, item_id: str, now: datetime, result: ConsolidationResult) -> None:
        with self.store.lock:
            item = self.store.short_term.get(item_id)
            if item is None:
                return
            result.processed += 1

            if self.should_promote(item):
                self.store.move(item_id, Tier.SHORT_TERM, Tier.LONG_TERM)
                self.consolidation_count += 1
                result.promoted.append(item_id)
                logger.debug("memory_consolidated", memory_id=item_id)
            elif self.should_retire(item, now):
                self.store.short_term.delete(item_id)
                self.index.forget(item_id)
                self.forgetting_count += 1
                result.forgotten.append(item_id)
                logger.debug("short_term_memory_forgotten", memory_id=item_id)
            else:
                self.store.short_term.enqueue(item_id)
                result.retained.append(item_id)
