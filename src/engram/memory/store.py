"""Tier ownership - the single synchronized accessor over all five tiers."""

import threading
from datetime import datetime

import structlog

from engram.memory.item import MemoryItem, Tier
from engram.memory.tiers import (
    EpisodicStore,
    LongTermStore,
    SemanticStore,
    ShortTermStore,
    TierStore,
    WorkingStore,
)

logger = structlog.get_logger(__name__)

# Search order used when a caller does not name tiers
ALL_TIERS = (Tier.WORKING, Tier.SHORT_TERM, Tier.LONG_TERM, Tier.EPISODIC, Tier.SEMANTIC)


class MemoryStore:
    """Owns the tier stores and performs cross-tier moves atomically.

    Every move holds ``self.lock`` for its whole duration, so a reader that
    also takes the lock sees the item in exactly one tier.
    """

    def __init__(self, working_capacity: int, episodic_retention: int) -> None:
        self.lock = threading.RLock()
        self.working = WorkingStore(working_capacity)
        self.short_term = ShortTermStore()
        self.long_term = LongTermStore()
        self.episodic = EpisodicStore(episodic_retention)
        self.semantic = SemanticStore()
        self._tiers: dict[Tier, TierStore] = {
            Tier.WORKING: self.working,
            Tier.SHORT_TERM: self.short_term,
            Tier.LONG_TERM: self.long_term,
            Tier.EPISODIC: self.episodic,
            Tier.SEMANTIC: self.semantic,
        }

    def tier(self, tier: Tier) -> TierStore:
        return self._tiers[tier]

    def insert(self, item: MemoryItem, tier: Tier) -> tuple[MemoryItem, list[MemoryItem]]:
        """Place a new item into ``tier``.

        Returns the stored item (semantic dedup may hand back an existing
        one) and any items it displaced: Working items moved to ShortTerm,
        or the oldest episode dropped from a full Episodic tier.
        """
        evicted: list[MemoryItem] = []
        with self.lock:
            if tier is Tier.WORKING:
                while self.working.full:
                    oldest = self.working.pop_least_recent()
                    if oldest is None:
                        break
                    self.short_term.put(oldest)
                    evicted.append(oldest)
                    logger.debug(
                        "working_memory_evicted",
                        memory_id=oldest.id,
                        destination=Tier.SHORT_TERM.value,
                    )
            if tier is Tier.EPISODIC:
                stored = item
                dropped = self.episodic.append(item)
                if dropped is not None:
                    evicted.append(dropped)
            else:
                stored = self._tiers[tier].put(item)
        return stored, evicted

    def locate(self, item_id: str) -> tuple[Tier, MemoryItem] | None:
        """Find the tier currently holding ``item_id``."""
        with self.lock:
            for tier in ALL_TIERS:
                item = self._tiers[tier].get(item_id)
                if item is not None:
                    return tier, item
            return None

    def contains(self, item_id: str) -> bool:
        return self.locate(item_id) is not None

    def remove(self, item_id: str) -> tuple[Tier, MemoryItem] | None:
        """Delete an item from whichever tier holds it."""
        with self.lock:
            found = self.locate(item_id)
            if found is None:
                return None
            tier, _ = found
            item = self._tiers[tier].delete(item_id)
            return (tier, item) if item is not None else None

    def move(self, item_id: str, source: Tier, destination: Tier) -> MemoryItem | None:
        """Atomically move an item between tiers. None if it left ``source``."""
        with self.lock:
            item = self._tiers[source].delete(item_id)
            if item is None:
                return None
            return self._tiers[destination].put(item)

    def touch(self, item: MemoryItem, now: datetime) -> None:
        """Apply a retrieval hit to an item and its tier's recency index."""
        with self.lock:
            item.touch(now)
            if item.source_tier is Tier.WORKING:
                self.working.touch(item.id)

    def distribution(self) -> dict[str, int]:
        return {
            "working": self.working.size(),
            "shortTerm": self.short_term.size(),
            "longTerm": self.long_term.size(),
            "episodic": self.episodic.size(),
            "semantic": self.semantic.size(),
        }

    def total(self) -> int:
        return sum(self.distribution().values())

    def clear_durable(self) -> None:
        """Empty the tiers that snapshots restore."""
        with self.lock:
            self.long_term.clear()
            self.semantic.clear()
            self.episodic.clear()
