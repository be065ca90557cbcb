"""Tier stores - the five retention containers."""

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict, deque
from typing import Iterator

from engram.errors import CapacityInvariantViolation
from engram.memory.item import MemoryItem, Tier, semantic_key


class TierStore(ABC):
    """Common interface for tier containers.

    Each store serializes its own mutations with a re-entrant lock so the
    background sweeps can share it with the foreground path.
    """

    tier: Tier

    def __init__(self) -> None:
        self.lock = threading.RLock()

    @abstractmethod
    def put(self, item: MemoryItem) -> MemoryItem:
        """Insert an item; returns the item now held by the store."""
        ...

    @abstractmethod
    def get(self, item_id: str) -> MemoryItem | None:
        ...

    @abstractmethod
    def delete(self, item_id: str) -> MemoryItem | None:
        """Remove an item by id; returns it, or None if absent."""
        ...

    @abstractmethod
    def all(self) -> list[MemoryItem]:
        """Snapshot of the items currently held."""
        ...

    def size(self) -> int:
        return len(self.all())

    def __contains__(self, item_id: object) -> bool:
        return isinstance(item_id, str) and self.get(item_id) is not None

    def __len__(self) -> int:
        return self.size()

    def __iter__(self) -> Iterator[MemoryItem]:
        return iter(self.all())

    def touch(self, item_id: str) -> None:
        """Hook for stores that keep a recency index."""

    def clear(self) -> None:
        with self.lock:
            for item in self.all():
                self.delete(item.id)


class MappingTierStore(TierStore):
    """Unbounded id -> item mapping."""

    def __init__(self, tier: Tier) -> None:
        super().__init__()
        self.tier = tier
        self._items: dict[str, MemoryItem] = {}

    def put(self, item: MemoryItem) -> MemoryItem:
        with self.lock:
            item.source_tier = self.tier
            self._items[item.id] = item
            return item

    def get(self, item_id: str) -> MemoryItem | None:
        with self.lock:
            return self._items.get(item_id)

    def delete(self, item_id: str) -> MemoryItem | None:
        with self.lock:
            return self._items.pop(item_id, None)

    def all(self) -> list[MemoryItem]:
        with self.lock:
            return list(self._items.values())

    def size(self) -> int:
        with self.lock:
            return len(self._items)


class LongTermStore(MappingTierStore):
    """Durable id -> item mapping; items leave only through explicit forget."""

    def __init__(self) -> None:
        super().__init__(Tier.LONG_TERM)


class ShortTermStore(MappingTierStore):
    """Time-bounded mapping feeding a FIFO consolidation-candidate queue."""

    def __init__(self) -> None:
        super().__init__(Tier.SHORT_TERM)
        self._queue: deque[str] = deque()
        self._queued: set[str] = set()

    def put(self, item: MemoryItem) -> MemoryItem:
        with self.lock:
            super().put(item)
            self.enqueue(item.id)
            return item

    def enqueue(self, item_id: str) -> None:
        with self.lock:
            if item_id not in self._queued:
                self._queue.append(item_id)
                self._queued.add(item_id)

    def drain_queue(self) -> list[str]:
        """Pop every pending candidate id, oldest first."""
        with self.lock:
            pending = list(self._queue)
            self._queue.clear()
            self._queued.clear()
            return pending

    @property
    def queue_length(self) -> int:
        with self.lock:
            return len(self._queue)


class WorkingStore(MappingTierStore):
    """Capacity-bounded mapping with a least-recently-accessed index.

    The OrderedDict keeps the coldest id at the front; insertions and
    retrieval hits move an id to the back, so eviction is a pop from the
    front rather than a scan.
    """

    def __init__(self, capacity: int) -> None:
        super().__init__(Tier.WORKING)
        self.capacity = capacity
        self._lru: "OrderedDict[str, None]" = OrderedDict()

    @property
    def full(self) -> bool:
        return self.size() >= self.capacity

    def put(self, item: MemoryItem) -> MemoryItem:
        with self.lock:
            super().put(item)
            self._lru[item.id] = None
            self._lru.move_to_end(item.id)
            if len(self._items) > self.capacity:
                raise CapacityInvariantViolation(len(self._items), self.capacity)
            return item

    def delete(self, item_id: str) -> MemoryItem | None:
        with self.lock:
            self._lru.pop(item_id, None)
            return super().delete(item_id)

    def touch(self, item_id: str) -> None:
        with self.lock:
            if item_id in self._lru:
                self._lru.move_to_end(item_id)

    def pop_least_recent(self) -> MemoryItem | None:
        """Remove and return the least-recently-accessed item."""
        with self.lock:
            while self._lru:
                item_id, _ = self._lru.popitem(last=False)
                item = self._items.pop(item_id, None)
                if item is not None:
                    return item
            return None

    def recency_order(self) -> list[str]:
        """Ids from least to most recently accessed."""
        with self.lock:
            return list(self._lru)


class EpisodicStore(TierStore):
    """Bounded ordered sequence; overflow evicts the oldest episode."""

    tier = Tier.EPISODIC

    def __init__(self, retention: int) -> None:
        super().__init__()
        self.retention = retention
        self._episodes: deque[MemoryItem] = deque(maxlen=retention)

    def put(self, item: MemoryItem) -> MemoryItem:
        self.append(item)
        return item

    def append(self, item: MemoryItem) -> MemoryItem | None:
        """Add an episode; returns the oldest one if it was pushed out."""
        with self.lock:
            dropped = None
            if len(self._episodes) == self.retention:
                dropped = self._episodes[0]
            item.source_tier = self.tier
            self._episodes.append(item)
            return dropped

    def get(self, item_id: str) -> MemoryItem | None:
        with self.lock:
            for item in self._episodes:
                if item.id == item_id:
                    return item
            return None

    def delete(self, item_id: str) -> MemoryItem | None:
        with self.lock:
            for item in self._episodes:
                if item.id == item_id:
                    self._episodes.remove(item)
                    return item
            return None

    def all(self) -> list[MemoryItem]:
        with self.lock:
            return list(self._episodes)

    def size(self) -> int:
        with self.lock:
            return len(self._episodes)


class SemanticStore(TierStore):
    """Facts keyed by a content-derived key so near-duplicates collapse.

    A second fact with the same derived key overwrites the stored content
    but keeps the original id and ``created_at``.
    """

    tier = Tier.SEMANTIC

    def __init__(self) -> None:
        super().__init__()
        self._by_key: dict[str, MemoryItem] = {}
        self._key_of: dict[str, str] = {}

    def put(self, item: MemoryItem) -> MemoryItem:
        return self.put_keyed(semantic_key(item.content), item)

    def put_keyed(self, key: str, item: MemoryItem) -> MemoryItem:
        with self.lock:
            existing = self._by_key.get(key)
            if existing is not None and existing.id != item.id:
                existing.content = item.content
                existing.tags = set(item.tags)
                existing.importance = item.importance
                existing.context = dict(item.context)
                existing.metadata = dict(item.metadata)
                existing.source = item.source
                return existing
            item.source_tier = self.tier
            self._by_key[key] = item
            self._key_of[item.id] = key
            return item

    def get(self, item_id: str) -> MemoryItem | None:
        with self.lock:
            key = self._key_of.get(item_id)
            return self._by_key.get(key) if key is not None else None

    def get_by_key(self, key: str) -> MemoryItem | None:
        with self.lock:
            return self._by_key.get(key)

    def key_for(self, item_id: str) -> str | None:
        with self.lock:
            return self._key_of.get(item_id)

    def delete(self, item_id: str) -> MemoryItem | None:
        with self.lock:
            key = self._key_of.pop(item_id, None)
            if key is None:
                return None
            return self._by_key.pop(key, None)

    def all(self) -> list[MemoryItem]:
        with self.lock:
            return list(self._by_key.values())

    def items(self) -> list[tuple[str, MemoryItem]]:
        """(derived key, item) pairs."""
        with self.lock:
            return list(self._by_key.items())

    def size(self) -> int:
        with self.lock:
            return len(self._by_key)
