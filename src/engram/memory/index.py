"""Cross-reference index and access-pattern tracking."""

import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from engram.memory.item import MemoryItem, index_terms


@dataclass
class AccessPattern:
    count: int = 0
    first_access: datetime | None = None
    last_access: datetime | None = None

    def frequency(self, now: datetime) -> float:
        """Hits per day since the first recorded access (at least one day)."""
        if self.first_access is None:
            return 0.0
        days = (now - self.first_access).total_seconds() / 86_400
        return self.count / max(days, 1.0)


class MemoryIndex:
    """Maps tags and content terms to the ids that carry them."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._terms: dict[str, set[str]] = defaultdict(set)
        self._terms_of: dict[str, set[str]] = {}
        self.access_patterns: dict[str, AccessPattern] = {}

    def add(self, item: MemoryItem) -> None:
        terms = set(item.tags) | index_terms(item.content)
        with self._lock:
            self.remove(item.id)
            for term in terms:
                self._terms[term].add(item.id)
            self._terms_of[item.id] = terms

    def remove(self, item_id: str) -> None:
        with self._lock:
            for term in self._terms_of.pop(item_id, set()):
                ids = self._terms.get(term)
                if ids is None:
                    continue
                ids.discard(item_id)
                if not ids:
                    del self._terms[term]

    def forget(self, item_id: str) -> None:
        """Drop an id from the index and from access tracking."""
        with self._lock:
            self.remove(item_id)
            self.access_patterns.pop(item_id, None)

    def lookup(self, terms: list[str]) -> set[str]:
        """Ids carrying any of ``terms``."""
        with self._lock:
            found: set[str] = set()
            for term in terms:
                found |= self._terms.get(term, set())
            return found

    def lookup_all(self, terms: list[str]) -> set[str]:
        """Ids carrying every one of ``terms``."""
        with self._lock:
            sets = [self._terms.get(term, set()) for term in terms]
            if not sets:
                return set()
            return set.intersection(*sets)

    def record_access(self, item_id: str, now: datetime) -> AccessPattern:
        with self._lock:
            pattern = self.access_patterns.setdefault(item_id, AccessPattern())
            pattern.count += 1
            if pattern.first_access is None:
                pattern.first_access = now
            pattern.last_access = now
            return pattern

    def __len__(self) -> int:
        with self._lock:
            return len(self._terms)
