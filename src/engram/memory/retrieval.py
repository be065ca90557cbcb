"""Relevance-ranked retrieval across tiers."""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

import structlog

from engram.errors import TierUnavailableError
from engram.memory.index import MemoryIndex
from engram.memory.item import Clock, MemoryItem, Tier, content_text, index_terms, utc_now
from engram.memory.store import ALL_TIERS, MemoryStore

logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_THRESHOLD = 0.3


@dataclass
class ScoredItem:
    """A retrieval hit."""

    item: MemoryItem
    relevance: float
    tier: Tier

    @property
    def id(self) -> str:
        return self.item.id

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.item.to_dict(),
            "relevance": round(self.relevance, 4),
            "system": self.tier.value,
        }


def query_terms(query: Any) -> list[str]:
    return [word for word in content_text(query).split() if len(word) > 2]


def recency_boost(last_accessed_at: datetime, now: datetime) -> float:
    """Exponential decay over a 24 hour scale."""
    age_hours = max((now - last_accessed_at).total_seconds(), 0.0) / 3600
    return math.exp(-age_hours / 24)


def calculate_relevance(item: MemoryItem, query: Any, now: datetime) -> float:
    """Keyword overlap plus importance, recency and frequency boosts, capped at 1."""
    terms = query_terms(query)
    content_words = item.text.split()

    matches = sum(
        1 for term in terms if any(term in word for word in content_words)
    )
    base = matches / len(terms) if terms else 0.0

    importance_boost = item.importance * 0.2
    recency = recency_boost(item.last_accessed_at or item.created_at, now) * 0.1
    access_boost = min(item.access_count / 10, 0.1)

    return min(base + importance_boost + recency + access_boost, 1.0)


def resolve_tiers(names: Iterable[str | Tier] | None) -> list[Tier]:
    """Map requested tier names to tiers, silently skipping unknown ones."""
    if names is None:
        return list(ALL_TIERS)
    if isinstance(names, (str, Tier)):
        names = [names]
    resolved: list[Tier] = []
    for name in names:
        tier = name if isinstance(name, Tier) else Tier.parse(str(name))
        if tier is not None and tier not in resolved:
            resolved.append(tier)
    return resolved


class RetrievalEngine:
    """Scores items against a query and applies access bookkeeping to hits.

    This is the only component that advances ``access_count`` and
    ``last_accessed_at``.
    """

    def __init__(
        self,
        store: MemoryStore,
        index: MemoryIndex,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.index = index
        self.clock = clock
        self.tier_failures = 0

    def retrieve(
        self,
        query: Any,
        *,
        tiers: Iterable[str | Tier] | None = None,
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[ScoredItem]:
        now = self.clock()
        results: list[ScoredItem] = []
        with self.store.lock:
            for tier in resolve_tiers(tiers):
                results.extend(self._score_tier(tier, query, now, threshold))
            ranked = self._rank(results, limit)
            self._record_hits(ranked, now)
        return ranked

    def search(
        self,
        query: Any,
        *,
        tags: list[str] | None = None,
        tiers: Iterable[str | Tier] | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> list[ScoredItem]:
        """Index-assisted lookup by shared keywords/tags, ranked by relevance."""
        now = self.clock()
        if tags:
            candidates = self.index.lookup_all(list(tags))
        else:
            candidates = self.index.lookup(sorted(index_terms(query)))

        wanted = set(resolve_tiers(tiers))
        results: list[ScoredItem] = []
        with self.store.lock:
            for item_id in candidates:
                found = self.store.locate(item_id)
                if found is None:
                    continue
                tier, item = found
                if tier not in wanted:
                    continue
                results.append(ScoredItem(item, calculate_relevance(item, query, now), tier))
            ranked = self._rank(results, limit)
            self._record_hits(ranked, now)
        return ranked

    def _score_tier(
        self,
        tier: Tier,
        query: Any,
        now: datetime,
        threshold: float,
    ) -> list[ScoredItem]:
        try:
            scored = []
            for item in self.store.tier(tier).all():
                relevance = calculate_relevance(item, query, now)
                if relevance > threshold:
                    scored.append(ScoredItem(item, relevance, tier))
            return scored
        except Exception as e:
            self.tier_failures += 1
            error = TierUnavailableError(tier.value, f"{type(e).__name__}: {e}")
            logger.warning("tier_unavailable", tier=tier.value, error=str(error))
            return []

    @staticmethod
    def _rank(results: list[ScoredItem], limit: int) -> list[ScoredItem]:
        results.sort(
            key=lambda hit: (hit.relevance, hit.item.created_at.timestamp()),
            reverse=True,
        )
        return results[: max(limit, 0)]

    def _record_hits(self, hits: list[ScoredItem], now: datetime) -> None:
        for hit in hits:
            self.store.touch(hit.item, now)
            self.index.record_access(hit.item.id, now)
