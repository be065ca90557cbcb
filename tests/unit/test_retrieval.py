"""Unit tests for relevance scoring and the retrieval engine."""

from datetime import timedelta

import pytest

from engram.memory.item import MemoryItem, Tier
from engram.memory.retrieval import RetrievalEngine, calculate_relevance, resolve_tiers


@pytest.fixture
def engine(store, index, clock):
    return RetrievalEngine(store, index, clock=clock)


def _put(store, index, item, tier):
    stored, _ = store.insert(item, tier)
    index.add(stored)
    return stored


class TestRelevance:
    """Test calculate_relevance."""

    def test_bounded(self, make_item, clock):
        item = make_item("sky sky sky", importance=1.0)
        item.access_count = 50
        assert calculate_relevance(item, "sky", clock()) == 1.0

    def test_no_overlap_scores_boosts_only(self, make_item, clock):
        item = make_item("note alpha", importance=0.5)
        assert calculate_relevance(item, "weather", clock()) == pytest.approx(0.2)

    def test_more_matches_never_score_lower(self, make_item, clock):
        one = make_item("blue ocean", importance=0.5)
        two = make_item("blue sky", importance=0.5)
        query = "blue sky"
        assert calculate_relevance(two, query, clock()) >= calculate_relevance(one, query, clock())

    def test_higher_importance_never_scores_lower(self, make_item, clock):
        low = make_item("blue ocean", importance=0.2)
        high = make_item("blue ocean", importance=0.6)
        query = "ocean storm"
        assert calculate_relevance(high, query, clock()) > calculate_relevance(low, query, clock())

    def test_recency_decays(self, make_item, clock):
        item = make_item("blue ocean", importance=0.2)
        fresh = calculate_relevance(item, "ocean storm", clock())
        stale = calculate_relevance(item, "ocean storm", clock() + timedelta(days=3))
        assert stale < fresh

    def test_substring_match_within_words(self, make_item, clock):
        item = make_item("skyline view", importance=0.0)
        assert calculate_relevance(item, "sky", clock()) >= 1.0 - 1e-9


class TestResolveTiers:
    """Test tier name resolution for queries."""

    def test_unknown_names_skipped(self):
        assert resolve_tiers(["bogus", "longTerm", "long_term"]) == [Tier.LONG_TERM]

    def test_none_means_all(self):
        assert len(resolve_tiers(None)) == 5


class TestRetrievalEngine:
    """Test ranking, filtering and access bookkeeping."""

    def test_hits_are_touched(self, engine, store, index, make_item, clock):
        item = _put(store, index, make_item("The sky is blue", importance=0.9), Tier.LONG_TERM)
        clock.advance(seconds=30)

        hits = engine.retrieve("sky")

        assert [h.id for h in hits] == [item.id]
        assert hits[0].relevance > 0.3
        assert hits[0].tier is Tier.LONG_TERM
        assert item.access_count == 1
        assert item.last_accessed_at == clock()
        assert index.access_patterns[item.id].count == 1

    def test_threshold_filters(self, engine, store, index, make_item):
        _put(store, index, make_item("note alpha", importance=0.5), Tier.LONG_TERM)
        assert engine.retrieve("weather") == []

    def test_ties_broken_by_newest_first(self, engine, store, clock):
        older = MemoryItem(
            content="shared words",
            importance=0.5,
            created_at=clock(),
            last_accessed_at=clock(),
        )
        newer = MemoryItem(
            content="shared words",
            importance=0.5,
            created_at=clock() + timedelta(seconds=1),
            last_accessed_at=clock(),
        )
        store.insert(older, Tier.LONG_TERM)
        store.insert(newer, Tier.LONG_TERM)

        hits = engine.retrieve("shared")

        assert [h.id for h in hits] == [newer.id, older.id]

    def test_limit_and_tier_filter(self, engine, store, index, make_item):
        for n in range(4):
            _put(store, index, make_item(f"ocean note {n}"), Tier.LONG_TERM)
        _put(store, index, make_item("ocean episode"), Tier.EPISODIC)

        assert len(engine.retrieve("ocean", limit=2)) == 2
        hits = engine.retrieve("ocean", tiers=["episodic"])
        assert [h.tier for h in hits] == [Tier.EPISODIC]

    def test_failing_tier_is_skipped(self, engine, store, index, make_item, monkeypatch):
        _put(store, index, make_item("ocean episode"), Tier.EPISODIC)

        def broken():
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(store.long_term, "all", broken)

        hits = engine.retrieve("ocean")

        assert [h.tier for h in hits] == [Tier.EPISODIC]
        assert engine.tier_failures == 1

    def test_working_hit_refreshes_recency(self, engine, store, index, make_item):
        first = _put(store, index, make_item("ocean note"), Tier.WORKING)
        second = _put(store, index, make_item("forest note"), Tier.WORKING)

        engine.retrieve("ocean")

        assert store.working.recency_order() == [second.id, first.id]


class TestSearch:
    """Test index-assisted search."""

    def test_search_by_keyword(self, engine, store, index, make_item):
        item = _put(store, index, make_item("quarterly budget review"), Tier.LONG_TERM)
        _put(store, index, make_item("garden party"), Tier.LONG_TERM)

        hits = engine.search("budget")

        assert [h.id for h in hits] == [item.id]
        assert item.access_count == 1

    def test_search_by_three_letter_word(self, engine, store, index, make_item):
        item = _put(store, index, make_item("The sky is blue", importance=0.9), Tier.LONG_TERM)

        assert [h.id for h in engine.search("sky")] == [item.id]
        assert [h.id for h in engine.retrieve("sky")] == [item.id]

    def test_search_ignores_punctuation(self, engine, store, index, make_item):
        item = _put(store, index, make_item("Deploy on Tuesday, not Friday."), Tier.LONG_TERM)

        assert [h.id for h in engine.search("friday?")] == [item.id]

    def test_search_by_tags_requires_all(self, engine, store, index, make_item):
        both = _put(store, index, make_item("alpha", tags=["work", "urgent"]), Tier.LONG_TERM)
        _put(store, index, make_item("beta", tags=["work"]), Tier.LONG_TERM)

        hits = engine.search("", tags=["work", "urgent"])

        assert [h.id for h in hits] == [both.id]

    def test_search_skips_stale_index_entries(self, engine, store, index, make_item):
        item = _put(store, index, make_item("budget"), Tier.SHORT_TERM)
        store.short_term.delete(item.id)

        assert engine.search("budget") == []
