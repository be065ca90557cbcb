"""Unit tests for the memory item model and content heuristics."""

from datetime import timedelta

import pytest

from engram.memory.item import (
    MemoryItem,
    Tier,
    calculate_importance,
    content_text,
    extract_keywords,
    extract_tags,
    semantic_key,
)


class TestImportance:
    """Test importance heuristics."""

    def test_plain_short_text_is_neutral(self):
        assert calculate_importance("note alpha") == pytest.approx(0.5)

    def test_keyword_cues_raise_importance(self):
        assert calculate_importance("this is important and critical") == pytest.approx(0.7)

    def test_length_bonuses(self):
        assert calculate_importance("x" * 250) == pytest.approx(0.6)
        assert calculate_importance("x" * 600) == pytest.approx(0.7)

    def test_structured_content_bonus(self):
        assert calculate_importance({"city": "paris"}) == pytest.approx(0.6)

    def test_capped_at_one(self):
        text = "important critical urgent remember key essential " * 20
        assert calculate_importance(text) == 1.0


class TestTags:
    """Test pattern-derived tags."""

    def test_question_and_time(self):
        tags = extract_tags("What should we do tomorrow?")
        assert {"question", "task", "time"} <= tags

    def test_question_mark_alone_marks_question(self):
        assert "question" in extract_tags("ok?")

    def test_whole_word_matching(self):
        """Substrings inside longer words do not trigger tags."""
        assert extract_tags("island nowhere") == set()

    def test_structured_content_is_scanned(self):
        assert "emotion" in extract_tags({"mood": "happy"})


class TestKeywordsAndKeys:
    """Test keyword extraction and semantic keys."""

    def test_keywords_skip_short_and_stop_words(self):
        assert extract_keywords("This is the quick brown fox jumps") == [
            "quick",
            "brown",
            "jumps",
        ]

    def test_keywords_limit(self):
        text = " ".join(f"word{i:02d}" for i in range(20))
        assert len(extract_keywords(text)) == 10

    def test_semantic_key_is_order_insensitive(self):
        assert semantic_key("Paris is the capital of France") == "capital_france_paris"
        assert semantic_key("France capital: Paris") == "capital_france_paris"

    def test_keywordless_content_gets_hash_key(self):
        key = semantic_key("it is")
        assert key.startswith("#")
        assert key != semantic_key("he was")

    def test_content_text_is_stable_for_mappings(self):
        assert content_text({"b": 1, "a": 2}) == content_text({"a": 2, "b": 1})


class TestMemoryItem:
    """Test MemoryItem creation and access bookkeeping."""

    def test_create_derives_importance_and_tags(self, clock):
        item = MemoryItem.create("What time is it?", now=clock())

        assert item.importance == pytest.approx(0.5)
        assert "question" in item.tags
        assert item.id.startswith("mem_")
        assert item.created_at == clock()
        assert item.last_accessed_at == item.created_at
        assert item.access_count == 0

    def test_explicit_zero_importance_is_kept(self, clock):
        item = MemoryItem.create("important", importance=0.0, now=clock())
        assert item.importance == 0.0

    def test_importance_is_clamped(self, clock):
        assert MemoryItem.create("x", importance=3, now=clock()).importance == 1.0

    def test_caller_tags_are_merged(self, clock):
        item = MemoryItem.create("How are you?", tags=["greeting"], now=clock())
        assert {"greeting", "question"} <= item.tags

    def test_touch_never_moves_backwards(self, clock):
        item = MemoryItem.create("note alpha", now=clock())
        later = clock() + timedelta(minutes=5)

        item.touch(later)
        item.touch(clock())

        assert item.access_count == 2
        assert item.last_accessed_at == later

    def test_to_dict_uses_wire_names(self, clock):
        data = MemoryItem.create("note", now=clock()).to_dict()
        assert {"timestamp", "lastAccessed", "accessCount", "tier"} <= set(data)


class TestTierParse:
    """Test tier name resolution."""

    @pytest.mark.parametrize("name", ["short_term", "shortTerm", "short-term", "SHORT_TERM"])
    def test_spellings(self, name):
        assert Tier.parse(name) is Tier.SHORT_TERM

    def test_unknown_name(self):
        assert Tier.parse("archive") is None
