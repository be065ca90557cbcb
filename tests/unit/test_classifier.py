"""Unit tests for tier classification."""

from engram.memory.classifier import classify, is_experience_or_event, is_factual_knowledge
from engram.memory.item import Tier


def _classify(item, *, room=True, override=None):
    return classify(item, long_term_threshold=0.8, working_has_room=room, override=override)


class TestClassify:
    """Decision order: override, importance, factual, experience, room."""

    def test_override_wins(self, make_item):
        item = make_item("The sky is blue", importance=0.95)
        assert _classify(item, override=Tier.EPISODIC) is Tier.EPISODIC

    def test_high_importance_goes_long_term(self, make_item):
        assert _classify(make_item("The sky is blue", importance=0.9)) is Tier.LONG_TERM

    def test_threshold_is_inclusive(self, make_item):
        assert _classify(make_item("note alpha", importance=0.8)) is Tier.LONG_TERM

    def test_factual_goes_semantic(self, make_item):
        assert _classify(make_item("The sky is blue")) is Tier.SEMANTIC

    def test_experience_goes_episodic(self, make_item):
        assert _classify(make_item("We went to the meeting")) is Tier.EPISODIC

    def test_plain_note_uses_working_when_room(self, make_item):
        assert _classify(make_item("note alpha")) is Tier.WORKING

    def test_plain_note_falls_to_short_term_when_full(self, make_item):
        assert _classify(make_item("note alpha"), room=False) is Tier.SHORT_TERM


class TestPatterns:
    """Test the lexical pattern helpers."""

    def test_factual_requires_whole_words(self):
        assert is_factual_knowledge("A definition of entropy")
        assert not is_factual_knowledge("This island")

    def test_experience_patterns(self):
        assert is_experience_or_event("It happened two days ago")
        assert not is_experience_or_event("lastly, the cameo")

    def test_structured_content(self):
        assert is_factual_knowledge({"fact": "water boils at 100C"})
