"""Tier classification heuristics."""

import re
from typing import Any

from engram.memory.item import MemoryItem, Tier, content_text

FACTUAL_PATTERNS = (
    re.compile(r"\b(is|are|was|were)\b"),
    re.compile(r"\b(definition|meaning|concept)\b"),
    re.compile(r"\b(fact|truth|reality)\b"),
    re.compile(r"\b(always|never|typically)\b"),
)

EXPERIENCE_PATTERNS = (
    re.compile(r"\b(happened|occurred|experienced)\b"),
    re.compile(r"\b(yesterday|today|last|ago)\b"),
    re.compile(r"\b(went|came|saw|did|said)\b"),
    re.compile(r"\b(event|meeting|conversation)\b"),
)


def is_factual_knowledge(content: Any) -> bool:
    text = content_text(content)
    return any(pattern.search(text) for pattern in FACTUAL_PATTERNS)


def is_experience_or_event(content: Any) -> bool:
    text = content_text(content)
    return any(pattern.search(text) for pattern in EXPERIENCE_PATTERNS)


def classify(
    item: MemoryItem,
    *,
    long_term_threshold: float,
    working_has_room: bool,
    override: Tier | None = None,
) -> Tier:
    """Pick the tier for a new item. First matching rule wins."""
    if override is not None:
        return override
    if item.importance >= long_term_threshold:
        return Tier.LONG_TERM
    if is_factual_knowledge(item.content):
        return Tier.SEMANTIC
    if is_experience_or_event(item.content):
        return Tier.EPISODIC
    if working_has_room:
        return Tier.WORKING
    return Tier.SHORT_TERM
