"""Memory item model and content heuristics."""

import hashlib
import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


class Tier(str, Enum):
    """Retention tier owning a memory item."""

    WORKING = "working"
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"
    EPISODIC = "episodic"
    SEMANTIC = "semantic"

    @classmethod
    def parse(cls, name: str) -> "Tier | None":
        """Resolve ``short_term``, ``shortTerm`` or ``short-term``; None if unknown."""
        wanted = name.replace("_", "").replace("-", "").lower()
        for tier in cls:
            if tier.value.replace("_", "") == wanted:
                return tier
        return None


IMPORTANT_KEYWORDS = ("important", "critical", "urgent", "remember", "key", "essential")

TAG_PATTERNS: dict[str, re.Pattern[str]] = {
    "question": re.compile(r"\?|\b(what|how|why|when|where|who)\b"),
    "task": re.compile(r"\b(task|todo|action|do|complete)\b"),
    "fact": re.compile(r"\b(is|are|was|were|fact|true|false)\b"),
    "emotion": re.compile(r"\b(feel|emotion|happy|sad|angry|excited)\b"),
    "time": re.compile(r"\b(today|tomorrow|yesterday|now|later|time)\b"),
    "location": re.compile(r"\b(here|there|place|location|where)\b"),
}

STOP_WORDS = frozenset({
    "this", "that", "with", "have", "will", "from", "they", "know",
    "want", "been", "good", "much", "some", "time",
})


def is_structured(content: Any) -> bool:
    """True for mapping/sequence payloads, False for plain text."""
    return not isinstance(content, str)


def content_text(content: Any) -> str:
    """Normalized lower-cased string view of a payload."""
    if isinstance(content, str):
        return content.lower()
    return json.dumps(content, sort_keys=True, default=str).lower()


def calculate_importance(content: Any) -> float:
    """Score content importance from length, keyword cues and structure."""
    text = content_text(content)
    importance = 0.5

    if len(text) > 200:
        importance += 0.1
    if len(text) > 500:
        importance += 0.1

    for keyword in IMPORTANT_KEYWORDS:
        if keyword in text:
            importance += 0.1

    if is_structured(content):
        importance += 0.1

    return min(importance, 1.0)


def extract_tags(content: Any) -> set[str]:
    """Pattern-derived tags (question, task, fact, emotion, time, location)."""
    text = content_text(content)
    return {tag for tag, pattern in TAG_PATTERNS.items() if pattern.search(text)}


def extract_keywords(content: Any, limit: int = 10) -> list[str]:
    """First ``limit`` non-stop-word alphanumeric words longer than 3 chars."""
    text = re.sub(r"[^a-z0-9\s]", "", content_text(content))
    words = [w for w in text.split() if len(w) > 3 and w not in STOP_WORDS]
    return words[:limit]


def index_terms(content: Any) -> set[str]:
    """Alphanumeric words longer than 2 chars; shared by the index and search."""
    text = re.sub(r"[^a-z0-9\s]", " ", content_text(content))
    return {w for w in text.split() if len(w) > 2}


def semantic_key(content: Any) -> str:
    """Deduplication key for semantic memory."""
    keywords = extract_keywords(content)[:3]
    if keywords:
        return "_".join(sorted(keywords))
    # Keyword-less facts must not all collapse onto the empty key
    digest = hashlib.sha1(content_text(content).encode()).hexdigest()[:12]
    return f"#{digest}"


def generate_memory_id() -> str:
    return f"mem_{uuid.uuid4().hex}"


@dataclass
class MemoryItem:
    """A unit of storage in the memory layer.

    ``access_count`` and ``last_accessed_at`` are only advanced through
    ``touch``, which the retrieval engine calls on a hit.
    """

    content: Any
    importance: float
    tags: set[str] = field(default_factory=set)
    id: str = field(default_factory=generate_memory_id)
    created_at: datetime = field(default_factory=utc_now)
    last_accessed_at: datetime | None = None
    access_count: int = 0
    source_tier: Tier | None = None
    context: dict[str, Any] = field(default_factory=dict)
    source: str = "unknown"
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.last_accessed_at is None:
            self.last_accessed_at = self.created_at

    @classmethod
    def create(
        cls,
        content: Any,
        *,
        importance: float | None = None,
        tags: list[str] | set[str] | None = None,
        id: str | None = None,
        context: dict[str, Any] | None = None,
        source: str = "unknown",
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> "MemoryItem":
        """Build an item, deriving importance and tags from the content."""
        if importance is None:
            importance = calculate_importance(content)
        created = now or utc_now()
        return cls(
            content=content,
            importance=min(max(float(importance), 0.0), 1.0),
            tags=extract_tags(content) | set(tags or ()),
            id=id or generate_memory_id(),
            created_at=created,
            last_accessed_at=created,
            context=dict(context or {}),
            source=source,
            metadata=dict(metadata or {}),
        )

    @property
    def text(self) -> str:
        return content_text(self.content)

    @property
    def structured(self) -> bool:
        return is_structured(self.content)

    def age_seconds(self, now: datetime) -> float:
        return max((now - self.created_at).total_seconds(), 0.0)

    def touch(self, now: datetime) -> None:
        """Record a retrieval hit. Never moves ``last_accessed_at`` backwards."""
        self.access_count += 1
        if self.last_accessed_at is None or now > self.last_accessed_at:
            self.last_accessed_at = now

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view of the item."""
        return {
            "id": self.id,
            "content": self.content,
            "timestamp": self.created_at.isoformat(),
            "lastAccessed": self.last_accessed_at.isoformat() if self.last_accessed_at else None,
            "importance": self.importance,
            "tags": sorted(self.tags),
            "accessCount": self.access_count,
            "tier": self.source_tier.value if self.source_tier else None,
            "context": self.context,
            "source": self.source,
            "metadata": self.metadata,
        }
