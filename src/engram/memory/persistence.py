"""Snapshot persistence for the durable tiers (long-term, semantic, episodic).

Working and short-term memory are transient and never written out.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiofiles
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from engram.errors import CorruptSnapshotError
from engram.memory.item import MemoryItem
from engram.memory.store import MemoryStore


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps in hand-edited snapshots are taken as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ItemRecord(BaseModel):
    """Serialized form of a MemoryItem."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    content: Any
    timestamp: datetime
    last_accessed: datetime | None = Field(default=None, alias="lastAccessed")
    importance: float = Field(ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)
    access_count: int = Field(default=0, ge=0, alias="accessCount")
    context: dict[str, Any] = Field(default_factory=dict)
    source: str = "unknown"
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_item(cls, item: MemoryItem) -> "ItemRecord":
        return cls(
            id=item.id,
            content=item.content,
            timestamp=item.created_at,
            last_accessed=item.last_accessed_at,
            importance=item.importance,
            tags=sorted(item.tags),
            access_count=item.access_count,
            context=item.context,
            source=item.source,
            metadata=item.metadata,
        )

    def to_item(self) -> MemoryItem:
        created = _as_utc(self.timestamp)
        return MemoryItem(
            content=self.content,
            importance=self.importance,
            tags=set(self.tags),
            id=self.id,
            created_at=created,
            last_accessed_at=_as_utc(self.last_accessed) if self.last_accessed else created,
            access_count=self.access_count,
            context=self.context,
            source=self.source,
            metadata=self.metadata,
        )


class SnapshotRecord(BaseModel):
    """On-disk layout of a memory snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    long_term_memory: list[tuple[str, ItemRecord]] = Field(
        default_factory=list, alias="longTermMemory"
    )
    semantic_memory: list[tuple[str, ItemRecord]] = Field(
        default_factory=list, alias="semanticMemory"
    )
    episodic_memory: list[ItemRecord] = Field(
        default_factory=list, alias="episodicMemory"
    )
    timestamp: datetime


def dump_snapshot(store: MemoryStore, now: datetime) -> bytes:
    """Serialize the durable tiers into a JSON blob."""
    with store.lock:
        record = SnapshotRecord(
            long_term_memory=[
                (item.id, ItemRecord.from_item(item)) for item in store.long_term.all()
            ],
            semantic_memory=[
                (key, ItemRecord.from_item(item)) for key, item in store.semantic.items()
            ],
            episodic_memory=[ItemRecord.from_item(item) for item in store.episodic.all()],
            timestamp=now,
        )
    return record.model_dump_json(by_alias=True, indent=2).encode("utf-8")


def parse_snapshot(blob: bytes) -> SnapshotRecord:
    """Decode and validate a snapshot blob."""
    try:
        data = json.loads(blob.decode("utf-8"))
        return SnapshotRecord.model_validate(data)
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError, TypeError) as e:
        raise CorruptSnapshotError(
            "Snapshot could not be parsed",
            {"error": f"{type(e).__name__}: {str(e)[:200]}"},
        ) from e


def restore_snapshot(store: MemoryStore, record: SnapshotRecord) -> int:
    """Replace the durable tiers with the snapshot contents.

    Returns the number of items restored.
    """
    with store.lock:
        store.clear_durable()
        for _, entry in record.long_term_memory:
            store.long_term.put(entry.to_item())
        for key, entry in record.semantic_memory:
            store.semantic.put_keyed(key, entry.to_item())
        for entry in record.episodic_memory:
            store.episodic.put(entry.to_item())
    return (
        len(record.long_term_memory)
        + len(record.semantic_memory)
        + min(len(record.episodic_memory), store.episodic.retention)
    )


class FileSnapshotStore:
    """Flat-file byte store for snapshots."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    async def read(self) -> bytes | None:
        """Snapshot bytes, or None when no snapshot has been written yet."""
        try:
            async with aiofiles.open(self.path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def write(self, blob: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(blob)
        tmp_path.replace(self.path)

    def exists(self) -> bool:
        return self.path.exists()
