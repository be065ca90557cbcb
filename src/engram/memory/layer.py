"""Memory layer - lifecycle owner and operation boundary of the tiered store."""

import random
import time
from dataclasses import dataclass
from typing import Any

import structlog

from engram.config.settings import MemorySettings, settings
from engram.errors import (
    CapacityInvariantViolation,
    CorruptSnapshotError,
    EngramError,
    InvalidOperationError,
    NotInitializedError,
)
from engram.memory.classifier import classify
from engram.memory.consolidation import ConsolidationResult, Consolidator
from engram.memory.forgetting import Forgetter, ForgettingResult
from engram.memory.index import MemoryIndex
from engram.memory.item import Clock, MemoryItem, Tier, extract_tags, semantic_key, utc_now
from engram.memory.operations import (
    MemoryOperation,
    OperationResult,
    OperationType,
    RetrieveOptions,
    StoreOptions,
    parse_memory_operation,
    validate_options,
)
from engram.memory.persistence import (
    FileSnapshotStore,
    dump_snapshot,
    parse_snapshot,
    restore_snapshot,
)
from engram.memory.retrieval import RetrievalEngine, ScoredItem
from engram.memory.scheduler import SweepScheduler
from engram.memory.store import MemoryStore

logger = structlog.get_logger(__name__)

CONSOLIDATION_JOB = "consolidation"
FORGETTING_JOB = "forgetting"


@dataclass
class MemoryStats:
    """Counters reported alongside every processed operation."""

    storage_count: int = 0
    retrieval_count: int = 0
    average_retrieval_time: float = 0.0

    def record_retrieval(self, elapsed_ms: float) -> None:
        self.retrieval_count += 1
        self.average_retrieval_time += (
            elapsed_ms - self.average_retrieval_time
        ) / self.retrieval_count


class MemoryLayer:
    """Tiered memory: working, short-term, long-term, episodic and semantic.

    Foreground calls (store, retrieve, update, forget, search) mutate the
    tiers synchronously; consolidation and forgetting run as background
    sweeps started by ``initialize`` and stopped by ``shutdown``. Durable
    tiers are snapshotted to ``config.memory_file`` when persistence is on.
    """

    def __init__(
        self,
        config: MemorySettings | None = None,
        *,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
        snapshot_store: FileSnapshotStore | None = None,
    ):
        self.config = config or settings.memory
        self.clock = clock
        self.is_initialized = False

        self.store = MemoryStore(
            self.config.working_memory_capacity,
            self.config.episodic_retention,
        )
        self.index = MemoryIndex()
        self.retrieval = RetrievalEngine(self.store, self.index, clock=clock)
        self.consolidator = Consolidator(
            self.store,
            self.index,
            long_term_threshold=self.config.long_term_threshold,
            short_term_seconds=self.config.short_term_seconds,
            clock=clock,
        )
        self.forgetter = Forgetter(
            self.store,
            self.index,
            decay_factor=self.config.forgetting_curve_factor,
            rng=rng or random.Random(self.config.random_seed),
            clock=clock,
        )
        self.snapshot_store = snapshot_store or FileSnapshotStore(self.config.memory_file)
        self.scheduler = SweepScheduler()
        self.scheduler.add(
            CONSOLIDATION_JOB,
            self.consolidator.sweep,
            self.config.consolidation_seconds,
        )
        if self.config.enable_forgetting:
            self.scheduler.add(
                FORGETTING_JOB,
                self.forgetter.sweep,
                self.config.forgetting_seconds,
            )
        self.stats = MemoryStats()

    # -- Lifecycle -----------------------------------------------------------------
    async def initialize(self) -> None:
        """Restore durable tiers and start the background sweeps."""
        if not self.config.enabled:
            logger.info("memory_layer_disabled")
            return

        logger.info("memory_layer_initializing")
        if self.config.persistence_enabled:
            await self.load_from_disk()

        self.scheduler.start()
        self.is_initialized = True
        logger.info("memory_layer_initialized", **self.store.distribution())

    async def shutdown(self) -> None:
        """Stop sweeps (letting a running one finish) and write the snapshot."""
        logger.info("memory_layer_shutting_down")
        await self.scheduler.stop()
        if self.config.persistence_enabled and self.is_initialized:
            await self.save_to_disk()
        self.is_initialized = False
        logger.info("memory_layer_shutdown_completed")

    async def __aenter__(self) -> "MemoryLayer":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    def _ensure_initialized(self, operation: str) -> None:
        if not self.is_initialized or not self.config.enabled:
            raise NotInitializedError(operation)

    # -- Foreground operations -----------------------------------------------------
    async def store_memory(
        self,
        data: Any,
        options: StoreOptions | dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create an item, classify it and place it in its tier."""
        self._ensure_initialized("store")
        opts = _coerce(StoreOptions, options)

        override = None
        if opts.type is not None:
            override = Tier.parse(opts.type)
            if override is None:
                raise InvalidOperationError(f"Unknown memory type: {opts.type!r}")
        if opts.id is not None and self.store.contains(opts.id):
            raise InvalidOperationError(f"Memory id already in use: {opts.id}")

        item = MemoryItem.create(
            data,
            importance=opts.importance,
            tags=opts.tags,
            id=opts.id,
            context=opts.context,
            source=opts.source,
            metadata=opts.metadata,
            now=self.clock(),
        )

        with self.store.lock:
            tier = classify(
                item,
                long_term_threshold=self.config.long_term_threshold,
                working_has_room=not self.store.working.full,
                override=override,
            )
            if tier is Tier.SEMANTIC and opts.id is not None:
                holder = self.store.semantic.get_by_key(semantic_key(item.content))
                if holder is not None:
                    # The merge would keep the holder's id and drop the caller's
                    raise InvalidOperationError(
                        f"Memory id {opts.id} duplicates semantic memory {holder.id}",
                        {"id": holder.id},
                    )
            stored, evicted = self.store.insert(item, tier)
            self.index.add(stored)
            for displaced in evicted:
                if not self.store.contains(displaced.id):
                    self.index.forget(displaced.id)

        self.stats.storage_count += 1
        logger.debug(
            "memory_stored",
            memory_id=stored.id,
            tier=tier.value,
            evicted=[e.id for e in evicted],
        )
        return {
            "id": stored.id,
            "type": tier.value,
            "timestamp": stored.created_at.isoformat(),
        }

    async def retrieve_memory(
        self,
        query: Any,
        options: RetrieveOptions | dict[str, Any] | None = None,
    ) -> list[ScoredItem]:
        """Relevance-ranked hits across the requested tiers."""
        self._ensure_initialized("retrieve")
        opts = _coerce(RetrieveOptions, options)

        started = time.perf_counter()
        hits = self.retrieval.retrieve(
            query,
            tiers=opts.tiers,
            limit=opts.limit,
            threshold=opts.threshold,
        )
        elapsed_ms = (time.perf_counter() - started) * 1000
        self.stats.record_retrieval(elapsed_ms)
        logger.debug("memories_retrieved", hits=len(hits), elapsed_ms=round(elapsed_ms, 3))
        return hits

    async def search_memories(
        self,
        query: Any,
        options: RetrieveOptions | dict[str, Any] | None = None,
    ) -> list[ScoredItem]:
        """Index lookup by shared keywords, or by tags when given."""
        self._ensure_initialized("search")
        opts = _coerce(RetrieveOptions, options)

        started = time.perf_counter()
        hits = self.retrieval.search(
            query,
            tags=opts.tags,
            tiers=opts.tiers,
            limit=opts.limit,
        )
        self.stats.record_retrieval((time.perf_counter() - started) * 1000)
        return hits

    async def update_memory(
        self,
        memory_id: str | None,
        data: Any = None,
        options: StoreOptions | dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Replace an item's content and/or importance, tags, metadata.

        The item keeps its tier. Semantic items are re-keyed under the key
        derived from their new content.
        """
        self._ensure_initialized("update")
        if not memory_id:
            raise InvalidOperationError("update requires a memory id")
        opts = _coerce(StoreOptions, options)

        with self.store.lock:
            found = self.store.locate(memory_id)
            if found is None:
                return {"id": memory_id, "updated": False}
            tier, item = found

            if data is not None:
                caller_tags = item.tags - extract_tags(item.content)
                item.content = data
                item.tags = extract_tags(data) | caller_tags
            if opts.tags is not None:
                item.tags = extract_tags(item.content) | set(opts.tags)
            if opts.importance is not None:
                item.importance = opts.importance
            if opts.metadata:
                item.metadata.update(opts.metadata)

            if tier is Tier.SEMANTIC and data is not None:
                self.store.semantic.delete(item.id)
                survivor = self.store.semantic.put(item)
                if survivor is not item:
                    self.index.forget(item.id)
                item = survivor
            self.index.add(item)

        logger.debug("memory_updated", memory_id=item.id, tier=tier.value)
        return {"id": item.id, "updated": True, "type": tier.value}

    async def forget_memory(self, memory_id: str | None) -> dict[str, Any]:
        """Explicitly delete an item from whichever tier holds it."""
        self._ensure_initialized("forget")
        if not memory_id:
            raise InvalidOperationError("forget requires a memory id")

        with self.store.lock:
            removed = self.store.remove(memory_id)
            self.index.forget(memory_id)

        if removed is None:
            return {"id": memory_id, "forgotten": False}
        tier, _ = removed
        logger.debug("memory_forgotten", memory_id=memory_id, tier=tier.value)
        return {"id": memory_id, "forgotten": True, "type": tier.value}

    async def consolidate(self) -> ConsolidationResult:
        """Run a consolidation sweep now."""
        self._ensure_initialized("consolidate")
        return await self.run_consolidation()

    async def run_consolidation(self) -> ConsolidationResult:
        result = await self.scheduler.run_now(CONSOLIDATION_JOB)
        return result if result is not None else ConsolidationResult()

    async def run_forgetting(self) -> ForgettingResult:
        if FORGETTING_JOB not in self.scheduler.runs:
            return ForgettingResult()
        result = await self.scheduler.run_now(FORGETTING_JOB)
        return result if result is not None else ForgettingResult()

    # -- Pipeline boundary ---------------------------------------------------------
    async def process(self, input: Any, context: dict[str, Any] | None = None) -> OperationResult:
        """Dispatch one request; failures come back as ``success=False``."""
        context = context or {}
        if not self.is_initialized or not self.config.enabled:
            return OperationResult(
                success=False,
                error="Memory layer not initialized or disabled",
            )

        started = time.perf_counter()
        try:
            operation = parse_memory_operation(input, context)
            result = await self._dispatch(operation, input, context)
        except CapacityInvariantViolation:
            raise
        except EngramError as e:
            logger.warning("memory_operation_rejected", error=str(e))
            return OperationResult(success=False, error=str(e))
        except Exception as e:
            logger.error("memory_processing_failed", error=f"{type(e).__name__}: {e}")
            return OperationResult(success=False, error=f"{type(e).__name__}: {e}")

        processing_time = (time.perf_counter() - started) * 1000
        logger.debug(
            "memory_processing_completed",
            operation=operation.type.value,
            processing_time_ms=round(processing_time, 3),
        )
        return OperationResult(
            success=True,
            result=_serialize(result),
            processing_time=processing_time,
            memory_stats=self.get_memory_stats(),
        )

    async def _dispatch(
        self,
        operation: MemoryOperation,
        input: Any,
        context: dict[str, Any],
    ) -> Any:
        op = operation.type
        if op == OperationType.STORE:
            return await self.store_memory(operation.data, operation.store_options())
        elif op == OperationType.RETRIEVE:
            return await self.retrieve_memory(operation.query, operation.retrieve_options())
        elif op == OperationType.UPDATE:
            return await self.update_memory(
                operation.id, operation.data, operation.store_options()
            )
        elif op == OperationType.FORGET:
            return await self.forget_memory(operation.id)
        elif op == OperationType.CONSOLIDATE:
            return (await self.consolidate()).to_dict()
        elif op == OperationType.SEARCH:
            return await self.search_memories(operation.query, operation.retrieve_options())
        # Default: record the input as an episode and recall related context
        return await self._default_operation(input, context)

    async def _default_operation(self, input: Any, context: dict[str, Any]) -> dict[str, Any]:
        """Record the input as an episode and recall related context."""
        stored = await self.store_memory(
            input,
            StoreOptions(type=Tier.EPISODIC.value, context=context_without_operation(context), source="input"),
        )
        related = await self.retrieve_memory(input, RetrieveOptions(limit=5, threshold=0.4))
        return {
            "stored": stored,
            "context": related,
            "workingMemory": [item.to_dict() for item in self.store.working.all()],
        }

    # -- Persistence ---------------------------------------------------------------
    def save(self) -> bytes:
        """Snapshot of the long-term, semantic and episodic tiers."""
        return dump_snapshot(self.store, self.clock())

    def load(self, blob: bytes) -> int:
        """Restore durable tiers from ``blob``.

        On a corrupt blob the durable tiers are left empty and
        CorruptSnapshotError is raised.
        """
        try:
            record = parse_snapshot(blob)
        except CorruptSnapshotError:
            self.store.clear_durable()
            raise
        with self.store.lock:
            for item in self._durable_items():
                self.index.forget(item.id)
            restored = restore_snapshot(self.store, record)
            for item in self._durable_items():
                self.index.add(item)
        return restored

    def _durable_items(self) -> list[MemoryItem]:
        return (
            self.store.long_term.all()
            + self.store.semantic.all()
            + self.store.episodic.all()
        )

    async def load_from_disk(self) -> None:
        blob = await self.snapshot_store.read()
        if blob is None:
            logger.info("no_memory_snapshot_found", path=str(self.snapshot_store.path))
            return
        try:
            restored = self.load(blob)
        except CorruptSnapshotError as e:
            logger.error(
                "memory_snapshot_corrupt",
                path=str(self.snapshot_store.path),
                error=str(e),
            )
            return
        logger.info(
            "memory_snapshot_loaded",
            path=str(self.snapshot_store.path),
            restored=restored,
        )

    async def save_to_disk(self) -> None:
        try:
            await self.snapshot_store.write(self.save())
        except OSError as e:
            logger.error(
                "memory_snapshot_write_failed",
                path=str(self.snapshot_store.path),
                error=str(e),
            )
            return
        logger.debug("memory_snapshot_saved", path=str(self.snapshot_store.path))

    # -- Introspection -------------------------------------------------------------
    def get_memory_stats(self) -> dict[str, Any]:
        distribution = self.store.distribution()
        return {
            "totalMemories": sum(distribution.values()),
            "storageCount": self.stats.storage_count,
            "retrievalCount": self.stats.retrieval_count,
            "averageRetrievalTime": round(self.stats.average_retrieval_time, 3),
            "consolidationCount": self.consolidator.consolidation_count,
            "forgettingCount": self.consolidator.forgetting_count,
            "decayForgettingCount": self.forgetter.forgetting_count,
            "tierFailures": self.retrieval.tier_failures,
            "consolidationQueue": self.store.short_term.queue_length,
            "memoryDistribution": distribution,
            "indexSize": len(self.index),
            "accessPatternsTracked": len(self.index.access_patterns),
        }

    def get_status(self) -> dict[str, Any]:
        return {
            "name": "Memory Layer",
            "enabled": self.config.enabled,
            "initialized": self.is_initialized,
            "sweepsRunning": self.scheduler.running,
            "memoryStats": self.get_memory_stats(),
            "configuration": {
                "workingMemoryCapacity": self.config.working_memory_capacity,
                "shortTermDuration": self.config.short_term_duration,
                "longTermThreshold": self.config.long_term_threshold,
                "episodicRetention": self.config.episodic_retention,
                "forgettingEnabled": self.config.enable_forgetting,
                "persistenceEnabled": self.config.persistence_enabled,
            },
        }


def context_without_operation(context: dict[str, Any]) -> dict[str, Any]:
    """Caller context minus the routing keys."""
    routing = {"memoryOperation", "memoryOptions", "memoryId"}
    return {key: value for key, value in context.items() if key not in routing}


def _coerce(model: Any, options: Any) -> Any:
    if isinstance(options, model):
        return options
    return validate_options(model, options or {})


def _serialize(value: Any) -> Any:
    if isinstance(value, ScoredItem):
        return value.to_dict()
    if isinstance(value, MemoryItem):
        return value.to_dict()
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    return value
