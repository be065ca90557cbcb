"""Tiered memory system.

Tiers:
1. Working - Small set of active items, least-recently-accessed eviction
2. Short-term - Recent items awaiting consolidation or decay
3. Long-term - Important items, removed only on explicit forget
4. Episodic - Bounded sequence of experiences, oldest dropped first
5. Semantic - Facts deduplicated by content-derived key
"""

from engram.memory.consolidation import ConsolidationResult, Consolidator
from engram.memory.forgetting import Forgetter, ForgettingResult, forget_probability
from engram.memory.item import MemoryItem, Tier
from engram.memory.layer import MemoryLayer
from engram.memory.operations import MemoryOperation, OperationResult, OperationType
from engram.memory.retrieval import RetrievalEngine, ScoredItem, calculate_relevance
from engram.memory.store import MemoryStore

__all__ = [
    "MemoryLayer",
    "MemoryItem",
    "Tier",
    "MemoryStore",
    "RetrievalEngine",
    "ScoredItem",
    "calculate_relevance",
    "Consolidator",
    "ConsolidationResult",
    "Forgetter",
    "ForgettingResult",
    "forget_probability",
    "MemoryOperation",
    "OperationResult",
    "OperationType",
]
