"""
Exception hierarchy for the memory layer.

Foreground operations surface these through ``OperationResult`` rather than
raising out of ``MemoryLayer.process``; background sweeps log them per item.
"""

from typing import Any, Optional


class EngramError(Exception):
    """Base exception for all engram errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class NotInitializedError(EngramError):
    """Raised when an operation is invoked before ``initialize`` completed."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"Memory layer not initialized or disabled (operation: {operation})"
        )


class InvalidOperationError(EngramError):
    """Unrecognized or malformed operation request. No mutation occurred."""


class TierUnavailableError(EngramError):
    """A tier store failed while serving a multi-tier query."""

    def __init__(self, tier: str, message: str, details: Optional[dict[str, Any]] = None):
        self.tier = tier
        super().__init__(f"[{tier}] {message}", details)


class CorruptSnapshotError(EngramError):
    """Persisted snapshot data could not be parsed."""


class CapacityInvariantViolation(AssertionError):
    """Working tier exceeded its capacity after an insert.

    This signals an eviction-ordering bug, never a user error, so it derives
    from AssertionError and is not folded into an ``OperationResult``.
    """

    def __init__(self, size: int, capacity: int):
        self.size = size
        self.capacity = capacity
        super().__init__(f"Working tier holds {size} items, capacity is {capacity}")
