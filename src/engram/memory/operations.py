"""Operation requests and results exchanged with the orchestration pipeline."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from engram.errors import InvalidOperationError
from engram.memory.retrieval import DEFAULT_LIMIT, DEFAULT_THRESHOLD


class OperationType(str, Enum):
    """Memory operation kinds."""

    STORE = "store"
    RETRIEVE = "retrieve"
    UPDATE = "update"
    FORGET = "forget"
    CONSOLIDATE = "consolidate"
    SEARCH = "search"
    DEFAULT = "default"


class StoreOptions(BaseModel):
    """Options accepted by store and update."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str | None = None
    importance: float | None = Field(default=None, ge=0.0, le=1.0)
    tags: list[str] | None = None
    id: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    source: str = "unknown"
    metadata: dict[str, Any] | None = None


class RetrieveOptions(BaseModel):
    """Options accepted by retrieve and search."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tiers: list[str] | None = Field(default=None, alias="systems")
    limit: int = Field(default=DEFAULT_LIMIT, ge=0)
    threshold: float = DEFAULT_THRESHOLD
    tags: list[str] | None = None


class MemoryOperation(BaseModel):
    """A parsed request against the memory layer."""

    model_config = ConfigDict(extra="ignore")

    type: OperationType
    data: Any = None
    query: Any = None
    id: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_request(cls, request: Any) -> "MemoryOperation":
        """Validate an explicit ``memoryOperation`` mapping."""
        if isinstance(request, MemoryOperation):
            return request
        if not isinstance(request, dict):
            raise InvalidOperationError(
                "Memory operation must be a mapping",
                {"received": type(request).__name__},
            )
        try:
            return cls.model_validate(request)
        except ValidationError as e:
            raise InvalidOperationError(
                f"Unrecognized memory operation: {request.get('type')!r}",
                {"errors": e.error_count()},
            ) from e

    def store_options(self) -> StoreOptions:
        return validate_options(StoreOptions, self.options)

    def retrieve_options(self) -> RetrieveOptions:
        return validate_options(RetrieveOptions, self.options)


def validate_options(model: type[BaseModel], options: dict[str, Any]) -> Any:
    try:
        return model.model_validate(options or {})
    except ValidationError as e:
        raise InvalidOperationError(
            f"Invalid {model.__name__}",
            {"errors": [err["msg"] for err in e.errors()]},
        ) from e


# Checked in order; the first trigger found in the input wins
LEXICAL_TRIGGERS: tuple[tuple[OperationType, tuple[str, ...]], ...] = (
    (OperationType.STORE, ("remember", "store")),
    (OperationType.RETRIEVE, ("recall", "retrieve")),
    (OperationType.FORGET, ("forget", "delete")),
    (OperationType.SEARCH, ("search", "find")),
)


def parse_memory_operation(input: Any, context: dict[str, Any] | None = None) -> MemoryOperation:
    """Work out which operation an input asks for."""
    context = context or {}
    if context.get("memoryOperation") is not None:
        return MemoryOperation.from_request(context["memoryOperation"])

    text = input.lower() if isinstance(input, str) else json.dumps(input, default=str).lower()
    options = context.get("memoryOptions") or {}

    for op_type, triggers in LEXICAL_TRIGGERS:
        if any(trigger in text for trigger in triggers):
            if op_type is OperationType.STORE:
                return MemoryOperation(type=op_type, data=input, options=options)
            if op_type is OperationType.FORGET:
                return MemoryOperation(type=op_type, id=context.get("memoryId"), options=options)
            return MemoryOperation(type=op_type, query=input, options=options)

    return MemoryOperation(type=OperationType.DEFAULT, data=input, options=options)


@dataclass
class OperationResult:
    """Structured outcome of ``MemoryLayer.process``."""

    success: bool
    result: Any = None
    error: str | None = None
    processing_time: float = 0.0
    memory_stats: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "processingTime": self.processing_time,
        }
        if self.success:
            data["result"] = self.result
            data["memoryStats"] = self.memory_stats
        else:
            data["error"] = self.error
        return data
