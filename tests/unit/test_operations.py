"""Unit tests for operation parsing and option models."""

import pytest

from engram.errors import InvalidOperationError
from engram.memory.operations import (
    MemoryOperation,
    OperationResult,
    OperationType,
    RetrieveOptions,
    StoreOptions,
    parse_memory_operation,
    validate_options,
)


class TestLexicalRouting:
    """Test trigger-word routing when no explicit operation is given."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Please remember my locker code", OperationType.STORE),
            ("store this for later", OperationType.STORE),
            ("Recall what I said about Paris", OperationType.RETRIEVE),
            ("forget that", OperationType.FORGET),
            ("delete my note", OperationType.FORGET),
            ("search notes about budget", OperationType.SEARCH),
            ("find budget", OperationType.SEARCH),
            ("hello there", OperationType.DEFAULT),
        ],
    )
    def test_triggers(self, text, expected):
        assert parse_memory_operation(text).type is expected

    def test_store_carries_input_as_data(self):
        op = parse_memory_operation("remember the milk", {"memoryOptions": {"importance": 0.9}})
        assert op.data == "remember the milk"
        assert op.store_options().importance == 0.9

    def test_forget_takes_id_from_context(self):
        op = parse_memory_operation("forget it", {"memoryId": "mem_1"})
        assert op.id == "mem_1"

    def test_first_trigger_wins(self):
        assert parse_memory_operation("remember to search").type is OperationType.STORE


class TestExplicitOperation:
    """Test the memoryOperation context key."""

    def test_explicit_operation_overrides_triggers(self):
        op = parse_memory_operation(
            "remember this",
            {"memoryOperation": {"type": "retrieve", "query": "sky", "options": {"limit": 3}}},
        )
        assert op.type is OperationType.RETRIEVE
        assert op.query == "sky"
        assert op.retrieve_options().limit == 3

    def test_unknown_type_rejected(self):
        with pytest.raises(InvalidOperationError):
            parse_memory_operation("x", {"memoryOperation": {"type": "teleport"}})

    def test_non_mapping_rejected(self):
        with pytest.raises(InvalidOperationError):
            MemoryOperation.from_request(["store"])


class TestOptions:
    """Test option validation."""

    def test_systems_alias(self):
        opts = validate_options(RetrieveOptions, {"systems": ["longTerm"], "threshold": 0.5})
        assert opts.tiers == ["longTerm"]
        assert opts.threshold == 0.5

    def test_defaults(self):
        opts = RetrieveOptions()
        assert (opts.limit, opts.threshold) == (10, 0.3)

    def test_out_of_range_importance(self):
        with pytest.raises(InvalidOperationError):
            validate_options(StoreOptions, {"importance": 1.5})


class TestOperationResult:
    """Test result serialization."""

    def test_success_payload(self):
        data = OperationResult(success=True, result={"id": "a"}, memory_stats={"x": 1}).to_dict()
        assert data["result"] == {"id": "a"}
        assert data["memoryStats"] == {"x": 1}
        assert "error" not in data

    def test_failure_payload(self):
        data = OperationResult(success=False, error="nope").to_dict()
        assert data == {"success": False, "processingTime": 0.0, "error": "nope"}
