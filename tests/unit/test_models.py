"""Unit tests for memory models and timestamp helpers."""

from datetime import datetime, timezone
from typing import get_args

import pytest
from pydantic import ValidationError

from memory_graph_service.graph.engine import _WALKS
from memory_graph_service.models.memory import (
    MemoryGraph,
    MemoryRecord,
    MemoryRelation,
    format_timestamp,
    normalize_timestamp,
    parse_timestamp,
)
from memory_graph_service.models.validators import (
    DIRECTIONS,
    LIST_ORDERS,
    SEARCH_STRATEGIES,
    TRAVERSAL_STRATEGIES,
    Direction,
    ListOrder,
    SearchStrategy,
    TraversalStrategy,
)
from memory_graph_service.storage.record_store import _ORDER_CLAUSES


class TestTimestamps:
    def test_format_is_sortable_utc(self):
        assert format_timestamp(datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == "2026-01-02T03:04:05.000000Z"
        # Naive input is taken as UTC
        assert format_timestamp(datetime(2026, 1, 2)) == "2026-01-02T00:00:00.000000Z"

    def test_parse_round_trip(self):
        dt = datetime(2026, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
        assert parse_timestamp(format_timestamp(dt)) == dt

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2025-06-01T12:00:00Z", "2025-06-01T12:00:00.000000Z"),
            ("2025-06-01T14:00:00+02:00", "2025-06-01T12:00:00.000000Z"),
            (1748779200, "2025-06-01T12:00:00.000000Z"),
            (1748779200000, "2025-06-01T12:00:00.000000Z"),
        ],
    )
    def test_normalize(self, value, expected):
        assert normalize_timestamp(value) == expected

    def test_normalize_falls_back(self):
        fallback = "2020-01-01T00:00:00.000000Z"

        assert normalize_timestamp(None, fallback) == fallback
        assert normalize_timestamp("not a date", fallback) == fallback


class TestMemoryRecord:
    def test_defaults(self):
        record = MemoryRecord(key="k", value="v")

        assert record.category == "general"
        assert record.priority == 0
        assert record.timestamp <= record.last_accessed

    def test_blank_category_normalized(self):
        assert MemoryRecord(key="k", value="v", category="  ").category == "general"
        assert MemoryRecord(key="k", value="v", category=None).category == "general"

    @pytest.mark.parametrize("key", ["", "   "])
    def test_blank_key_rejected(self, key):
        with pytest.raises(ValidationError):
            MemoryRecord(key=key, value="v")

    def test_camel_case_alias(self):
        record = MemoryRecord.model_validate(
            {"key": "k", "value": "v", "timestamp": "2026-01-01T00:00:00.000000Z", "lastAccessed": "2026-01-02T00:00:00.000000Z"}
        )
        assert record.last_accessed == "2026-01-02T00:00:00.000000Z"

    def test_last_accessed_clamped_to_creation(self):
        record = MemoryRecord(
            key="k",
            value="v",
            timestamp="2026-01-02T00:00:00.000000Z",
            last_accessed="2026-01-01T00:00:00.000000Z",
        )
        assert record.last_accessed == record.timestamp

    def test_from_row(self):
        row = {
            "key": "k",
            "value": "v",
            "category": None,
            "timestamp": "2026-01-01T00:00:00.000000Z",
            "lastAccessed": None,
            "priority": None,
        }
        record = MemoryRecord.from_row(row)

        assert record.category == "general"
        assert record.priority == 0
        assert record.last_accessed == record.timestamp


class TestMemoryRelation:
    def test_defaults_and_aliases(self):
        rel = MemoryRelation.model_validate({"sourceKey": "a", "targetKey": "b"})

        assert rel.relation_type == "related_to"
        assert rel.strength == 1.0

    def test_other_end(self):
        rel = MemoryRelation(source_key="a", target_key="b")

        assert rel.other_end("a") == "b"
        assert rel.other_end("b") == "a"

    def test_blank_type_rejected(self):
        with pytest.raises(ValidationError):
            MemoryRelation(source_key="a", target_key="b", relation_type=" ")


def test_empty_graph():
    graph = MemoryGraph()

    assert graph.is_empty
    assert graph.root is None


class TestLiteralVocabularies:
    @pytest.mark.parametrize(
        "literal, values",
        [
            (SearchStrategy, SEARCH_STRATEGIES),
            (TraversalStrategy, TRAVERSAL_STRATEGIES),
            (Direction, DIRECTIONS),
            (ListOrder, LIST_ORDERS),
        ],
    )
    def test_runtime_tuples_follow_literals(self, literal, values):
        assert values == get_args(literal)

    def test_order_clauses_cover_every_list_order(self):
        assert set(_ORDER_CLAUSES) == {None, *LIST_ORDERS}

    def test_every_traversal_strategy_has_a_walk(self):
        assert set(_WALKS) == set(TRAVERSAL_STRATEGIES)
