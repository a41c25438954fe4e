"""
Search engine: five ranking strategies over the record store and graph.

Strategies:
    keyword          - substring hits, earliest match first
    graph_traversal  - records reachable from a seed, closest first
    temporal         - records inside a time window, newest first
    priority         - every record, highest priority first
    context_aware    - keyword relevance blended with normalised priority

No strategy mutates state (records are read without refreshing
``lastAccessed``). Each ends in a total order with the key as the final
tie-break, so repeated calls over unchanged data return identical sequences.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..graph.engine import GraphEngine
from ..models.memory import MemoryRecord, ScoredMemory
from ..models.validators import SEARCH_STRATEGIES, SearchStrategy
from ..storage.record_store import RecordStore
from ..utils.date_parsing import to_utc_datetime
from .timeline import within_window

logger = logging.getLogger(__name__)

# Value matches rank slightly below key matches at the same relative position
VALUE_MATCH_DISCOUNT = 0.9


def match_position(record: MemoryRecord, needle: str) -> int | None:
    """Earliest case-insensitive match offset in key or value, or None."""
    positions = [p for p in (record.key.lower().find(needle), record.value.lower().find(needle)) if p >= 0]
    return min(positions) if positions else None


def keyword_relevance(record: MemoryRecord, needle: str) -> float:
    """Relevance in [0, 1]: 1 for a match at the start of the key, lower for later or value-only matches."""
    best = 0.0
    key_pos = record.key.lower().find(needle)
    if key_pos >= 0:
        best = 1.0 - key_pos / max(len(record.key), 1)
    value_pos = record.value.lower().find(needle)
    if value_pos >= 0:
        best = max(best, VALUE_MATCH_DISCOUNT * (1.0 - value_pos / max(len(record.value), 1)))
    return best


def _newest_first(record: MemoryRecord) -> float:
    return -record.created_at.timestamp()


class SearchEngine:
    """Answers advanced searches by composing the record store and the graph engine."""

    def __init__(
        self,
        records: RecordStore,
        graph: GraphEngine,
        keyword_weight: float = 0.6,
        priority_weight: float = 0.4,
    ):
        self.records = records
        self.graph = graph
        self.keyword_weight = keyword_weight
        self.priority_weight = priority_weight

    async def search(self, query: str, strategy: SearchStrategy = "keyword", **opts) -> list[MemoryRecord]:
        """Ranked records for ``query`` under ``strategy``; see :meth:`search_scored` for options."""
        return [hit.memory for hit in await self.search_scored(query, strategy, **opts)]

    async def search_scored(
        self,
        query: str,
        strategy: SearchStrategy = "keyword",
        *,
        category: str | None = None,
        root_key: str | None = None,
        max_depth: int = 2,
        start: datetime | str | float | None = None,
        end: datetime | str | float | None = None,
        limit: int | None = None,
    ) -> list[ScoredMemory]:
        """
        Run one search strategy.

        Args:
            query: Search text (ignored by the temporal and priority strategies)
            strategy: keyword, graph_traversal, temporal, priority or context_aware
            category: Restrict results to one category
            root_key: Seed for graph_traversal (defaults to the query or its best keyword hit)
            max_depth: Hop bound for graph_traversal
            start: Inclusive lower time bound for temporal
            end: Inclusive upper time bound for temporal
            limit: Maximum results

        Returns:
            ScoredMemory list, best first

        Raises:
            ValueError: If the strategy is unknown
        """
        if strategy not in SEARCH_STRATEGIES:
            raise ValueError(f"Invalid search strategy: {strategy!r}. Must be one of: {', '.join(SEARCH_STRATEGIES)}")

        records = await self.records.list()

        if strategy == "keyword":
            hits = self._keyword(records, query)
        elif strategy == "graph_traversal":
            hits = await self._graph_traversal(records, query, root_key, max_depth)
        elif strategy == "temporal":
            hits = self._temporal(records, start, end)
        elif strategy == "priority":
            hits = self._priority(records)
        else:
            hits = self._context_aware(records, query)

        if category is not None:
            hits = [h for h in hits if h.memory.category == category]
        if limit is not None:
            hits = hits[: max(limit, 0)]

        logger.debug(f"{strategy} search for {query!r} returned {len(hits)} results")
        return hits

    # ── Strategies ───────────────────────────────────────────────────

    @staticmethod
    def _keyword(records: list[MemoryRecord], query: str) -> list[ScoredMemory]:
        needle = (query or "").lower()
        if not needle:
            return []

        ranked: list[tuple[int, MemoryRecord]] = []
        for record in records:
            position = match_position(record, needle)
            if position is not None:
                ranked.append((position, record))

        ranked.sort(key=lambda item: (item[0], -item[1].priority, item[1].key))
        return [
            ScoredMemory(memory=record, score=1.0 / (1 + position), debug_info={"position": position})
            for position, record in ranked
        ]

    async def _graph_traversal(
        self, records: list[MemoryRecord], query: str, root_key: str | None, max_depth: int
    ) -> list[ScoredMemory]:
        by_key = {r.key: r for r in records}

        seed = root_key
        if seed is None and query in by_key:
            seed = query
        if seed is None:
            keyword_hits = self._keyword(records, query)
            seed = keyword_hits[0].memory.key if keyword_hits else None
        if seed is None:
            return []

        graph = await self.graph.traverse(seed, max_depth=max_depth, strategy="bfs")
        ranked = [(graph.depths[key], by_key[key]) for key in graph.nodes if key in by_key]
        ranked.sort(key=lambda item: (item[0], -item[1].priority, item[1].key))
        return [
            ScoredMemory(memory=record, score=1.0 / (1 + distance), debug_info={"distance": distance, "seed": seed})
            for distance, record in ranked
        ]

    @staticmethod
    def _temporal(
        records: list[MemoryRecord],
        start: datetime | str | float | None,
        end: datetime | str | float | None,
    ) -> list[ScoredMemory]:
        start_dt = to_utc_datetime(start)
        end_dt = to_utc_datetime(end)
        matching = [r for r in records if within_window(r, start_dt, end_dt)]
        matching.sort(key=lambda r: (_newest_first(r), r.key))
        return [ScoredMemory(memory=r, score=r.created_at.timestamp()) for r in matching]

    @staticmethod
    def _priority(records: list[MemoryRecord]) -> list[ScoredMemory]:
        ranked = sorted(records, key=lambda r: (-r.priority, _newest_first(r), r.key))
        return [ScoredMemory(memory=r, score=float(r.priority)) for r in ranked]

    def _context_aware(self, records: list[MemoryRecord], query: str) -> list[ScoredMemory]:
        needle = (query or "").lower()
        if not needle:
            return []

        candidates = [(keyword_relevance(r, needle), r) for r in records if match_position(r, needle) is not None]
        if not candidates:
            return []

        priorities = [r.priority for _, r in candidates]
        low, high = min(priorities), max(priorities)
        spread = high - low
        total_weight = self.keyword_weight + self.priority_weight

        scored: list[ScoredMemory] = []
        for relevance, record in candidates:
            normalized_priority = (record.priority - low) / spread if spread else 0.0
            score = (self.keyword_weight * relevance + self.priority_weight * normalized_priority) / total_weight
            scored.append(
                ScoredMemory(
                    memory=record,
                    score=score,
                    debug_info={"keyword_relevance": relevance, "normalized_priority": normalized_priority},
                )
            )

        scored.sort(key=lambda hit: (-hit.score, hit.memory.key))
        return scored
