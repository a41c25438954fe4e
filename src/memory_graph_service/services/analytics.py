"""Usage analytics over the record store and the knowledge graph.

Read-only: records are listed without refreshing ``lastAccessed`` and the
graph is rebuilt from the stores like every other graph query.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone

from ..graph.engine import GraphEngine
from ..models.memory import MemoryGraph, MemoryRecord, utc_now_iso
from ..models.responses import (
    CategoryShare,
    ConnectedNode,
    GraphUsageStats,
    MemoryUsageStats,
    UsageAnalytics,
)
from ..storage.record_store import RecordStore
from ..utils.date_parsing import parse_date_filter

logger = logging.getLogger(__name__)

ANALYSIS_TYPES = ("memory", "graph", "all")
TIME_RANGE_LABELS = {
    "1d": "Last 24 hours",
    "7d": "Last 7 days",
    "30d": "Last 30 days",
    "all": "All time",
}

# Entries shown in each top-N section
TOP_N = 5
DAILY_ACTIVITY_DAYS = 7


def _cutoff(time_range: str) -> datetime | None:
    if time_range == "all":
        return None
    return datetime.fromtimestamp(parse_date_filter(time_range), timezone.utc)


def compute_memory_usage(records: list[MemoryRecord], time_range: str = "all", detailed: bool = False) -> MemoryUsageStats:
    """Category, daily-activity and priority distributions for a set of records."""
    total = len(records)
    counts = Counter(r.category for r in records)
    categories = [
        CategoryShare(category=category, count=count, percentage=round(count / total * 100, 1))
        for category, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]

    cutoff = _cutoff(time_range)
    in_range = [r for r in records if cutoff is None or r.created_at >= cutoff]
    by_day = Counter(r.created_at.date().isoformat() for r in in_range)
    daily_activity = dict(sorted(by_day.items(), reverse=True)[:DAILY_ACTIVITY_DAYS])

    priority_counts = Counter(r.priority for r in records)
    priority_distribution = dict(sorted(priority_counts.items(), reverse=True))

    stats = MemoryUsageStats(
        total=total,
        category_count=len(counts),
        categories=categories,
        daily_activity=daily_activity,
        priority_distribution=priority_distribution,
    )
    if detailed:
        by_access = sorted(records, key=lambda r: (-r.last_accessed_at.timestamp(), r.key))
        oldest = sorted(records, key=lambda r: (r.created_at, r.key))
        stats.recently_accessed = [r.key for r in by_access[:TOP_N]]
        stats.oldest = [r.key for r in oldest[:TOP_N]]
    return stats


def compute_graph_usage(graph: MemoryGraph, detailed: bool = False) -> GraphUsageStats:
    """Relation-type distribution, connectivity and cluster figures for a graph."""
    relation_types = Counter(edge.relation_type for edge in graph.edges)
    connections: Counter[str] = Counter()
    for edge in graph.edges:
        connections[edge.source_key] += 1
        connections[edge.target_key] += 1

    top = sorted(connections.items(), key=lambda item: (-item[1], item[0]))[:TOP_N]
    node_count = len(graph.nodes)

    stats = GraphUsageStats(
        node_count=node_count,
        edge_count=len(graph.edges),
        cluster_count=len(graph.clusters),
        relation_types=dict(sorted(relation_types.items(), key=lambda item: (-item[1], item[0]))),
        average_connections=round(len(graph.edges) * 2 / node_count, 2) if node_count else 0.0,
        most_connected=[ConnectedNode(key=key, connections=count) for key, count in top],
    )
    if detailed:
        stats.clusters = graph.clusters[:TOP_N]
    return stats


class AnalyticsService:
    """Builds usage reports from the record store and graph engine."""

    def __init__(self, records: RecordStore, graph: GraphEngine, graph_depth: int = 2):
        self.records = records
        self.graph = graph
        self.graph_depth = graph_depth

    async def get_usage_analytics(
        self,
        analysis_type: str = "all",
        time_range: str = "all",
        detailed: bool = False,
    ) -> UsageAnalytics:
        """
        Usage report for the memory store.

        Args:
            analysis_type: "memory", "graph", or "all"
            time_range: "1d", "7d", "30d", "all", or any relative/ISO value parse_date_filter accepts
            detailed: Include recently accessed/oldest keys and cluster membership

        Raises:
            ValueError: If analysis_type or time_range is invalid
        """
        if analysis_type not in ANALYSIS_TYPES:
            raise ValueError(f"Invalid analysis type: {analysis_type!r}. Must be one of: {', '.join(ANALYSIS_TYPES)}")
        _cutoff(time_range)  # validate before doing any work

        report = UsageAnalytics(
            time_range=time_range,
            time_range_label=TIME_RANGE_LABELS.get(time_range, f"Since {time_range}"),
            generated_at=utc_now_iso(),
        )
        if analysis_type in ("memory", "all"):
            report.memory = compute_memory_usage(await self.records.list(), time_range, detailed)
        if analysis_type in ("graph", "all"):
            report.graph = compute_graph_usage(await self.graph.full_graph(max_depth=self.graph_depth), detailed)

        logger.debug(f"Usage analytics generated ({analysis_type}, {time_range})")
        return report
