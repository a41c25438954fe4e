"""Service-layer response models.

Typed Pydantic models for the composite read views (analytics, session
context) so callers get attribute access instead of ``dict`` lookups.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from .memory import MemoryGraph, MemoryRecord, MemoryStats

# ---------------------------------------------------------------------------
# Usage analytics
# ---------------------------------------------------------------------------


class CategoryShare(BaseModel):
    """One row of the category distribution."""

    category: str
    count: int
    percentage: float


class MemoryUsageStats(BaseModel):
    """Record-store side of the usage report."""

    total: int = 0
    category_count: int = 0
    categories: list[CategoryShare] = Field(default_factory=list)
    # Most recent days with activity inside the time range, newest first
    daily_activity: dict[str, int] = Field(default_factory=dict)
    priority_distribution: dict[int, int] = Field(default_factory=dict)
    recently_accessed: list[str] | None = None
    oldest: list[str] | None = None


class ConnectedNode(BaseModel):
    key: str
    connections: int


class GraphUsageStats(BaseModel):
    """Knowledge-graph side of the usage report."""

    node_count: int = 0
    edge_count: int = 0
    cluster_count: int = 0
    relation_types: dict[str, int] = Field(default_factory=dict)
    average_connections: float = 0.0
    most_connected: list[ConnectedNode] = Field(default_factory=list)
    clusters: list[list[str]] | None = None


class UsageAnalytics(BaseModel):
    """Full usage report; either side may be omitted depending on the requested type."""

    time_range: str = "all"
    time_range_label: str = "All time"
    generated_at: str
    memory: MemoryUsageStats | None = None
    graph: GraphUsageStats | None = None


# ---------------------------------------------------------------------------
# Session context
# ---------------------------------------------------------------------------


class SessionContext(BaseModel):
    """Snapshot handed to a new assistant session: stats, key memories and the graph."""

    stats: MemoryStats
    memories: list[MemoryRecord] = Field(default_factory=list)
    graph: MemoryGraph = Field(default_factory=MemoryGraph)
