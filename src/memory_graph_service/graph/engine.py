"""
Graph engine: traversal and clustering over the relation store.

The graph is never persisted. Every query rebuilds the adjacency view from
the stores (O(edges)), so results can never be stale. Keys without a record
(dangling edge endpoints) are skipped: they never appear in ``nodes`` and are
not expanded, but they do not stop the walk.
"""

import logging
from collections import defaultdict, deque

from ..models.memory import MemoryGraph, MemoryRelation
from ..models.validators import DIRECTIONS, TRAVERSAL_STRATEGIES, Direction, TraversalStrategy
from ..storage.record_store import RecordStore
from ..storage.relation_store import RelationStore
from .clustering import connected_components

logger = logging.getLogger(__name__)

Adjacency = dict[str, list[tuple[str, MemoryRelation]]]


def build_adjacency(relations: list[MemoryRelation], direction: Direction = "both") -> Adjacency:
    """Neighbour lists in relation insertion order."""
    adjacency: Adjacency = defaultdict(list)
    for rel in relations:
        if direction in ("outgoing", "both"):
            adjacency[rel.source_key].append((rel.target_key, rel))
        if direction in ("incoming", "both"):
            adjacency[rel.target_key].append((rel.source_key, rel))
    return adjacency


def _bfs(root: str, adjacency: Adjacency, existing: set[str], max_depth: int, depths: dict[str, int]) -> list[str]:
    order = [root]
    depths[root] = 0
    queue = deque([root])
    while queue:
        key = queue.popleft()
        depth = depths[key]
        if depth >= max_depth:
            continue
        for neighbor, _ in adjacency.get(key, ()):
            if neighbor in depths or neighbor not in existing:
                continue
            depths[neighbor] = depth + 1
            order.append(neighbor)
            queue.append(neighbor)
    return order


def _dfs(root: str, adjacency: Adjacency, existing: set[str], max_depth: int, depths: dict[str, int]) -> list[str]:
    # Iterative pre-order walk; a key reached again by a shorter path is re-expanded
    order = [root]
    depths[root] = 0
    stack = [(root, 0, iter(adjacency.get(root, ())))]
    while stack:
        key, depth, neighbors = stack[-1]
        descended = False
        if depth < max_depth:
            for neighbor, _ in neighbors:
                if neighbor not in existing:
                    continue
                known = depths.get(neighbor)
                if known is not None and known <= depth + 1:
                    continue
                if known is None:
                    order.append(neighbor)
                depths[neighbor] = depth + 1
                stack.append((neighbor, depth + 1, iter(adjacency.get(neighbor, ()))))
                descended = True
                break
        if not descended:
            stack.pop()
    return order


_WALKS = {"bfs": _bfs, "dfs": _dfs}


class GraphEngine:
    """Builds bounded traversals and cluster views from the record and relation stores."""

    def __init__(self, records: RecordStore, relations: RelationStore, max_depth: int = 5):
        self.records = records
        self.relations = relations
        self.max_depth = max_depth

    def _check_args(self, max_depth: int, strategy: TraversalStrategy, direction: Direction = "both") -> int:
        if strategy not in TRAVERSAL_STRATEGIES:
            raise ValueError(f"Invalid traversal strategy: {strategy!r}. Must be one of: {', '.join(TRAVERSAL_STRATEGIES)}")
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid direction: {direction!r}. Must be one of: {', '.join(DIRECTIONS)}")
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        if max_depth > self.max_depth:
            logger.debug(f"Clamping traversal depth {max_depth} to ceiling {self.max_depth}")
            return self.max_depth
        return max_depth

    async def _load(self, direction: Direction) -> tuple[set[str], list[MemoryRelation], Adjacency]:
        existing = await self.records.keys()
        relations = await self.relations.all_relations()
        return existing, relations, build_adjacency(relations, direction)

    @staticmethod
    def _assemble(
        root: str | None, order: list[str], depths: dict[str, int], relations: list[MemoryRelation]
    ) -> MemoryGraph:
        node_set = set(order)
        edges = [rel for rel in relations if rel.source_key in node_set and rel.target_key in node_set]
        return MemoryGraph(
            root=root,
            nodes=order,
            edges=edges,
            clusters=connected_components(order, edges),
            depths=depths,
        )

    async def traverse(
        self,
        root_key: str,
        max_depth: int = 2,
        strategy: TraversalStrategy = "bfs",
        direction: Direction = "both",
    ) -> MemoryGraph:
        """
        Walk the graph from ``root_key`` up to ``max_depth`` hops.

        Args:
            root_key: Starting record; a missing root yields an empty graph
            max_depth: Hard hop bound (clamped to the configured ceiling)
            strategy: "bfs" (level by level) or "dfs" (depth first)
            direction: "both" follows edges either way, "outgoing"/"incoming" restrict it

        Returns:
            MemoryGraph with nodes in visit order, the edges among them,
            their clusters and per-node hop depths.
        """
        max_depth = self._check_args(max_depth, strategy, direction)
        existing, relations, adjacency = await self._load(direction)

        if root_key not in existing:
            logger.debug(f"Traversal root {root_key!r} not found; returning empty graph")
            return MemoryGraph(root=root_key)

        depths: dict[str, int] = {}
        order = _WALKS[strategy](root_key, adjacency, existing, max_depth, depths)
        logger.debug(f"{strategy.upper()} from {root_key!r} (depth {max_depth}) visited {len(order)} nodes")
        return self._assemble(root_key, order, depths, relations)

    async def full_graph(self, max_depth: int = 2, strategy: TraversalStrategy = "bfs") -> MemoryGraph:
        """Traverse from every record not yet visited, in key order; the union of single-root walks."""
        max_depth = self._check_args(max_depth, strategy)
        existing, relations, adjacency = await self._load("both")

        depths: dict[str, int] = {}
        order: list[str] = []
        walk = _WALKS[strategy]
        for key in sorted(existing):
            if key in depths:
                continue
            # Walks share ``depths`` as their visited set, so each returns only newly reached keys
            order.extend(walk(key, adjacency, existing, max_depth, depths))

        logger.debug(f"Full graph: {len(order)} nodes, {len(relations)} relations")
        return self._assemble(None, order, depths, relations)

    def cluster(self, graph: MemoryGraph) -> list[list[str]]:
        """Connected components of ``graph`` (undirected, isolated nodes excluded)."""
        return connected_components(graph.nodes, graph.edges)
