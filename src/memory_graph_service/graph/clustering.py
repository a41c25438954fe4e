"""Connected-component clustering of the memory graph.

Edges are treated as undirected and relation types are ignored: two records
share a cluster when any chain of relations joins them. Isolated nodes are
left out so the output only describes connected structure.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from ..models.memory import MemoryRelation

logger = logging.getLogger(__name__)


class UnionFind:
    """Disjoint-set forest with path compression and union by size."""

    def __init__(self, items: Iterable[str] = ()):
        self._parent: dict[str, str] = {}
        self._size: dict[str, int] = {}
        for item in items:
            self.add(item)

    def __contains__(self, item: object) -> bool:
        return item in self._parent

    def add(self, item: str) -> None:
        if item not in self._parent:
            self._parent[item] = item
            self._size[item] = 1

    def find(self, item: str) -> str:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> bool:
        """Merge the sets holding ``a`` and ``b``. Returns False if already joined."""
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self._size[ra] < self._size[rb]:
            ra, rb = rb, ra
        self._parent[rb] = ra
        self._size[ra] += self._size[rb]
        return True

    def groups(self) -> dict[str, list[str]]:
        members: dict[str, list[str]] = defaultdict(list)
        for item in self._parent:
            members[self.find(item)].append(item)
        return dict(members)


def connected_components(nodes: Iterable[str], edges: Iterable[MemoryRelation]) -> list[list[str]]:
    """
    Partition ``nodes`` into connected components under ``edges``.

    Args:
        nodes: Keys to partition; edges with an endpoint outside this set are ignored
        edges: Relations, treated as undirected

    Returns:
        Components with at least one edge, largest first (ties by first key),
        each sorted by key.
    """
    uf = UnionFind(nodes)
    connected: set[str] = set()

    for edge in edges:
        if edge.source_key not in uf or edge.target_key not in uf:
            continue
        if edge.source_key == edge.target_key:
            continue
        uf.union(edge.source_key, edge.target_key)
        connected.add(edge.source_key)
        connected.add(edge.target_key)

    clusters = [sorted(members) for members in uf.groups().values() if members[0] in connected]
    clusters.sort(key=lambda c: (-len(c), c[0]))

    logger.debug(f"Clustering found {len(clusters)} connected components over {len(connected)} linked nodes")
    return clusters
