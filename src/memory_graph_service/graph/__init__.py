"""
Graph layer for the memory graph service.

Derived, in-memory view over the relation store:
- Bounded BFS/DFS traversal from a root or from every record
- Connected-component clustering via union-find
"""

from .clustering import UnionFind, connected_components
from .engine import GraphEngine, build_adjacency

__all__ = [
    "GraphEngine",
    "UnionFind",
    "build_adjacency",
    "connected_components",
]
