"""Data models for the memory graph service."""

from .memory import MemoryGraph, MemoryRecord, MemoryRelation, MemoryStats, ScoredMemory
from .responses import SessionContext, UsageAnalytics

__all__ = [
    "MemoryGraph",
    "MemoryRecord",
    "MemoryRelation",
    "MemoryStats",
    "ScoredMemory",
    "SessionContext",
    "UsageAnalytics",
]
