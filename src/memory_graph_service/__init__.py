"""Persistent memory store with a typed knowledge graph for assistant sessions."""

from .errors import (
    InvalidReferenceError,
    MemoryLimitExceededError,
    MemoryServiceError,
    MigrationFailureError,
    NotFoundError,
    StorageUnavailableError,
)
from .models import MemoryGraph, MemoryRecord, MemoryRelation, MemoryStats, ScoredMemory
from .services.memory_service import MemoryService
from .storage.database import SQLiteDatabase
from .storage.factory import create_memory_service

__version__ = "0.1.0"

__all__ = [
    "InvalidReferenceError",
    "MemoryGraph",
    "MemoryLimitExceededError",
    "MemoryRecord",
    "MemoryRelation",
    "MemoryService",
    "MemoryServiceError",
    "MemoryStats",
    "MigrationFailureError",
    "NotFoundError",
    "SQLiteDatabase",
    "ScoredMemory",
    "StorageUnavailableError",
    "create_memory_service",
]
