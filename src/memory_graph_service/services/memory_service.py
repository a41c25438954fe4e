"""
Memory Service - single entry point for memory operations.

Owns the storage handle and wires the record store, relation store, graph
engine, search engine, timeline builder and analytics into one API. The
service is constructed explicitly at process startup (see
``storage.factory.create_memory_service``) and handed to whoever needs it;
schema creation and legacy migration happen on first use.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..config import LEGACY_FILE_NAME, GraphSettings, LimitSettings, SearchSettings
from ..errors import MemoryLimitExceededError, NotFoundError
from ..graph.engine import GraphEngine
from ..models.memory import MemoryGraph, MemoryRecord, MemoryRelation, MemoryStats, ScoredMemory, utc_now_iso
from ..models.responses import SessionContext, UsageAnalytics
from ..models.validators import (
    DEFAULT_CATEGORY,
    DEFAULT_RELATION_TYPE,
    Direction,
    ListOrder,
    SearchStrategy,
    TraversalStrategy,
)
from ..storage.database import IN_MEMORY, SQLiteDatabase
from ..storage.migration import LEGACY_MIGRATED_META, migrate_legacy_file
from ..storage.record_store import RecordStore
from ..storage.relation_store import RelationStore
from .analytics import AnalyticsService
from .search_engine import SearchEngine
from .timeline import TimeBound, TimelineBuilder

logger = logging.getLogger(__name__)

# Records included in a session-context snapshot by default
SESSION_CONTEXT_LIMIT = 15


class MemoryService:
    """
    Facade over the memory store and its knowledge graph.

    All writes that span both stores for one logical action (the cascading
    delete, the capacity-checked insert) run in a single transaction.
    """

    def __init__(
        self,
        db: SQLiteDatabase,
        *,
        legacy_path: str | Path | None = None,
        migrate_legacy: bool = True,
        limits: LimitSettings | None = None,
        graph_settings: GraphSettings | None = None,
        search_settings: SearchSettings | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.db = db
        self.limits = limits or LimitSettings()
        self.graph_settings = graph_settings or GraphSettings()
        search_settings = search_settings or SearchSettings()

        if legacy_path is None and db.db_path != IN_MEMORY:
            legacy_path = Path(db.db_path).with_name(LEGACY_FILE_NAME)
        self.legacy_path = Path(legacy_path) if legacy_path is not None else None
        self.migrate_legacy = migrate_legacy

        self.records = RecordStore(db, clock=clock)
        self.relations = RelationStore(db, clock=clock)
        self.graph = GraphEngine(self.records, self.relations, max_depth=self.graph_settings.max_depth)
        self.search_engine = SearchEngine(
            self.records,
            self.graph,
            keyword_weight=search_settings.keyword_weight,
            priority_weight=search_settings.priority_weight,
        )
        self.timeline_builder = TimelineBuilder(self.records)
        self.analytics = AnalyticsService(self.records, self.graph, graph_depth=self.graph_settings.default_depth)

        self._initialization_lock = asyncio.Lock()
        self._initialized = False

    # ── Lifecycle ────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """
        Create the schema and migrate any legacy file. Idempotent and safe under concurrent calls.

        Raises:
            StorageUnavailableError: If the database cannot be opened.
            MigrationFailureError: If the legacy file cannot be imported (fatal at startup).
        """
        if self._initialized:
            return

        async with self._initialization_lock:
            if self._initialized:
                return

            await self.db.initialize()
            if self.migrate_legacy and self.legacy_path is not None and await self._legacy_import_allowed():
                migrated = await migrate_legacy_file(self.db, self.legacy_path)
                if migrated:
                    logger.info(f"Imported {migrated} legacy memories from {self.legacy_path}")

            self._initialized = True
            logger.info(f"MemoryService ready ({self.db.db_path})")

    async def _legacy_import_allowed(self) -> bool:
        """A legacy file is imported only into a new or still empty store, and never twice."""
        if self.db.created:
            return True
        if not self.legacy_path.exists():
            return False
        reason = None
        if await self.db.get_meta(LEGACY_MIGRATED_META) is not None:
            reason = "already migrated"
        elif await self.records.count() > 0:
            reason = "store already holds records"
        if reason is not None:
            logger.info(f"Skipping legacy import of {self.legacy_path}: {reason}")
            return False
        return True

    async def close(self) -> None:
        await self.db.close()
        self._initialized = False

    async def __aenter__(self) -> MemoryService:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ── Records ──────────────────────────────────────────────────────

    async def save(
        self,
        key: str,
        value: str,
        category: str | None = DEFAULT_CATEGORY,
        priority: int | None = None,
    ) -> MemoryRecord:
        """
        Save (insert or overwrite) a memory.

        Raises:
            InvalidReferenceError: If the key is blank.
            MemoryLimitExceededError: If enforcement is on and a new key would exceed max_memories.
        """
        await self.initialize()

        if not self.limits.enforce_max_memories:
            record = await self.records.save(key, value, category, priority)
        else:
            async with self.db.transaction() as conn:
                if not await self.records.exists(key, conn=conn):
                    current = await self.records.count(conn=conn)
                    if current >= self.limits.max_memories:
                        raise MemoryLimitExceededError(current, self.limits.max_memories)
                record = await self.records.save(key, value, category, priority, conn=conn)

        count = await self.records.count()
        if count > self.limits.max_memories:
            logger.warning(f"Memory store holds {count} records, above the advisory limit of {self.limits.max_memories}")
        return record

    async def recall(self, key: str) -> MemoryRecord | None:
        """Fetch a memory and mark it accessed. Returns None when the key is unknown."""
        await self.initialize()
        return await self.records.recall(key)

    async def update(self, key: str, value: str | None = None, category: str | None = None) -> MemoryRecord:
        """Partially update a memory. Raises NotFoundError when the key is unknown."""
        await self.initialize()
        return await self.records.update(key, value=value, category=category)

    async def prioritize(self, key: str, priority: int) -> MemoryRecord:
        """Set a memory's priority. Raises NotFoundError when the key is unknown."""
        await self.initialize()
        return await self.records.set_priority(key, priority)

    async def delete(self, key: str) -> bool:
        """
        Delete a memory and every relation touching it, atomically.

        Raises:
            NotFoundError: If the key is unknown (nothing is removed).
        """
        await self.initialize()
        async with self.db.transaction() as conn:
            if not await self.records.delete(key, conn=conn):
                raise NotFoundError(key)
            removed = await self.relations.delete_for_key(key, conn=conn)

        logger.info(f"Deleted memory {key!r} and {removed} relation(s)")
        return True

    async def list(
        self,
        category: str | None = None,
        order_by: ListOrder | None = None,
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        """List memories; ``order_by`` is None (key order), "priority" or "timestamp"."""
        await self.initialize()
        return await self.records.list(category=category, order_by=order_by, limit=limit)

    async def search(self, query: str) -> list[MemoryRecord]:
        """Case-insensitive substring search over keys and values."""
        await self.initialize()
        return await self.records.search(query)

    async def get_stats(self) -> MemoryStats:
        await self.initialize()
        return await self.records.get_stats()

    # ── Relations & graph ────────────────────────────────────────────

    async def link(
        self,
        source_key: str,
        target_key: str,
        relation_type: str = DEFAULT_RELATION_TYPE,
        strength: float = 1.0,
        metadata: str | dict[str, Any] | None = None,
    ) -> MemoryRelation:
        """Create or update a typed relation. Endpoints need not exist yet."""
        await self.initialize()
        return await self.relations.link(source_key, target_key, relation_type, strength, metadata)

    async def unlink(self, source_key: str, target_key: str, relation_type: str | None = None) -> bool:
        """Remove one relation, or all relations from source to target when no type is given."""
        await self.initialize()
        return await self.relations.unlink(source_key, target_key, relation_type)

    async def get_relations(self, key: str, direction: Direction = "both") -> list[MemoryRelation]:
        await self.initialize()
        return await self.relations.relations_of(key, direction)

    async def get_memory_graph(
        self,
        root: str | None = None,
        depth: int | None = None,
        strategy: TraversalStrategy = "bfs",
    ) -> MemoryGraph:
        """
        Traverse the knowledge graph.

        Args:
            root: Root key; None builds the graph over every record
            depth: Hop bound (defaults to the configured default depth)
            strategy: "bfs" or "dfs"
        """
        await self.initialize()
        depth = self.graph_settings.default_depth if depth is None else depth
        if root is None:
            return await self.graph.full_graph(max_depth=depth, strategy=strategy)
        return await self.graph.traverse(root, max_depth=depth, strategy=strategy)

    # ── Composite reads ──────────────────────────────────────────────

    async def search_advanced(self, query: str, strategy: SearchStrategy = "keyword", **opts: Any) -> list[MemoryRecord]:
        """
        Search with one of the five strategies.

        ``opts`` are passed to :meth:`SearchEngine.search_scored` (category,
        root_key, max_depth, start, end, limit).
        """
        await self.initialize()
        return await self.search_engine.search(query, strategy, **opts)

    async def search_advanced_scored(self, query: str, strategy: SearchStrategy = "keyword", **opts: Any) -> list[ScoredMemory]:
        await self.initialize()
        return await self.search_engine.search_scored(query, strategy, **opts)

    async def timeline(
        self,
        category: str | None = None,
        start: TimeBound = None,
        end: TimeBound = None,
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        """Memories in chronological order, optionally filtered by category and an inclusive window."""
        await self.initialize()
        return await self.timeline_builder.timeline(category=category, start=start, end=end, limit=limit)

    async def timeline_by_day(
        self,
        category: str | None = None,
        start: TimeBound = None,
        end: TimeBound = None,
    ) -> dict[str, list[MemoryRecord]]:
        await self.initialize()
        return await self.timeline_builder.timeline_by_day(category=category, start=start, end=end)

    async def get_usage_analytics(
        self,
        analysis_type: str = "all",
        time_range: str = "all",
        detailed: bool = False,
    ) -> UsageAnalytics:
        await self.initialize()
        return await self.analytics.get_usage_analytics(analysis_type, time_range, detailed)

    async def get_session_context(self, limit: int = SESSION_CONTEXT_LIMIT, depth: int | None = None) -> SessionContext:
        """Stats, the highest-priority memories and the whole graph, for priming a new session."""
        await self.initialize()
        depth = self.graph_settings.default_depth if depth is None else depth
        return SessionContext(
            stats=await self.records.get_stats(),
            memories=await self.records.list(order_by="priority", limit=limit),
            graph=await self.graph.full_graph(max_depth=depth),
        )
