"""
Relation store: typed, directed, weighted edges between record keys.

Edges are unique per (source, target, type); linking the same triple again
updates strength and metadata in place and keeps the original row id, so
insertion order (the traversal tie-break) is stable across re-links.

Endpoints are not required to exist: the graph model tolerates edges to
keys that were never saved or have since been deleted.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

import aiosqlite

from ..models.memory import MemoryRelation, utc_now_iso
from ..models.validators import DEFAULT_RELATION_TYPE, DIRECTIONS, Direction
from .database import SQLiteDatabase
from .record_store import check_key
from .schema import RELATION_COLUMNS

logger = logging.getLogger(__name__)


def encode_metadata(metadata: str | dict[str, Any] | None) -> str | None:
    """Metadata is stored as an opaque string; dicts are serialised to JSON."""
    if metadata is None or isinstance(metadata, str):
        return metadata
    return json.dumps(metadata, sort_keys=True, default=str)


class RelationStore:
    """Upsert, removal and lookup over the ``memory_relations`` table."""

    def __init__(self, db: SQLiteDatabase, clock: Callable[[], str] = utc_now_iso):
        self.db = db
        self._clock = clock

    async def link(
        self,
        source_key: str,
        target_key: str,
        relation_type: str = DEFAULT_RELATION_TYPE,
        strength: float = 1.0,
        metadata: str | dict[str, Any] | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> MemoryRelation:
        """
        Create or update the edge ``source --relation_type--> target``.

        Raises:
            InvalidReferenceError: If a key or the relation type is blank.
        """
        check_key(source_key, "source key")
        check_key(target_key, "target key")
        check_key(relation_type, "relation type")
        encoded = encode_metadata(metadata)

        async with self.db.transaction(conn) as db:
            await db.execute(
                """
                INSERT INTO memory_relations (sourceKey, targetKey, relationType, strength, metadata, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(sourceKey, targetKey, relationType) DO UPDATE SET
                    strength = excluded.strength,
                    metadata = excluded.metadata
                """,
                (source_key, target_key, relation_type, float(strength), encoded, self._clock()),
            )
            cursor = await db.execute(
                f"SELECT {RELATION_COLUMNS} FROM memory_relations WHERE sourceKey = ? AND targetKey = ? AND relationType = ?",
                (source_key, target_key, relation_type),
            )
            row = await cursor.fetchone()

        logger.debug(f"Linked {source_key!r} -[{relation_type}]-> {target_key!r} (strength={strength})")
        return MemoryRelation.from_row(row)

    async def unlink(
        self,
        source_key: str,
        target_key: str,
        relation_type: str | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> bool:
        """
        Remove one edge, or every edge from source to target when no type is given.

        Returns:
            True if at least one edge was removed.
        """
        sql = "DELETE FROM memory_relations WHERE sourceKey = ? AND targetKey = ?"
        params: list[object] = [source_key, target_key]
        if relation_type is not None:
            sql += " AND relationType = ?"
            params.append(relation_type)

        async with self.db.transaction(conn) as db:
            cursor = await db.execute(sql, params)
            return cursor.rowcount > 0

    async def delete_for_key(self, key: str, conn: aiosqlite.Connection | None = None) -> int:
        """Remove every edge that touches ``key`` in either direction."""
        async with self.db.transaction(conn) as db:
            cursor = await db.execute("DELETE FROM memory_relations WHERE sourceKey = ? OR targetKey = ?", (key, key))
            return cursor.rowcount

    async def relations_of(
        self,
        key: str,
        direction: Direction = "both",
        conn: aiosqlite.Connection | None = None,
    ) -> list[MemoryRelation]:
        """
        Edges touching ``key``, in insertion order.

        Args:
            key: Record key
            direction: "outgoing", "incoming", or "both"
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid direction: {direction!r}. Must be one of: {', '.join(DIRECTIONS)}")

        if direction == "outgoing":
            where, params = "sourceKey = ?", (key,)
        elif direction == "incoming":
            where, params = "targetKey = ?", (key,)
        else:
            where, params = "sourceKey = ? OR targetKey = ?", (key, key)

        async with self.db.read(conn) as db:
            cursor = await db.execute(f"SELECT {RELATION_COLUMNS} FROM memory_relations WHERE {where} ORDER BY id", params)
            return [MemoryRelation.from_row(row) for row in await cursor.fetchall()]

    async def all_relations(self, conn: aiosqlite.Connection | None = None) -> list[MemoryRelation]:
        """Every edge, in insertion order."""
        async with self.db.read(conn) as db:
            cursor = await db.execute(f"SELECT {RELATION_COLUMNS} FROM memory_relations ORDER BY id")
            return [MemoryRelation.from_row(row) for row in await cursor.fetchall()]

    async def count(self, conn: aiosqlite.Connection | None = None) -> int:
        async with self.db.read(conn) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM memory_relations")
            row = await cursor.fetchone()
            return row[0] if row else 0
