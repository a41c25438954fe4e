"""
Record store: durable key/value memories.

Every method accepts an optional ``conn`` so the facade can compose several
store calls into one transaction; without it each call is its own unit of
work on the shared handle.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import aiosqlite

from ..errors import InvalidReferenceError, NotFoundError
from ..models.memory import MemoryRecord, MemoryStats, utc_now_iso
from ..models.validators import DEFAULT_CATEGORY, LIST_ORDERS, ListOrder, normalize_category
from .database import SQLiteDatabase
from .schema import MEMORY_COLUMNS

logger = logging.getLogger(__name__)

_ORDER_CLAUSES = {
    None: "key ASC",
    "priority": "priority DESC, timestamp DESC, key ASC",
    "timestamp": "timestamp DESC, key ASC",
}


def check_key(key: object, label: str = "key") -> str:
    """Reject non-string and blank identifiers."""
    if not isinstance(key, str) or not key.strip():
        raise InvalidReferenceError(f"Invalid {label}: {key!r} (must be a non-empty string)")
    return key


class RecordStore:
    """CRUD, listing and substring search over the ``memories`` table."""

    def __init__(self, db: SQLiteDatabase, clock: Callable[[], str] = utc_now_iso):
        self.db = db
        self._clock = clock

    async def _fetch(self, db: aiosqlite.Connection, key: str) -> MemoryRecord | None:
        cursor = await db.execute(f"SELECT {MEMORY_COLUMNS} FROM memories WHERE key = ?", (key,))
        row = await cursor.fetchone()
        return MemoryRecord.from_row(row) if row else None

    async def save(
        self,
        key: str,
        value: str,
        category: str | None = DEFAULT_CATEGORY,
        priority: int | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> MemoryRecord:
        """
        Insert or overwrite a memory.

        On insert ``timestamp`` and ``lastAccessed`` are both set to now. On
        overwrite the original ``timestamp`` is kept, value and category are
        replaced, ``lastAccessed`` is refreshed and the priority is only
        changed when one is given.
        """
        check_key(key)
        if value is None:
            raise ValueError(f"Memory {key!r} needs a value")
        category = normalize_category(category)
        now = self._clock()

        async with self.db.transaction(conn) as db:
            await db.execute(
                """
                INSERT INTO memories (key, value, category, timestamp, lastAccessed, priority)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    category = excluded.category,
                    lastAccessed = excluded.lastAccessed,
                    priority = CASE WHEN ? IS NULL THEN memories.priority ELSE excluded.priority END
                """,
                (key, value, category, now, now, priority or 0, priority),
            )
            record = await self._fetch(db, key)

        logger.debug(f"Saved memory {key!r} [{category}]")
        return record

    async def get(self, key: str, conn: aiosqlite.Connection | None = None) -> MemoryRecord | None:
        """Read a record without touching ``lastAccessed``."""
        async with self.db.read(conn) as db:
            return await self._fetch(db, key)

    async def recall(self, key: str, conn: aiosqlite.Connection | None = None) -> MemoryRecord | None:
        """
        Read a record and refresh its ``lastAccessed``.

        Read-only for the caller but not at the storage level. Returns None
        on a miss instead of raising.
        """
        async with self.db.transaction(conn) as db:
            cursor = await db.execute("UPDATE memories SET lastAccessed = ? WHERE key = ?", (self._clock(), key))
            if cursor.rowcount == 0:
                return None
            return await self._fetch(db, key)

    async def update(
        self,
        key: str,
        value: str | None = None,
        category: str | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> MemoryRecord:
        """Partially update value and/or category. Raises NotFoundError when absent."""
        assignments = ["lastAccessed = ?"]
        params: list[object] = [self._clock()]
        if value is not None:
            assignments.append("value = ?")
            params.append(value)
        if category is not None:
            assignments.append("category = ?")
            params.append(normalize_category(category))
        params.append(key)

        async with self.db.transaction(conn) as db:
            cursor = await db.execute(f"UPDATE memories SET {', '.join(assignments)} WHERE key = ?", params)
            if cursor.rowcount == 0:
                raise NotFoundError(key)
            return await self._fetch(db, key)

    async def set_priority(self, key: str, priority: int, conn: aiosqlite.Connection | None = None) -> MemoryRecord:
        """Set the ranking priority of a record. Raises NotFoundError when absent."""
        async with self.db.transaction(conn) as db:
            cursor = await db.execute("UPDATE memories SET priority = ? WHERE key = ?", (int(priority), key))
            if cursor.rowcount == 0:
                raise NotFoundError(key)
            return await self._fetch(db, key)

    async def delete(self, key: str, conn: aiosqlite.Connection | None = None) -> bool:
        """Delete a record. Relations are left to the caller (see RelationStore.delete_for_key)."""
        async with self.db.transaction(conn) as db:
            cursor = await db.execute("DELETE FROM memories WHERE key = ?", (key,))
            return cursor.rowcount > 0

    async def list(
        self,
        category: str | None = None,
        order_by: ListOrder | None = None,
        limit: int | None = None,
        conn: aiosqlite.Connection | None = None,
    ) -> list[MemoryRecord]:
        """
        List records, optionally filtered by category.

        Args:
            category: Only records in this category
            order_by: None (key order), "priority" or "timestamp" (newest first)
            limit: Maximum records to return
        """
        if order_by not in _ORDER_CLAUSES:
            raise ValueError(f"Invalid order_by: {order_by!r}. Must be one of: {', '.join(LIST_ORDERS)}")

        sql = f"SELECT {MEMORY_COLUMNS} FROM memories"
        params: list[object] = []
        if category is not None:
            sql += " WHERE category = ?"
            params.append(category)
        sql += f" ORDER BY {_ORDER_CLAUSES[order_by]}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(max(int(limit), 0))

        async with self.db.read(conn) as db:
            cursor = await db.execute(sql, params)
            return [MemoryRecord.from_row(row) for row in await cursor.fetchall()]

    async def search(self, query: str, conn: aiosqlite.Connection | None = None) -> list[MemoryRecord]:
        """Case-insensitive substring match over key and value, in key order."""
        needle = (query or "").lower()
        if not needle:
            return []
        records = await self.list(conn=conn)
        return [r for r in records if needle in r.key.lower() or needle in r.value.lower()]

    async def get_stats(self, conn: aiosqlite.Connection | None = None) -> MemoryStats:
        async with self.db.read(conn) as db:
            cursor = await db.execute("SELECT category, COUNT(*) FROM memories GROUP BY category ORDER BY COUNT(*) DESC, category")
            by_category = {row[0]: row[1] for row in await cursor.fetchall()}
        return MemoryStats(total=sum(by_category.values()), by_category=by_category)

    async def count(self, conn: aiosqlite.Connection | None = None) -> int:
        async with self.db.read(conn) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM memories")
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def exists(self, key: str, conn: aiosqlite.Connection | None = None) -> bool:
        async with self.db.read(conn) as db:
            cursor = await db.execute("SELECT 1 FROM memories WHERE key = ?", (key,))
            return await cursor.fetchone() is not None

    async def keys(self, conn: aiosqlite.Connection | None = None) -> set[str]:
        async with self.db.read(conn) as db:
            cursor = await db.execute("SELECT key FROM memories")
            return {row[0] for row in await cursor.fetchall()}
