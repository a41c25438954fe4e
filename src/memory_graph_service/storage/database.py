# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
SQLite storage handle.

Owns the single aiosqlite connection for the process and serialises every
unit of work on it with an asyncio lock, so a read never observes a write
that is half way through its transaction.
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite

from ..errors import StorageUnavailableError
from .schema import SCHEMA_STATEMENTS, SCHEMA_VERSION

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


class SQLiteDatabase:
    """Async SQLite handle shared by the record and relation stores."""

    def __init__(self, db_path: str | os.PathLike[str]):
        """
        Initialize the storage handle.

        Args:
            db_path: Path to SQLite database file, or ``:memory:``
        """
        self.db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._initialized = False
        self._created = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def created(self) -> bool:
        """Whether the last initialize() started from no database file."""
        return self._created

    @property
    def exists_on_disk(self) -> bool:
        """Whether the database file is already present (before initialize creates it)."""
        return self.db_path != IN_MEMORY and os.path.exists(self.db_path)

    async def initialize(self) -> None:
        """Open the connection and create the schema if missing."""
        if self._initialized:
            return

        self._created = not self.exists_on_disk
        try:
            if self.db_path != IN_MEMORY:
                directory = os.path.dirname(os.path.abspath(self.db_path))
                os.makedirs(directory, exist_ok=True)

            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row
            if self.db_path != IN_MEMORY:
                await self._conn.execute("PRAGMA journal_mode=WAL")

            for stmt in SCHEMA_STATEMENTS:
                await self._conn.execute(stmt)
            await self._conn.execute(
                "INSERT OR REPLACE INTO schema_meta (key, value) VALUES ('schema_version', ?)",
                (str(SCHEMA_VERSION),),
            )
            await self._conn.commit()
        except (aiosqlite.Error, OSError) as e:
            logger.error(f"Failed to initialize memory database at {self.db_path}: {e}")
            await self._close_quietly()
            raise StorageUnavailableError(f"Cannot open memory database at {self.db_path}: {e}") from e

        self._initialized = True
        logger.info(f"Memory database initialized at {self.db_path} (schema v{SCHEMA_VERSION})")

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageUnavailableError("Memory database not initialized. Call initialize() first.")
        return self._conn

    @asynccontextmanager
    async def transaction(self, conn: aiosqlite.Connection | None = None) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run a unit of work that commits on success and rolls back on any error.

        Passing ``conn`` joins a transaction the caller already holds; the
        outermost context owns the lock, the commit and the rollback.
        """
        if conn is not None:
            yield conn
            return

        conn = self.connection
        async with self._lock:
            try:
                yield conn
                await conn.commit()
            except aiosqlite.Error as e:
                await conn.rollback()
                logger.error(f"Memory database write failed, rolled back: {e}")
                raise StorageUnavailableError(f"Memory database write failed: {e}") from e
            except BaseException:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self, conn: aiosqlite.Connection | None = None) -> AsyncIterator[aiosqlite.Connection]:
        """Run read-only statements under the same lock as writes."""
        if conn is not None:
            yield conn
            return

        conn = self.connection
        async with self._lock:
            try:
                yield conn
            except aiosqlite.Error as e:
                logger.error(f"Memory database read failed: {e}")
                raise StorageUnavailableError(f"Memory database read failed: {e}") from e

    async def get_meta(self, key: str, conn: aiosqlite.Connection | None = None) -> str | None:
        async with self.read(conn) as db:
            cursor = await db.execute("SELECT value FROM schema_meta WHERE key = ?", (key,))
            row = await cursor.fetchone()
            return row[0] if row else None

    async def set_meta(self, key: str, value: str, conn: aiosqlite.Connection | None = None) -> None:
        async with self.transaction(conn) as db:
            await db.execute("INSERT OR REPLACE INTO schema_meta (key, value) VALUES (?, ?)", (key, value))

    async def _close_quietly(self) -> None:
        if self._conn is not None:
            try:
                await self._conn.close()
            except aiosqlite.Error as e:
                logger.warning(f"Error closing memory database: {e}")
            self._conn = None

    async def close(self) -> None:
        """Close the connection. Safe to call when never initialized."""
        await self._close_quietly()
        if self._initialized:
            logger.info(f"Memory database closed: {self.db_path}")
        self._initialized = False
