"""Unit tests for the SQLite storage handle."""

import pytest

from memory_graph_service.errors import StorageUnavailableError
from memory_graph_service.storage.database import SQLiteDatabase
from memory_graph_service.storage.schema import SCHEMA_VERSION


class TestInitialize:
    @pytest.mark.asyncio
    async def test_creates_parent_directories_and_schema(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "memories.db"
        db = SQLiteDatabase(db_path)
        assert db.exists_on_disk is False

        await db.initialize()
        try:
            assert db.is_initialized
            assert db_path.exists()
            assert await db.get_meta("schema_version") == str(SCHEMA_VERSION)

            async with db.read() as conn:
                cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
                tables = {row[0] for row in await cursor.fetchall()}
            assert {"memories", "memory_relations", "schema_meta"} <= tables
        finally:
            await db.close()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, db):
        await db.initialize()
        assert db.is_initialized

    @pytest.mark.asyncio
    async def test_reopen_keeps_data(self, tmp_path):
        path = tmp_path / "memories.db"
        first = SQLiteDatabase(path)
        await first.initialize()
        await first.set_meta("marker", "kept")
        await first.close()

        second = SQLiteDatabase(path)
        await second.initialize()
        try:
            assert await second.get_meta("marker") == "kept"
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_unusable_location_raises_storage_unavailable(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        db = SQLiteDatabase(blocker / "memories.db")

        with pytest.raises(StorageUnavailableError):
            await db.initialize()
        assert not db.is_initialized

    def test_connection_before_initialize(self, tmp_path):
        db = SQLiteDatabase(tmp_path / "memories.db")
        with pytest.raises(StorageUnavailableError):
            db.connection

    @pytest.mark.asyncio
    async def test_in_memory_database(self):
        db = SQLiteDatabase(":memory:")
        await db.initialize()
        try:
            assert db.exists_on_disk is False
            assert await db.get_meta("schema_version") == str(SCHEMA_VERSION)
        finally:
            await db.close()

    @pytest.mark.asyncio
    async def test_close_without_initialize(self, tmp_path):
        db = SQLiteDatabase(tmp_path / "memories.db")
        await db.close()
        assert not db.is_initialized


class TestTransactions:
    @pytest.mark.asyncio
    async def test_error_rolls_back(self, db):
        with pytest.raises(RuntimeError):
            async with db.transaction() as conn:
                await db.set_meta("half-written", "yes", conn)
                raise RuntimeError("boom")

        assert await db.get_meta("half-written") is None

    @pytest.mark.asyncio
    async def test_sqlite_error_becomes_storage_unavailable(self, db):
        with pytest.raises(StorageUnavailableError):
            async with db.transaction() as conn:
                await conn.execute("INSERT INTO no_such_table VALUES (1)")

    @pytest.mark.asyncio
    async def test_joined_transaction_commits_once(self, db):
        async with db.transaction() as conn:
            await db.set_meta("one", "1", conn)
            await db.set_meta("two", "2", conn)

        assert await db.get_meta("one") == "1"
        assert await db.get_meta("two") == "2"

    @pytest.mark.asyncio
    async def test_joined_transaction_rolls_back_together(self, db):
        with pytest.raises(ValueError):
            async with db.transaction() as conn:
                await db.set_meta("one", "1", conn)
                async with db.transaction(conn) as inner:
                    await db.set_meta("two", "2", inner)
                raise ValueError("abort")

        assert await db.get_meta("one") is None
        assert await db.get_meta("two") is None
