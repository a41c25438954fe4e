"""Unit tests for RecordStore against a real SQLite file."""

import pytest

from memory_graph_service.errors import InvalidReferenceError, NotFoundError


class TestSave:
    @pytest.mark.asyncio
    async def test_save_then_get(self, record_store, clock):
        saved = await record_store.save("project-x", "uses sqlite", "project")
        fetched = await record_store.get("project-x")

        assert fetched == saved
        assert fetched.value == "uses sqlite"
        assert fetched.category == "project"
        assert fetched.priority == 0
        assert fetched.timestamp == clock.at(0)
        assert fetched.last_accessed == fetched.timestamp

    @pytest.mark.asyncio
    async def test_missing_category_defaults_to_general(self, record_store):
        assert (await record_store.save("a", "1", None)).category == "general"
        assert (await record_store.save("b", "2", "   ")).category == "general"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["", "   ", None])
    async def test_blank_key_rejected(self, record_store, key):
        with pytest.raises(InvalidReferenceError):
            await record_store.save(key, "value")

        assert await record_store.count() == 0

    @pytest.mark.asyncio
    async def test_invalid_reference_is_a_value_error(self, record_store):
        with pytest.raises(ValueError):
            await record_store.save("", "value")

    @pytest.mark.asyncio
    async def test_none_value_rejected(self, record_store):
        with pytest.raises(ValueError):
            await record_store.save("a", None)

    @pytest.mark.asyncio
    async def test_resave_keeps_creation_time(self, record_store, clock):
        await record_store.save("a", "first", "notes", priority=3)
        again = await record_store.save("a", "second", "code")

        assert again.value == "second"
        assert again.category == "code"
        assert again.timestamp == clock.at(0)
        assert again.last_accessed == clock.at(1)
        # No priority given on overwrite: the stored one survives
        assert again.priority == 3
        assert await record_store.count() == 1

    @pytest.mark.asyncio
    async def test_resave_with_priority_overrides(self, record_store):
        await record_store.save("a", "first", priority=3)
        again = await record_store.save("a", "second", priority=7)

        assert again.priority == 7


class TestRecall:
    @pytest.mark.asyncio
    async def test_recall_refreshes_last_accessed(self, record_store, clock):
        await record_store.save("a", "v")
        recalled = await record_store.recall("a")

        assert recalled.value == "v"
        assert recalled.timestamp == clock.at(0)
        assert recalled.last_accessed == clock.at(1)

    @pytest.mark.asyncio
    async def test_get_does_not_touch_last_accessed(self, record_store, clock):
        await record_store.save("a", "v")
        fetched = await record_store.get("a")

        assert fetched.last_accessed == clock.at(0)

    @pytest.mark.asyncio
    async def test_recall_missing_returns_none(self, record_store):
        assert await record_store.recall("nope") is None


class TestUpdate:
    @pytest.mark.asyncio
    async def test_partial_update(self, record_store):
        await record_store.save("a", "old", "notes", priority=2)

        updated = await record_store.update("a", value="new")
        assert updated.value == "new"
        assert updated.category == "notes"
        assert updated.priority == 2

        updated = await record_store.update("a", category="code")
        assert updated.value == "new"
        assert updated.category == "code"

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, record_store):
        with pytest.raises(NotFoundError) as exc_info:
            await record_store.update("ghost", value="x")

        assert exc_info.value.key == "ghost"

    @pytest.mark.asyncio
    async def test_set_priority(self, record_store):
        await record_store.save("a", "v")
        assert (await record_store.set_priority("a", 9)).priority == 9

    @pytest.mark.asyncio
    async def test_set_priority_missing_raises(self, record_store):
        with pytest.raises(NotFoundError):
            await record_store.set_priority("ghost", 1)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_existing(self, record_store):
        await record_store.save("a", "v")

        assert await record_store.delete("a") is True
        assert await record_store.get("a") is None
        assert await record_store.exists("a") is False

    @pytest.mark.asyncio
    async def test_delete_missing_returns_false(self, record_store):
        assert await record_store.delete("ghost") is False


class TestList:
    @pytest.fixture
    async def populated(self, record_store):
        await record_store.save("b", "bravo", "code", priority=5)
        await record_store.save("a", "alpha", "notes", priority=1)
        await record_store.save("c", "charlie", "code", priority=5)
        return record_store

    @pytest.mark.asyncio
    async def test_default_order_is_by_key(self, populated):
        assert [r.key for r in await populated.list()] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_priority_order_breaks_ties_newest_first(self, populated):
        # b and c share priority 5; c was saved later
        assert [r.key for r in await populated.list(order_by="priority")] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_timestamp_order_is_newest_first(self, populated):
        assert [r.key for r in await populated.list(order_by="timestamp")] == ["c", "a", "b"]

    @pytest.mark.asyncio
    async def test_category_filter_and_limit(self, populated):
        assert [r.key for r in await populated.list(category="code")] == ["b", "c"]
        assert [r.key for r in await populated.list(category="code", limit=1)] == ["b"]
        assert await populated.list(category="personal") == []

    @pytest.mark.asyncio
    async def test_invalid_order_rejected(self, populated):
        with pytest.raises(ValueError, match="order_by"):
            await populated.list(order_by="size")

    @pytest.mark.asyncio
    async def test_list_by_priority_two_records(self, record_store):
        await record_store.save("a", "x", priority=1)
        await record_store.save("b", "y", priority=5)

        assert [r.key for r in await record_store.list(order_by="priority")] == ["b", "a"]


class TestSearch:
    @pytest.mark.asyncio
    async def test_matches_key_or_value_case_insensitively(self, record_store):
        await record_store.save("Deploy-Notes", "kubectl apply")
        await record_store.save("shopping", "buy milk")
        await record_store.save("infra", "Deploy via terraform")

        assert [r.key for r in await record_store.search("deploy")] == ["Deploy-Notes", "infra"]

    @pytest.mark.asyncio
    async def test_empty_query_matches_nothing(self, record_store):
        await record_store.save("a", "v")
        assert await record_store.search("") == []

    @pytest.mark.asyncio
    async def test_search_is_read_only(self, record_store, clock):
        await record_store.save("a", "needle")
        await record_store.search("needle")

        assert (await record_store.get("a")).last_accessed == clock.at(0)


class TestStats:
    @pytest.mark.asyncio
    async def test_stats_by_category(self, record_store):
        await record_store.save("a", "1", "code")
        await record_store.save("b", "2", "code")
        await record_store.save("c", "3")

        stats = await record_store.get_stats()

        assert stats.total == 3
        assert stats.by_category == {"code": 2, "general": 1}

    @pytest.mark.asyncio
    async def test_empty_store(self, record_store):
        stats = await record_store.get_stats()

        assert stats.total == 0
        assert stats.by_category == {}
        assert await record_store.keys() == set()
