import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from memory_graph_service.config import GraphSettings, LimitSettings, SearchSettings  # noqa: E402
from memory_graph_service.graph.engine import GraphEngine  # noqa: E402
from memory_graph_service.models.memory import format_timestamp  # noqa: E402
from memory_graph_service.services.memory_service import MemoryService  # noqa: E402
from memory_graph_service.storage.database import SQLiteDatabase  # noqa: E402
from memory_graph_service.storage.record_store import RecordStore  # noqa: E402
from memory_graph_service.storage.relation_store import RelationStore  # noqa: E402

EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock: every call returns a timestamp one ``step`` after the previous one."""

    def __init__(self, start: datetime = EPOCH, step: timedelta = timedelta(seconds=1)):
        self.current = start - step
        self.step = step

    def __call__(self) -> str:
        self.current += self.step
        return format_timestamp(self.current)

    def at(self, offset: int) -> str:
        """Timestamp of the ``offset``-th call (0-based)."""
        return format_timestamp(EPOCH + offset * self.step)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep MEMORY_* variables from the developer shell out of settings."""
    for name in list(os.environ):
        if name.startswith("MEMORY_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def make_clock():
    """Factory for clocks with a custom step."""
    return StepClock


@pytest.fixture
async def db(tmp_path):
    """Initialized SQLite handle on a throwaway file."""
    database = SQLiteDatabase(tmp_path / "memories.db")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def record_store(db, clock):
    return RecordStore(db, clock=clock)


@pytest.fixture
def relation_store(db, clock):
    return RelationStore(db, clock=clock)


@pytest.fixture
def graph_engine(record_store, relation_store):
    return GraphEngine(record_store, relation_store, max_depth=5)


@pytest.fixture
async def memory_service(tmp_path, clock):
    """Fully wired service on its own database directory."""
    service = MemoryService(
        SQLiteDatabase(tmp_path / "service" / "memories.db"),
        limits=LimitSettings(),
        graph_settings=GraphSettings(),
        search_settings=SearchSettings(),
        clock=clock,
    )
    await service.initialize()
    yield service
    await service.close()
