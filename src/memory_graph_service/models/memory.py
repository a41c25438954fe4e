"""Memory-related data models.

Pydantic v2 models for the two persisted shapes (record, relation) and the
derived views built from them (graph, stats, scored search hits).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Self

from dateutil import parser as dateutil_parser
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .validators import DEFAULT_RELATION_TYPE, Category, MemoryKey

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Timestamp helpers (module-level, shared by stores, migration and models)
# ---------------------------------------------------------------------------


def format_timestamp(dt: datetime) -> str:
    """Render an aware or naive (assumed UTC) datetime as ISO-8601 with a Z suffix.

    Microsecond precision is always emitted so stored strings sort
    lexicographically in chronological order.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    """Current time in the canonical storage format."""
    return format_timestamp(datetime.now(timezone.utc))


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 string (any common variant) into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = dateutil_parser.isoparse(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_timestamp(value: Any, fallback: str | None = None) -> str:
    """Coerce legacy timestamp values (ISO strings, epoch seconds or ms) to the storage format."""
    if value is None or value == "":
        return fallback or utc_now_iso()
    try:
        if isinstance(value, (int, float)):
            seconds = value / 1000.0 if value > 1e11 else float(value)
            return format_timestamp(datetime.fromtimestamp(seconds, timezone.utc))
        return format_timestamp(parse_timestamp(str(value)))
    except (ValueError, OverflowError, OSError) as e:
        logger.warning("Unparseable timestamp %r (%s), using fallback", value, e)
        return fallback or utc_now_iso()


# ---------------------------------------------------------------------------
# Persisted shapes
# ---------------------------------------------------------------------------


class MemoryRecord(BaseModel):
    """A single stored key/value memory with its metadata."""

    model_config = ConfigDict(populate_by_name=True)

    key: MemoryKey
    value: str
    category: Category = "general"
    timestamp: str = Field(default_factory=utc_now_iso)
    last_accessed: str = Field(default_factory=utc_now_iso, alias="lastAccessed")
    priority: int = 0

    @model_validator(mode="after")
    def access_not_before_creation(self) -> Self:
        """Keep ``timestamp <= last_accessed``; legacy rows may violate it."""
        if parse_timestamp(self.last_accessed) < parse_timestamp(self.timestamp):
            self.last_accessed = self.timestamp
        return self

    @property
    def created_at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    @property
    def last_accessed_at(self) -> datetime:
        return parse_timestamp(self.last_accessed)

    @classmethod
    def from_row(cls, row: Any) -> "MemoryRecord":
        """Build from a ``memories`` row (mapping with the SQL column names)."""
        data = dict(row)
        return cls(
            key=data["key"],
            value=data["value"],
            category=data.get("category"),
            timestamp=data["timestamp"],
            last_accessed=data.get("lastAccessed") or data["timestamp"],
            priority=data.get("priority") or 0,
        )


class MemoryRelation(BaseModel):
    """A typed, directed, weighted edge between two record keys."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    source_key: MemoryKey = Field(alias="sourceKey")
    target_key: MemoryKey = Field(alias="targetKey")
    relation_type: MemoryKey = Field(default=DEFAULT_RELATION_TYPE, alias="relationType")
    strength: float = 1.0
    metadata: str | None = None
    timestamp: str = Field(default_factory=utc_now_iso)

    def other_end(self, key: str) -> str:
        """Return the endpoint opposite ``key``."""
        return self.target_key if self.source_key == key else self.source_key

    @classmethod
    def from_row(cls, row: Any) -> "MemoryRelation":
        """Build from a ``memory_relations`` row."""
        data = dict(row)
        strength = data.get("strength")
        return cls(
            id=data.get("id"),
            source_key=data["sourceKey"],
            target_key=data["targetKey"],
            relation_type=data["relationType"],
            strength=1.0 if strength is None else float(strength),
            metadata=data.get("metadata"),
            timestamp=data["timestamp"],
        )


# ---------------------------------------------------------------------------
# Derived views (never persisted)
# ---------------------------------------------------------------------------


class MemoryGraph(BaseModel):
    """Traversal result: reachable keys, the edges among them and their clusters."""

    root: str | None = None
    nodes: list[str] = Field(default_factory=list)
    edges: list[MemoryRelation] = Field(default_factory=list)
    clusters: list[list[str]] = Field(default_factory=list)
    # Hop distance from the nearest traversal root
    depths: dict[str, int] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.nodes


class MemoryStats(BaseModel):
    """Aggregate counts over the record store."""

    total: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)


class ScoredMemory(BaseModel):
    """A search hit with the score its strategy ranked it by."""

    memory: MemoryRecord
    score: float
    debug_info: dict[str, Any] = Field(default_factory=dict)
