"""
Configuration for the memory graph service.

Every group is a pydantic-settings model with its own environment prefix,
so e.g. ``MEMORY_STORAGE_DB_PATH=/tmp/m.db`` or ``MEMORY_LIMITS_MAX_MEMORIES=500``
override the defaults without touching code.
"""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_DIR = Path.home() / ".memory-graph"
LEGACY_FILE_NAME = "memories.json"


class StorageSettings(BaseSettings):
    """SQLite location and legacy-file migration."""

    model_config = SettingsConfigDict(env_prefix="MEMORY_STORAGE_", extra="ignore")

    db_path: Path = Field(default=DEFAULT_BASE_DIR / "memories.db", description="SQLite database file")
    legacy_path: Path | None = Field(
        default=None,
        description="Legacy JSON memory file; defaults to memories.json next to the database",
    )
    migrate_legacy: bool = Field(default=True, description="Import the legacy JSON file on first use")

    @property
    def resolved_legacy_path(self) -> Path:
        return self.legacy_path if self.legacy_path is not None else self.db_path.with_name(LEGACY_FILE_NAME)


class LimitSettings(BaseSettings):
    """Store size ceiling. Advisory unless enforcement is switched on."""

    model_config = SettingsConfigDict(env_prefix="MEMORY_LIMITS_", extra="ignore")

    max_memories: int = Field(default=100, ge=10, le=1000)
    enforce_max_memories: bool = False


class GraphSettings(BaseSettings):
    """Traversal bounds for the knowledge graph."""

    model_config = SettingsConfigDict(env_prefix="MEMORY_GRAPH_", extra="ignore")

    default_depth: int = Field(default=2, ge=0)
    max_depth: int = Field(default=5, ge=1, le=10)

    @model_validator(mode="after")
    def _depth_within_ceiling(self) -> "GraphSettings":
        if self.default_depth > self.max_depth:
            raise ValueError(f"default_depth ({self.default_depth}) exceeds max_depth ({self.max_depth})")
        return self


class SearchSettings(BaseSettings):
    """Ranking constants for the advanced search strategies."""

    model_config = SettingsConfigDict(env_prefix="MEMORY_SEARCH_", extra="ignore")

    keyword_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    priority_weight: float = Field(default=0.4, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _weights_not_both_zero(self) -> "SearchSettings":
        if self.keyword_weight + self.priority_weight <= 0:
            raise ValueError("keyword_weight and priority_weight cannot both be zero")
        return self


class Settings(BaseSettings):
    """Top-level settings aggregating every group."""

    model_config = SettingsConfigDict(extra="ignore")

    storage: StorageSettings = Field(default_factory=StorageSettings)
    limits: LimitSettings = Field(default_factory=LimitSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)


settings = Settings()
