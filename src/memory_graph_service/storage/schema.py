"""
SQLite schema for the memory store.

Applied idempotently on startup (``CREATE ... IF NOT EXISTS``).

Tables:
    memories          - One row per record, keyed by ``key``.
    memory_relations  - Directed typed edges. (sourceKey, targetKey, relationType)
                        is unique; there are no foreign keys, so edges may point
                        at keys that do not (or no longer) exist.
    schema_meta       - Key/value bookkeeping (schema version, migration stamps).

Column names keep the camelCase of the legacy flat-file format so old
exports and the SQL layout line up one to one.
"""

# Increment whenever the DDL below changes
SCHEMA_VERSION = 1

SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS memories (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        category TEXT NOT NULL DEFAULT 'general',
        timestamp TEXT NOT NULL,
        lastAccessed TEXT NOT NULL,
        priority INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memory_relations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sourceKey TEXT NOT NULL,
        targetKey TEXT NOT NULL,
        relationType TEXT NOT NULL,
        strength REAL NOT NULL DEFAULT 1.0,
        metadata TEXT,
        timestamp TEXT NOT NULL,
        UNIQUE(sourceKey, targetKey, relationType)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS schema_meta (
        key TEXT PRIMARY KEY,
        value TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_memories_category ON memories(category)",
    "CREATE INDEX IF NOT EXISTS idx_memories_priority ON memories(priority)",
    "CREATE INDEX IF NOT EXISTS idx_memories_timestamp ON memories(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_relations_source ON memory_relations(sourceKey)",
    "CREATE INDEX IF NOT EXISTS idx_relations_target ON memory_relations(targetKey)",
]

MEMORY_COLUMNS = "key, value, category, timestamp, lastAccessed, priority"
RELATION_COLUMNS = "id, sourceKey, targetKey, relationType, strength, metadata, timestamp"
