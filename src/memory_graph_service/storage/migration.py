"""
One-way migration from the legacy flat-file format.

Before the SQLite store, memories lived in a single JSON file holding a list
of ``{key, value, category, timestamp}`` objects. On first use the file is
imported row by row (``priority = 0``) and then renamed with a ``.backup``
suffix. It is never deleted. Once renamed there is nothing left to import,
so running the migration again is a no-op; keys already present in the
database are never overwritten.
"""

import json
import logging
from pathlib import Path
from typing import Any

from ..errors import MigrationFailureError, StorageUnavailableError
from ..models.memory import normalize_timestamp
from ..models.validators import normalize_category
from .database import SQLiteDatabase

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"
# schema_meta key recording which legacy file was imported
LEGACY_MIGRATED_META = "legacy_migrated_from"


def backup_path_for(path: Path) -> Path:
    """``memories.json`` -> ``memories.json.backup`` (``.backup.1``, ``.backup.2``... if taken)."""
    candidate = path.with_name(path.name + BACKUP_SUFFIX)
    n = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}{BACKUP_SUFFIX}.{n}")
        n += 1
    return candidate


def _load_entries(path: Path) -> list[Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MigrationFailureError(str(path), f"unreadable legacy file: {e}") from e

    if isinstance(raw, dict) and isinstance(raw.get("memories"), list):
        return raw["memories"]
    if isinstance(raw, list):
        return raw
    raise MigrationFailureError(str(path), f"expected a list of memories, got {type(raw).__name__}")


async def migrate_legacy_file(db: SQLiteDatabase, legacy_path: str | Path) -> int:
    """
    Import a legacy JSON memory file into the ``memories`` table.

    Args:
        db: Initialized storage handle
        legacy_path: Path of the legacy file

    Returns:
        Number of records inserted (0 when there is no legacy file)

    Raises:
        MigrationFailureError: If the file cannot be read, parsed, imported or
            renamed. Row inserts are rolled back and the file stays in place.
    """
    path = Path(legacy_path)
    if not path.is_file():
        return 0

    entries = _load_entries(path)
    logger.info(f"Migrating {len(entries)} legacy memories from {path}")

    inserted = 0
    skipped = 0
    try:
        async with db.transaction() as conn:
            for entry in entries:
                key = entry.get("key") if isinstance(entry, dict) else None
                value = entry.get("value") if isinstance(entry, dict) else None
                if not isinstance(key, str) or not key.strip() or value is None:
                    skipped += 1
                    logger.warning(f"Skipping malformed legacy memory entry: {entry!r}")
                    continue

                timestamp = normalize_timestamp(entry.get("timestamp"))
                last_accessed = normalize_timestamp(entry.get("lastAccessed"), fallback=timestamp)
                cursor = await conn.execute(
                    """
                    INSERT OR IGNORE INTO memories (key, value, category, timestamp, lastAccessed, priority)
                    VALUES (?, ?, ?, ?, ?, 0)
                    """,
                    (
                        key,
                        value if isinstance(value, str) else json.dumps(value),
                        normalize_category(entry.get("category")),
                        timestamp,
                        max(timestamp, last_accessed),
                    ),
                )
                inserted += cursor.rowcount
            await db.set_meta(LEGACY_MIGRATED_META, str(path), conn)
    except StorageUnavailableError as e:
        raise MigrationFailureError(str(path), str(e)) from e

    backup = backup_path_for(path)
    try:
        path.rename(backup)
    except OSError as e:
        raise MigrationFailureError(str(path), f"imported but could not rename to {backup.name}: {e}") from e

    logger.info(f"Legacy migration complete: {inserted} inserted, {skipped} skipped; original kept at {backup}")
    return inserted
