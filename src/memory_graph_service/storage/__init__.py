from .database import SQLiteDatabase
from .migration import migrate_legacy_file
from .record_store import RecordStore
from .relation_store import RelationStore

__all__ = ["SQLiteDatabase", "RecordStore", "RelationStore", "migrate_legacy_file"]
