"""Error taxonomy for the memory store.

Callers distinguish "not found" from genuine storage faults by type; the
tool layer renders them differently.
"""


class MemoryServiceError(Exception):
    """Base class for all memory service errors."""


class NotFoundError(MemoryServiceError):
    """Raised when an operation targets a key that does not exist."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Memory not found: {key!r}")


class InvalidReferenceError(MemoryServiceError, ValueError):
    """Raised when a key or relation type is empty or malformed."""


class StorageUnavailableError(MemoryServiceError):
    """Raised when the underlying database cannot complete an operation."""


class MigrationFailureError(MemoryServiceError):
    """Raised when the legacy flat-file migration cannot complete.

    The original file is always left in place when this is raised.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Legacy migration of '{path}' failed: {reason}")


class MemoryLimitExceededError(MemoryServiceError):
    """Raised when an insert would push the store past its configured ceiling."""

    def __init__(self, current: int, limit: int):
        self.current = current
        self.limit = limit
        super().__init__(f"Memory limit reached ({current}/{limit}); delete memories or raise max_memories")
