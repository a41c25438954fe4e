from .analytics import AnalyticsService
from .memory_service import MemoryService
from .search_engine import SearchEngine
from .timeline import TimelineBuilder

__all__ = ["AnalyticsService", "MemoryService", "SearchEngine", "TimelineBuilder"]
