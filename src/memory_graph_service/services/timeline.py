"""Chronological history view over the record store."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime

from ..models.memory import MemoryRecord
from ..storage.record_store import RecordStore
from ..utils.date_parsing import to_utc_datetime

logger = logging.getLogger(__name__)

TimeBound = datetime | str | float | int | None


def within_window(record: MemoryRecord, start: datetime | None, end: datetime | None) -> bool:
    """Inclusive time-window test on the record's creation time."""
    created = record.created_at
    if start is not None and created < start:
        return False
    if end is not None and created > end:
        return False
    return True


class TimelineBuilder:
    """Filters records by category and time window and orders them oldest first."""

    def __init__(self, records: RecordStore):
        self.records = records

    async def timeline(
        self,
        category: str | None = None,
        start: TimeBound = None,
        end: TimeBound = None,
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        """
        Records in chronological order.

        Args:
            category: Only this category
            start: Inclusive lower bound (datetime, ISO string, "7d"-style relative, or epoch seconds)
            end: Inclusive upper bound, same formats
            limit: Keep only the first ``limit`` entries

        Returns:
            Records sorted by timestamp ascending, then key. Empty when nothing matches.
        """
        start_dt = to_utc_datetime(start)
        end_dt = to_utc_datetime(end)
        if start_dt is not None and end_dt is not None and start_dt > end_dt:
            logger.debug(f"Empty timeline window: {start_dt.isoformat()} > {end_dt.isoformat()}")
            return []

        records = await self.records.list(category=category)
        matching = [r for r in records if within_window(r, start_dt, end_dt)]
        matching.sort(key=lambda r: (r.created_at, r.key))
        return matching[: max(limit, 0)] if limit is not None else matching

    async def timeline_by_day(
        self,
        category: str | None = None,
        start: TimeBound = None,
        end: TimeBound = None,
    ) -> dict[str, list[MemoryRecord]]:
        """The same view grouped by UTC calendar day (``YYYY-MM-DD``), days in ascending order."""
        grouped: dict[str, list[MemoryRecord]] = defaultdict(list)
        for record in await self.timeline(category=category, start=start, end=end):
            grouped[record.created_at.date().isoformat()].append(record)
        return dict(grouped)
