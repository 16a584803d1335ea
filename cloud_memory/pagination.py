"""
Cursor-based pagination over the memory store.

Pages are ordered by ``created_at`` descending with ``id`` descending as the
tie-breaker. A cursor is the ``(created_at, id)`` pair of the last row a
client received; the next page holds the rows strictly after it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from cloud_memory.db import DbClient, MemoryCursor, MemoryRecord
from cloud_memory.errors import NotFoundError, ValidationError
from cloud_memory.types import DateBucket, parse_date_bucket, parse_location

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


@dataclass
class Page:
    items: list[MemoryRecord]
    next_cursor: Optional[MemoryCursor] = None

    def as_dict(self) -> dict:
        payload: dict = {"items": [item.as_dict() for item in self.items]}
        if self.next_cursor is not None:
            payload["nextCursor"] = {
                "createdAt": self.next_cursor.created_at.isoformat(),
                "id": self.next_cursor.id,
            }
        return payload


def date_bucket_range(
    bucket: DateBucket, now: datetime
) -> tuple[datetime, Optional[datetime]]:
    """
    Return the ``[start, end)`` window of a date bucket.

    Boundaries are midnights in ``now``'s timezone. TODAY has no upper bound.
    """
    today = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    if bucket == DateBucket.TODAY:
        return today, None
    if bucket == DateBucket.YESTERDAY:
        return today - timedelta(days=1), today
    return today - timedelta(days=2), today - timedelta(days=1)


class PaginationService:
    def __init__(
        self,
        db: DbClient,
        *,
        default_limit: int = DEFAULT_PAGE_SIZE,
        max_limit: int = 100,
        local_tz: tzinfo | str = "Asia/Seoul",
    ):
        self.db = db
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.local_tz = ZoneInfo(local_tz) if isinstance(local_tz, str) else local_tz

    def _resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.default_limit
        if limit < 1:
            raise ValidationError("limit must be a positive integer")
        return min(limit, self.max_limit)

    def _resolve_cursor(self, cursor_id: Optional[str | int]) -> Optional[MemoryCursor]:
        if cursor_id is None or cursor_id == "":
            return None
        try:
            memory_id = int(cursor_id)
        except (TypeError, ValueError):
            raise NotFoundError(f"Cursor {cursor_id!r} does not match any memory")
        record = self.db.get_memory(memory_id)
        if record is None:
            raise NotFoundError(f"Cursor {cursor_id!r} does not match any memory")
        return MemoryCursor(created_at=record.created_at, id=record.id)

    def list_page(
        self,
        *,
        limit: Optional[int] = None,
        cursor_id: Optional[str | int] = None,
        location: Optional[str] = None,
        date: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Page:
        page_size = self._resolve_limit(limit)
        cursor = self._resolve_cursor(cursor_id)
        location_filter = parse_location(location, strict=False)
        bucket = parse_date_bucket(date)

        created_from = created_to = None
        if bucket is not None:
            local_now = (now or datetime.now(self.local_tz)).astimezone(self.local_tz)
            created_from, created_to = date_bucket_range(bucket, local_now)

        items = self.db.list_memories(
            limit=page_size,
            cursor=cursor,
            location=location_filter,
            created_from=created_from,
            created_to=created_to,
        )
        next_cursor = None
        if len(items) == page_size:
            last = items[-1]
            next_cursor = MemoryCursor(created_at=last.created_at, id=last.id)
        logger.debug(
            "Listed %d memories (limit=%d, cursor=%s, location=%s, date=%s)",
            len(items),
            page_size,
            cursor_id,
            location_filter,
            bucket,
        )
        return Page(items=items, next_cursor=next_cursor)
