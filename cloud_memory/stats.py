"""
Running aggregate counters behind the cloud-cleanup summary.

The memory store is authoritative; these counters are a derived cache that
is updated best-effort after each accepted write.
"""

from __future__ import annotations

import logging
from typing import Literal

from cloud_memory.db import DbClient
from cloud_memory.errors import AggregateUpdateError, ValidationError

logger = logging.getLogger(__name__)

PeopleCountMode = Literal["distinct", "increment"]


class AggregateStatsService:
    """Owns the singleton photo-stats record."""

    def __init__(self, db: DbClient, people_count_mode: PeopleCountMode = "distinct"):
        if people_count_mode not in ("distinct", "increment"):
            raise ValueError(f"Unknown people_count_mode {people_count_mode!r}")
        self.db = db
        self.people_count_mode = people_count_mode

    def _apply_memory_added(self, size: int) -> None:
        try:
            if self.people_count_mode == "increment":
                self.db.increment_stats(total_photo_size=size, people_count=1)
            else:
                self.db.increment_stats(total_photo_size=size)
                self.db.set_people_count(self.db.count_distinct_nicknames())
        except Exception as exc:
            raise AggregateUpdateError("Failed to update photo stats", cause=exc) from exc

    def record_memory_added(self, size: int, nickname: str | None = None) -> bool:
        """
        Fold one accepted memory into the counters.

        Never raises: failures are logged and reported through the return
        value only, so the enclosing write still succeeds.
        """
        try:
            self._apply_memory_added(size)
        except AggregateUpdateError as exc:
            logger.exception(
                "Photo stats update failed for nickname=%r size=%d: %s",
                nickname,
                size,
                exc.cause,
            )
            return False
        return True

    def record_photos_deleted(self, count: int) -> dict:
        # Read-modify-write is pushed down to the store as an atomic increment.
        if count < 0:
            raise ValidationError("count must be zero or positive")
        self.db.increment_stats(deleted_photo_count=count)
        return self.get_summary()

    def get_summary(self) -> dict:
        stats = self.db.get_or_create_stats()
        return {
            "deletedPhotoCount": stats.deleted_photo_count,
            "peopleCount": stats.people_count,
            "avgPhotoSize": stats.total_photo_size
            / max(stats.deleted_photo_count, 1),
            "totalPhotoSize": stats.total_photo_size,
        }
