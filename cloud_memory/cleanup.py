"""
Retention cleanup: delete memories older than the retention window.

Aggregate counters are left untouched; they describe everything ever
uploaded, not what is currently stored.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from cloud_memory.db import DbClient, utcnow
from cloud_memory.errors import AuthorizationError
from cloud_memory.storage import StorageClient

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 3


@dataclass
class CleanupResult:
    deleted_count: int
    cutoff: datetime
    orphaned_objects: int = 0

    def as_dict(self) -> dict:
        return {
            "deletedCount": self.deleted_count,
            "cutoff": self.cutoff.isoformat(),
        }


def verify_batch_secret(provided: Optional[str], expected: Optional[str]) -> None:
    if not expected:
        raise AuthorizationError("Batch endpoint is disabled")
    if not provided or not hmac.compare_digest(provided, expected):
        raise AuthorizationError("Invalid batch secret")


class RetentionCleanup:
    def __init__(
        self,
        db: DbClient,
        storage: Optional[StorageClient] = None,
        *,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ):
        self.db = db
        self.storage = storage
        self.retention = timedelta(days=retention_days)

    def run(self, now: Optional[datetime] = None) -> CleanupResult:
        cutoff = (now or utcnow()) - self.retention
        expired = self.db.delete_memories_before(cutoff)
        orphaned = 0
        if self.storage is not None:
            for record in expired:
                if not record.image_key:
                    continue
                try:
                    self.storage.delete_object(record.image_key)
                except Exception:
                    orphaned += 1
                    logger.exception(
                        "Failed to delete image %s of memory %d",
                        record.image_key,
                        record.id,
                    )
        logger.info(
            "Retention cleanup removed %d memories created before %s",
            len(expired),
            cutoff.isoformat(),
        )
        return CleanupResult(
            deleted_count=len(expired), cutoff=cutoff, orphaned_objects=orphaned
        )
