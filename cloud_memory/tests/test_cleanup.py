import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from cloud_memory.cleanup import RetentionCleanup, verify_batch_secret
from cloud_memory.db import InMemoryDbClient
from cloud_memory.errors import AuthorizationError
from cloud_memory.storage import InMemoryStorageClient
from cloud_memory.types import Location

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


class RetentionCleanupTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()

    def _add(self, age_days, key):
        url = self.storage.upload_bytes(key, b"img", "image/jpeg")
        return self.db.create_memory(
            nickname="kim",
            image_url=url,
            image_key=key,
            message="bye",
            location=Location.SEA,
            size=3,
            created_at=NOW - timedelta(days=age_days),
        )

    def test_old_memories_deleted_recent_survive(self):
        old = self._add(4, "old.jpeg")
        recent = self._add(2, "recent.jpeg")

        result = RetentionCleanup(self.db, self.storage, retention_days=3).run(now=NOW)

        self.assertEqual(result.deleted_count, 1)
        self.assertEqual(result.cutoff, NOW - timedelta(days=3))
        self.assertIsNone(self.db.get_memory(old.id))
        self.assertIsNotNone(self.db.get_memory(recent.id))
        self.assertNotIn("old.jpeg", self.storage.stored_objects)
        self.assertIn("recent.jpeg", self.storage.stored_objects)

    def test_aggregates_are_not_rolled_back(self):
        self.db.increment_stats(total_photo_size=3, people_count=1)
        self._add(5, "old.jpeg")
        RetentionCleanup(self.db, self.storage).run(now=NOW)
        stats = self.db.get_or_create_stats()
        self.assertEqual(stats.total_photo_size, 3)
        self.assertEqual(stats.people_count, 1)

    def test_object_delete_failure_is_logged_not_raised(self):
        self._add(5, "old.jpeg")
        with patch.object(
            self.storage, "delete_object", side_effect=RuntimeError("boom")
        ):
            with self.assertLogs("cloud_memory.cleanup", level="ERROR"):
                result = RetentionCleanup(self.db, self.storage).run(now=NOW)
        self.assertEqual(result.deleted_count, 1)
        self.assertEqual(result.orphaned_objects, 1)


class BatchSecretTests(unittest.TestCase):
    def test_matching_secret_passes(self):
        verify_batch_secret("s3cret", "s3cret")

    def test_wrong_or_missing_secret_rejected(self):
        with self.assertRaises(AuthorizationError):
            verify_batch_secret("nope", "s3cret")
        with self.assertRaises(AuthorizationError):
            verify_batch_secret(None, "s3cret")

    def test_unconfigured_secret_rejects_everything(self):
        with self.assertRaises(AuthorizationError):
            verify_batch_secret("anything", None)


if __name__ == "__main__":
    unittest.main()
