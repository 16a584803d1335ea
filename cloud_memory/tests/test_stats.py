import unittest
from unittest.mock import patch

from cloud_memory.db import InMemoryDbClient
from cloud_memory.errors import ValidationError
from cloud_memory.stats import AggregateStatsService
from cloud_memory.types import Location


def _add(db, nickname, size):
    db.create_memory(
        nickname=nickname,
        image_url="https://example.test/storage/x.jpeg",
        message="hi",
        location=Location.SKY,
        size=size,
    )


class AggregateStatsServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()

    def test_summary_created_lazily(self):
        self.assertIsNone(self.db.stats)
        summary = AggregateStatsService(self.db).get_summary()
        self.assertEqual(
            summary,
            {
                "deletedPhotoCount": 0,
                "peopleCount": 0,
                "avgPhotoSize": 0,
                "totalPhotoSize": 0,
            },
        )
        self.assertIsNotNone(self.db.stats)

    def test_avg_does_not_divide_by_zero(self):
        self.db.increment_stats(total_photo_size=5000)
        summary = AggregateStatsService(self.db).get_summary()
        self.assertEqual(summary["deletedPhotoCount"], 0)
        self.assertEqual(summary["avgPhotoSize"], 5000)

    def test_avg_uses_deleted_photo_count(self):
        service = AggregateStatsService(self.db)
        self.db.increment_stats(total_photo_size=900)
        summary = service.record_photos_deleted(3)
        self.assertEqual(summary["deletedPhotoCount"], 3)
        self.assertEqual(summary["avgPhotoSize"], 300)

    def test_total_size_is_sum_of_writes(self):
        service = AggregateStatsService(self.db)
        sizes = [120, 4500, 33, 0, 999]
        for i, size in enumerate(sizes):
            _add(self.db, f"user{i}", size)
            self.assertTrue(service.record_memory_added(size, f"user{i}"))
        self.assertEqual(service.get_summary()["totalPhotoSize"], sum(sizes))

    def test_people_count_modes_diverge_on_duplicate_nicknames(self):
        # "distinct" recomputes from the memory store; "increment" counts writes.
        distinct_db = InMemoryDbClient()
        increment_db = InMemoryDbClient()
        distinct = AggregateStatsService(distinct_db, people_count_mode="distinct")
        increment = AggregateStatsService(increment_db, people_count_mode="increment")
        for nickname in ["kim", "lee", "kim"]:
            _add(distinct_db, nickname, 10)
            distinct.record_memory_added(10, nickname)
            _add(increment_db, nickname, 10)
            increment.record_memory_added(10, nickname)

        self.assertEqual(distinct.get_summary()["peopleCount"], 2)
        self.assertEqual(increment.get_summary()["peopleCount"], 3)

    def test_unknown_people_count_mode_rejected(self):
        with self.assertRaises(ValueError):
            AggregateStatsService(self.db, people_count_mode="sometimes")

    def test_record_memory_added_swallows_failures(self):
        service = AggregateStatsService(self.db)
        with patch.object(
            self.db, "increment_stats", side_effect=RuntimeError("db down")
        ):
            with self.assertLogs("cloud_memory.stats", level="ERROR") as logs:
                self.assertFalse(service.record_memory_added(10, "kim"))
        self.assertIn("Photo stats update failed", logs.output[0])

    def test_record_photos_deleted_accumulates(self):
        service = AggregateStatsService(self.db)
        service.record_photos_deleted(2)
        summary = service.record_photos_deleted(5)
        self.assertEqual(summary["deletedPhotoCount"], 7)

    def test_record_photos_deleted_rejects_negative(self):
        with self.assertRaises(ValidationError):
            AggregateStatsService(self.db).record_photos_deleted(-1)


if __name__ == "__main__":
    unittest.main()
