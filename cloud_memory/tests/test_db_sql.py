import unittest
from datetime import datetime, timedelta, timezone

from cloud_memory.db import MemoryCursor, SqlDbClient
from cloud_memory.types import Location

BASE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class SqlDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL client logic.
    """

    def setUp(self):
        self.db = SqlDbClient("sqlite+pysqlite:///:memory:")

    def _add(self, created_at, nickname="kim", location=Location.SEA, size=10):
        return self.db.create_memory(
            nickname=nickname,
            image_url="https://example.test/storage/a.jpeg",
            image_key="a.jpeg",
            message="hello",
            location=location,
            size=size,
            created_at=created_at,
        )

    def test_create_and_get_memory(self):
        created = self._add(BASE)
        fetched = self.db.get_memory(created.id)
        self.assertIsNotNone(fetched)
        self.assertEqual(fetched.id, created.id)
        self.assertEqual(fetched.location, Location.SEA)
        self.assertEqual(fetched.created_at, BASE)
        self.assertEqual(fetched.image_key, "a.jpeg")
        self.assertIsNone(self.db.get_memory(created.id + 100))

    def test_list_orders_by_created_at_then_id(self):
        first = self._add(BASE)
        second = self._add(BASE)
        third = self._add(BASE + timedelta(days=1))
        rows = self.db.list_memories(limit=10)
        self.assertEqual([r.id for r in rows], [third.id, second.id, first.id])

    def test_list_after_cursor_with_tie(self):
        first = self._add(BASE)
        second = self._add(BASE)
        self._add(BASE + timedelta(days=1))
        rows = self.db.list_memories(
            limit=10, cursor=MemoryCursor(created_at=BASE, id=second.id)
        )
        self.assertEqual([r.id for r in rows], [first.id])

    def test_list_filters_are_conjunctive(self):
        self._add(BASE, location=Location.SEA)
        sky = self._add(BASE + timedelta(hours=1), location=Location.SKY)
        self._add(BASE + timedelta(days=2), location=Location.SKY)
        rows = self.db.list_memories(
            limit=10,
            location=Location.SKY,
            created_from=BASE,
            created_to=BASE + timedelta(days=1),
        )
        self.assertEqual([r.id for r in rows], [sky.id])

    def test_delete_memories_before(self):
        old = self._add(BASE - timedelta(days=4))
        recent = self._add(BASE - timedelta(days=2))
        removed = self.db.delete_memories_before(BASE - timedelta(days=3))
        self.assertEqual([r.id for r in removed], [old.id])
        self.assertIsNone(self.db.get_memory(old.id))
        self.assertIsNotNone(self.db.get_memory(recent.id))

    def test_stats_singleton_and_increments(self):
        stats = self.db.get_or_create_stats()
        self.assertEqual(stats.total_photo_size, 0)
        self.db.get_or_create_stats()
        self.db.increment_stats(total_photo_size=100, people_count=1)
        updated = self.db.increment_stats(total_photo_size=50, deleted_photo_count=2)
        self.assertEqual(updated.total_photo_size, 150)
        self.assertEqual(updated.people_count, 1)
        self.assertEqual(updated.deleted_photo_count, 2)
        self.assertEqual(self.db.set_people_count(7).people_count, 7)
        self.assertEqual(self.db.get_or_create_stats().people_count, 7)

    def test_get_memory_out_of_range_id_returns_none(self):
        self._add(BASE)
        self.assertIsNone(self.db.get_memory(99999999999999999999))
        self.assertIsNone(self.db.get_memory(0))
        self.assertIsNone(self.db.get_memory(-1))

    def test_count_distinct_nicknames(self):
        self._add(BASE, nickname="kim")
        self._add(BASE, nickname="lee")
        self._add(BASE, nickname="kim")
        self.assertEqual(self.db.count_distinct_nicknames(), 2)


if __name__ == "__main__":
    unittest.main()
