"""
Database abstraction for SQL backends and an in-memory test implementation.

Two record kinds live here: one row per memory, and a singleton row of
running counters (photo stats).
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    and_,
    create_engine,
    delete,
    distinct,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from cloud_memory.errors import StorageError
from cloud_memory.types import Location

logger = logging.getLogger(__name__)

STATS_ROW_ID = 1
# Integer primary keys are signed 64-bit in every supported backend.
MAX_ROW_ID = 2**63 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class MemoryRecord:
    id: int
    nickname: str
    image_url: str
    message: str
    location: Location
    size: int
    created_at: datetime
    image_key: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "nickname": self.nickname,
            "imageUrl": self.image_url,
            "message": self.message,
            "location": self.location.value,
            "size": self.size,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class StatsRecord:
    deleted_photo_count: int = 0
    people_count: int = 0
    total_photo_size: int = 0


@dataclass
class MemoryCursor:
    """Ordering key of the last row a client has seen."""

    created_at: datetime
    id: int


class DbClient(Protocol):
    """Interface for database access."""

    def create_memory(
        self,
        *,
        nickname: str,
        image_url: str,
        message: str,
        location: Location,
        size: int,
        image_key: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> MemoryRecord:
        ...

    def get_memory(self, memory_id: int) -> Optional[MemoryRecord]:
        ...

    def list_memories(
        self,
        *,
        limit: int,
        cursor: Optional[MemoryCursor] = None,
        location: Optional[Location] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> list[MemoryRecord]:
        ...

    def delete_memories_before(self, cutoff: datetime) -> list[MemoryRecord]:
        ...

    def count_distinct_nicknames(self) -> int:
        ...

    def get_or_create_stats(self) -> StatsRecord:
        ...

    def increment_stats(
        self,
        *,
        deleted_photo_count: int = 0,
        people_count: int = 0,
        total_photo_size: int = 0,
    ) -> StatsRecord:
        ...

    def set_people_count(self, value: int) -> StatsRecord:
        ...


def _sort_key(record: MemoryRecord) -> tuple[datetime, int]:
    return (record.created_at, record.id)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.memories: Dict[int, MemoryRecord] = {}
        self.stats: Optional[StatsRecord] = None
        self._next_id = 1
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.memories.clear()
            self.stats = None
            self._next_id = 1

    def create_memory(
        self,
        *,
        nickname: str,
        image_url: str,
        message: str,
        location: Location,
        size: int,
        image_key: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> MemoryRecord:
        with self._lock:
            record = MemoryRecord(
                id=self._next_id,
                nickname=nickname,
                image_url=image_url,
                message=message,
                location=location,
                size=size,
                created_at=_to_aware_utc(created_at or utcnow()),
                image_key=image_key,
            )
            self.memories[record.id] = record
            self._next_id += 1
            return replace(record)

    def get_memory(self, memory_id: int) -> Optional[MemoryRecord]:
        with self._lock:
            record = self.memories.get(memory_id)
        return replace(record) if record else None

    def list_memories(
        self,
        *,
        limit: int,
        cursor: Optional[MemoryCursor] = None,
        location: Optional[Location] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> list[MemoryRecord]:
        with self._lock:
            rows = sorted(self.memories.values(), key=_sort_key, reverse=True)
        if cursor is not None:
            key = (_to_aware_utc(cursor.created_at), cursor.id)
            rows = [r for r in rows if _sort_key(r) < key]
        if location is not None:
            rows = [r for r in rows if r.location == location]
        if created_from is not None:
            lower = _to_aware_utc(created_from)
            rows = [r for r in rows if r.created_at >= lower]
        if created_to is not None:
            upper = _to_aware_utc(created_to)
            rows = [r for r in rows if r.created_at < upper]
        return [replace(r) for r in rows[:limit]]

    def delete_memories_before(self, cutoff: datetime) -> list[MemoryRecord]:
        cutoff = _to_aware_utc(cutoff)
        with self._lock:
            expired = [r for r in self.memories.values() if r.created_at < cutoff]
            for record in expired:
                del self.memories[record.id]
        return expired

    def count_distinct_nicknames(self) -> int:
        with self._lock:
            return len({r.nickname for r in self.memories.values()})

    def get_or_create_stats(self) -> StatsRecord:
        with self._lock:
            if self.stats is None:
                self.stats = StatsRecord()
            return replace(self.stats)

    def increment_stats(
        self,
        *,
        deleted_photo_count: int = 0,
        people_count: int = 0,
        total_photo_size: int = 0,
    ) -> StatsRecord:
        with self._lock:
            if self.stats is None:
                self.stats = StatsRecord()
            self.stats.deleted_photo_count += deleted_photo_count
            self.stats.people_count += people_count
            self.stats.total_photo_size += total_photo_size
            return replace(self.stats)

    def set_people_count(self, value: int) -> StatsRecord:
        with self._lock:
            if self.stats is None:
                self.stats = StatsRecord()
            self.stats.people_count = value
            return replace(self.stats)


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (MySQL in
    production, SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("Database error while trying to %s", action)
            raise StorageError(f"Failed to {action}", cause=exc) from exc

    def _to_memory_record(self, row: "MemoryRow") -> MemoryRecord:
        return MemoryRecord(
            id=row.id,
            nickname=row.nickname,
            image_url=row.image_url,
            message=row.message,
            location=Location(row.location),
            size=row.size,
            created_at=_to_aware_utc(row.created_at),
            image_key=row.image_key,
        )

    @staticmethod
    def _to_stats_record(row: "PhotoStatsRow") -> StatsRecord:
        return StatsRecord(
            deleted_photo_count=row.deleted_photo_count,
            people_count=row.people_count,
            total_photo_size=row.total_photo_size,
        )

    def create_memory(
        self,
        *,
        nickname: str,
        image_url: str,
        message: str,
        location: Location,
        size: int,
        image_key: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> MemoryRecord:
        with self._session("save memory") as session:
            row = MemoryRow(
                nickname=nickname,
                image_url=image_url,
                image_key=image_key,
                message=message,
                location=location.value,
                size=size,
                created_at=_to_naive_utc(created_at or utcnow()),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_memory_record(row)

    def get_memory(self, memory_id: int) -> Optional[MemoryRecord]:
        if not 0 < memory_id <= MAX_ROW_ID:
            return None
        with self._session("load memory") as session:
            row = session.get(MemoryRow, memory_id)
            if not row:
                return None
            return self._to_memory_record(row)

    def list_memories(
        self,
        *,
        limit: int,
        cursor: Optional[MemoryCursor] = None,
        location: Optional[Location] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> list[MemoryRecord]:
        stmt = select(MemoryRow)
        if cursor is not None:
            cursor_at = _to_naive_utc(cursor.created_at)
            stmt = stmt.where(
                or_(
                    MemoryRow.created_at < cursor_at,
                    and_(MemoryRow.created_at == cursor_at, MemoryRow.id < cursor.id),
                )
            )
        if location is not None:
            stmt = stmt.where(MemoryRow.location == location.value)
        if created_from is not None:
            stmt = stmt.where(MemoryRow.created_at >= _to_naive_utc(created_from))
        if created_to is not None:
            stmt = stmt.where(MemoryRow.created_at < _to_naive_utc(created_to))
        stmt = stmt.order_by(MemoryRow.created_at.desc(), MemoryRow.id.desc()).limit(
            limit
        )
        with self._session("list memories") as session:
            rows = session.execute(stmt).scalars().all()
            return [self._to_memory_record(row) for row in rows]

    def delete_memories_before(self, cutoff: datetime) -> list[MemoryRecord]:
        naive_cutoff = _to_naive_utc(cutoff)
        with self._session("delete expired memories") as session:
            rows = (
                session.execute(
                    select(MemoryRow).where(MemoryRow.created_at < naive_cutoff)
                )
                .scalars()
                .all()
            )
            expired = [self._to_memory_record(row) for row in rows]
            if expired:
                session.execute(
                    delete(MemoryRow).where(
                        MemoryRow.id.in_([record.id for record in expired])
                    )
                )
                session.commit()
            return expired

    def count_distinct_nicknames(self) -> int:
        with self._session("count people") as session:
            return session.execute(
                select(func.count(distinct(MemoryRow.nickname)))
            ).scalar_one()

    def _ensure_stats_row(self, session: Session) -> PhotoStatsRow:
        row = session.get(PhotoStatsRow, STATS_ROW_ID)
        if row is not None:
            return row
        session.add(
            PhotoStatsRow(
                id=STATS_ROW_ID,
                deleted_photo_count=0,
                people_count=0,
                total_photo_size=0,
            )
        )
        try:
            session.commit()
        except IntegrityError:
            # Another process created the singleton first.
            session.rollback()
        return session.get(PhotoStatsRow, STATS_ROW_ID)

    def get_or_create_stats(self) -> StatsRecord:
        with self._session("load photo stats") as session:
            return self._to_stats_record(self._ensure_stats_row(session))

    def increment_stats(
        self,
        *,
        deleted_photo_count: int = 0,
        people_count: int = 0,
        total_photo_size: int = 0,
    ) -> StatsRecord:
        with self._session("update photo stats") as session:
            self._ensure_stats_row(session)
            session.execute(
                update(PhotoStatsRow)
                .where(PhotoStatsRow.id == STATS_ROW_ID)
                .values(
                    deleted_photo_count=PhotoStatsRow.deleted_photo_count
                    + deleted_photo_count,
                    people_count=PhotoStatsRow.people_count + people_count,
                    total_photo_size=PhotoStatsRow.total_photo_size
                    + total_photo_size,
                )
            )
            session.commit()
            row = session.get(PhotoStatsRow, STATS_ROW_ID, populate_existing=True)
            return self._to_stats_record(row)

    def set_people_count(self, value: int) -> StatsRecord:
        with self._session("update photo stats") as session:
            row = self._ensure_stats_row(session)
            row.people_count = value
            session.commit()
            return self._to_stats_record(row)


Base = declarative_base()

# MySQL DATETIME drops fractional seconds unless fsp is set.
_Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


class MemoryRow(Base):
    __tablename__ = "memories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nickname = Column(String(64), nullable=False, index=True)
    image_url = Column(String(1024), nullable=False)
    image_key = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    location = Column(String(16), nullable=False, index=True)
    size = Column(BigInteger, nullable=False)
    created_at = Column(_Timestamp, nullable=False, index=True)


class PhotoStatsRow(Base):
    __tablename__ = "photo_stats"

    id = Column(Integer, primary_key=True)
    deleted_photo_count = Column(BigInteger, nullable=False, default=0)
    people_count = Column(BigInteger, nullable=False, default=0)
    total_photo_size = Column(BigInteger, nullable=False, default=0)
