"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from cloud_memory.cleanup import RetentionCleanup
from cloud_memory.config import get_settings
from cloud_memory.db import DbClient, InMemoryDbClient, SqlDbClient
from cloud_memory.memories import MemoryWriteService
from cloud_memory.pagination import PaginationService
from cloud_memory.stats import AggregateStatsService
from cloud_memory.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so memories and stats persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.s3_public_base_url,
        )
    return _storage_client


def reset_dependencies() -> None:
    """Drop cached clients so the next request rebuilds them (tests)."""
    global _db_client, _storage_client
    _db_client = None
    _storage_client = None


def get_stats_service() -> AggregateStatsService:
    settings = get_settings()
    return AggregateStatsService(
        get_db_client(), people_count_mode=settings.people_count_mode
    )


def get_pagination_service() -> PaginationService:
    settings = get_settings()
    return PaginationService(
        get_db_client(),
        default_limit=settings.default_page_size,
        max_limit=settings.max_page_size,
        local_tz=settings.local_timezone,
    )


def get_memory_service() -> MemoryWriteService:
    settings = get_settings()
    return MemoryWriteService(
        get_db_client(),
        get_storage_client(),
        max_dimension=settings.image_max_dimension,
        jpeg_quality=settings.image_jpeg_quality,
    )


def get_cleanup_job() -> RetentionCleanup:
    settings = get_settings()
    return RetentionCleanup(
        get_db_client(),
        get_storage_client(),
        retention_days=settings.retention_days,
    )
