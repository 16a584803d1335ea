"""
Configuration and settings for the memory backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")

    # Database (any SQLAlchemy URL; MySQL in production, SQLite for tests)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage (NCloud object storage)
    s3_endpoint: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("s3_endpoint", "ncloud_s3_endpoint")
    )
    s3_region: str = Field(default="kr-standard")
    s3_bucket: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("s3_bucket", "ncloud_bucket_name")
    )
    s3_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("aws_access_key_id", "ncloud_access_key"),
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "aws_secret_access_key", "ncloud_secret_access_key"
        ),
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "use_in_memory_backends", "cloud_memory_use_in_memory_backends"
        ),
    )

    # Pagination
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Aggregate counters
    people_count_mode: Literal["distinct", "increment"] = Field(default="distinct")

    # Image normalization
    image_max_dimension: int = Field(default=1920, ge=1)
    image_jpeg_quality: int = Field(default=80, ge=1, le=95)

    # Server-local calendar used for TODAY/YESTERDAY/DBY buckets
    local_timezone: str = Field(default="Asia/Seoul")

    # Retention cleanup
    batch_secret: Optional[str] = Field(default=None)
    batch_secret_header: str = Field(default="x-batch-secret")
    retention_days: int = Field(default=3, ge=0)
    cleanup_interval_seconds: int = Field(default=3600, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
