"""
Write path for memories: validate, normalize the image, store it, persist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from cloud_memory.db import DbClient, MemoryRecord
from cloud_memory.errors import StorageError, ValidationError
from cloud_memory.images import normalize_image
from cloud_memory.storage import StorageClient, build_object_key
from cloud_memory.types import Location, parse_location

logger = logging.getLogger(__name__)

DEFAULT_NICKNAME = "익명"
MAX_NICKNAME_LENGTH = 64
# Upper bound of the BIGINT size column.
MAX_SIZE = 2**63 - 1


@dataclass
class StoredImage:
    key: str
    url: str
    content_type: str
    original_size: int


@dataclass
class MemoryDraft:
    nickname: str
    message: str
    location: Location
    size: Optional[int]


def _parse_size(value: Optional[str | int | float]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        size = int(value)
    except (TypeError, ValueError, OverflowError):
        # Decimal or exponent notation, e.g. "2048.0" or "2e3".
        try:
            size = int(float(value))
        except (TypeError, ValueError, OverflowError):
            raise ValidationError(f"size must be numeric, got {value!r}")
    if size < 0:
        raise ValidationError("size must be zero or positive")
    if size > MAX_SIZE:
        raise ValidationError(f"size must be at most {MAX_SIZE}")
    return size


def validate_memory_fields(
    *,
    nickname: Optional[str],
    message: Optional[str],
    location: Optional[str],
    size: Optional[str | int | float],
) -> MemoryDraft:
    if not message or not message.strip():
        raise ValidationError("message is required")
    nickname = (nickname or "").strip() or DEFAULT_NICKNAME
    if len(nickname) > MAX_NICKNAME_LENGTH:
        raise ValidationError(f"nickname must be at most {MAX_NICKNAME_LENGTH} characters")
    return MemoryDraft(
        nickname=nickname,
        message=message.strip(),
        location=parse_location(location, strict=True),
        size=_parse_size(size),
    )


class MemoryWriteService:
    def __init__(
        self,
        db: DbClient,
        storage: StorageClient,
        *,
        max_dimension: int = 1920,
        jpeg_quality: int = 80,
    ):
        self.db = db
        self.storage = storage
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality

    def upload_image(self, data: Optional[bytes], content_type: Optional[str]) -> StoredImage:
        if not data:
            raise ValidationError("No file uploaded.")
        normalized = normalize_image(
            data,
            content_type or "",
            max_dimension=self.max_dimension,
            quality=self.jpeg_quality,
        )
        key = build_object_key(normalized.content_type)
        url = self.storage.upload_bytes(key, normalized.data, normalized.content_type)
        return StoredImage(
            key=key,
            url=url,
            content_type=normalized.content_type,
            original_size=normalized.original_size,
        )

    def _discard_image(self, key: str) -> None:
        try:
            self.storage.delete_object(key)
        except Exception:
            logger.exception("Failed to clean up orphaned image %s", key)

    def create_memory(
        self,
        *,
        image: Optional[bytes],
        content_type: Optional[str],
        nickname: Optional[str],
        message: Optional[str],
        location: Optional[str],
        size: Optional[str | int | float] = None,
    ) -> MemoryRecord:
        """
        Store the image and persist a memory pointing at it.

        Field validation runs before anything touches storage. If the
        database insert fails the uploaded object is removed again.
        """
        draft = validate_memory_fields(
            nickname=nickname, message=message, location=location, size=size
        )
        stored = self.upload_image(image, content_type)
        try:
            record = self.db.create_memory(
                nickname=draft.nickname,
                image_url=stored.url,
                image_key=stored.key,
                message=draft.message,
                location=draft.location,
                size=draft.size if draft.size is not None else stored.original_size,
            )
        except StorageError:
            self._discard_image(stored.key)
            raise
        except Exception as exc:
            self._discard_image(stored.key)
            raise StorageError("Failed to save memory", cause=exc) from exc
        logger.info(
            "Saved memory %d (%s, %d bytes) from %s",
            record.id,
            record.location.value,
            record.size,
            record.nickname,
        )
        return record
