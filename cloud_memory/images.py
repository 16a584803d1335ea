"""
Image normalization applied before an upload reaches object storage.

HEIC/HEIF photos (the iPhone default) are converted to JPEG, every image is
rotated according to its EXIF orientation, shrunk so its longest side fits
``max_dimension`` and re-encoded.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError
from pillow_heif import register_heif_opener

from cloud_memory.errors import ImageConversionError, ValidationError

logger = logging.getLogger(__name__)

register_heif_opener()

HEIF_CONTENT_TYPES = {"image/heic", "image/heif", "image/heic-sequence", "image/heif-sequence"}


@dataclass
class NormalizedImage:
    data: bytes
    content_type: str
    width: int
    height: int
    original_size: int


def _output_format(source_format: str | None, content_type: str) -> tuple[str, str]:
    if content_type in HEIF_CONTENT_TYPES:
        return "JPEG", "image/jpeg"
    if source_format == "PNG":
        return "PNG", "image/png"
    if source_format == "WEBP":
        return "WEBP", "image/webp"
    return "JPEG", "image/jpeg"


def normalize_image(
    data: bytes,
    content_type: str,
    *,
    max_dimension: int = 1920,
    quality: int = 80,
) -> NormalizedImage:
    content_type = (content_type or "").lower()
    if not content_type.startswith("image/"):
        raise ValidationError(f"Unsupported content type '{content_type or 'unknown'}'")
    if not data:
        raise ValidationError("image is empty")

    try:
        with Image.open(io.BytesIO(data)) as img:
            source_format = img.format
            img = ImageOps.exif_transpose(img)
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
            fmt, out_type = _output_format(source_format, content_type)
            if fmt == "JPEG" and img.mode not in ("RGB", "L"):
                img = img.convert("RGB")

            buffer = io.BytesIO()
            if fmt == "JPEG":
                img.save(buffer, format=fmt, quality=quality, optimize=True)
            elif fmt == "PNG":
                img.save(buffer, format=fmt, optimize=True)
            else:
                img.save(buffer, format=fmt, quality=quality)
            width, height = img.size
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as exc:
        raise ImageConversionError(f"Could not convert image: {exc}") from exc

    output = buffer.getvalue()
    logger.debug(
        "Normalized %s (%d bytes) to %s %dx%d (%d bytes)",
        content_type,
        len(data),
        out_type,
        width,
        height,
        len(output),
    )
    return NormalizedImage(
        data=output,
        content_type=out_type,
        width=width,
        height=height,
        original_size=len(data),
    )
