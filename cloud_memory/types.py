"""
Enumerations shared by the write and read paths.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from cloud_memory.errors import ValidationError


class Location(str, Enum):
    MOUNTAIN = "MOUNTAIN"
    SEA = "SEA"
    SKY = "SKY"


class DateBucket(str, Enum):
    TODAY = "TODAY"
    YESTERDAY = "YESTERDAY"
    # Day before yesterday.
    DBY = "DBY"


def parse_location(value: Optional[str], *, strict: bool) -> Optional[Location]:
    """
    Parse a location tag.

    Write paths pass ``strict=True`` and get a ValidationError for anything
    outside the enum; read paths ignore unknown values and get ``None``.
    """
    if value is None or value == "":
        if strict:
            raise ValidationError("location is required")
        return None
    try:
        return Location(value.strip().upper())
    except ValueError:
        if strict:
            allowed = ", ".join(loc.value for loc in Location)
            raise ValidationError(
                f"Invalid location '{value}'; expected one of {allowed}"
            )
        return None


def parse_date_bucket(value: Optional[str]) -> Optional[DateBucket]:
    if not value:
        return None
    try:
        return DateBucket(value.strip().upper())
    except ValueError:
        return None
