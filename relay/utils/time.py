from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def from_epoch_millis(value: Optional[int]) -> datetime:
    if not value:
        return utcnow()
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Stored datetimes come back naive on some backends; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
