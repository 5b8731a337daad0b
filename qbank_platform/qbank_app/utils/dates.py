"""Timezone helpers; SQLite hands back naive datetimes even for tz-aware columns."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_aware(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_millis(value: datetime | None) -> int | None:
    value = coerce_aware(value)
    return int(value.timestamp() * 1000) if value is not None else None
