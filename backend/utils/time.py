"""Time helpers with timezone-aware UTC defaults."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def start_of_month(now: datetime | None = None) -> datetime:
    """Midnight UTC on the first day of ``now``'s month."""
    now = as_utc(now) if now else utc_now()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
