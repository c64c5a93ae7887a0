from __future__ import annotations

from datetime import datetime, timedelta, timezone

from dateutil import tz


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime; naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz.UTC)
    return dt.astimezone(tz.UTC)


def truncate_to_second(dt: datetime) -> datetime:
    return dt.replace(microsecond=0)


def utc_day_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    now = to_utc(now or utc_now())
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)
