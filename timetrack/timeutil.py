from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime:
    if value is None:
        return utcnow()

    # SQLite hands back naive values for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)

    return value.astimezone(timezone.utc)


def local_day_bounds_utc(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    local_start = datetime.combine(day, time.min, tzinfo=tz)
    local_end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return local_start.astimezone(timezone.utc), local_end.astimezone(timezone.utc)


def range_bounds_utc(start_day: date, end_day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Half-open UTC window covering local midnight of start_day up to local midnight of end_day."""
    start_utc, _ = local_day_bounds_utc(start_day, tz)
    end_utc, _ = local_day_bounds_utc(end_day, tz)
    return start_utc, end_utc


def local_day(value: datetime, tz: ZoneInfo) -> date:
    return as_utc(value).astimezone(tz).date()
