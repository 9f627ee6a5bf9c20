from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from restaurant_api.core.config import LOCAL_UTC_OFFSET_MINUTES


def utcnow() -> datetime:
    """Naive UTC timestamp, comparable with values read back from every backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def local_day_bounds(day: date, *, offset_minutes: int = LOCAL_UTC_OFFSET_MINUTES) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` covering one local business day."""
    offset = timedelta(minutes=offset_minutes)
    start = datetime.combine(day, time.min) - offset
    return start, start + timedelta(days=1)


def local_range_bounds(
    start_day: date, end_day: date, *, offset_minutes: int = LOCAL_UTC_OFFSET_MINUTES
) -> tuple[datetime, datetime]:
    start, _ = local_day_bounds(start_day, offset_minutes=offset_minutes)
    _, end = local_day_bounds(end_day, offset_minutes=offset_minutes)
    return start, end


def to_local(value: datetime, *, offset_minutes: int = LOCAL_UTC_OFFSET_MINUTES) -> datetime:
    return to_naive_utc(value) + timedelta(minutes=offset_minutes)
