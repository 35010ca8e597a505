"""Time arithmetic shared by slot generation and conflict detection."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def ensure_utc(value: datetime) -> datetime:
    """Coerce a datetime into UTC timezone-aware form."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_from_local(value: datetime, tz: ZoneInfo) -> datetime:
    """Interpret naive datetimes in ``tz``; aware ones are only converted."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)


def day_bounds(target_date: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Return the UTC instants delimiting ``target_date`` in ``tz``."""

    start = datetime.combine(target_date, time.min, tzinfo=tz)
    end = datetime.combine(target_date + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def intervals_overlap(
    start: datetime, end: datetime, other_start: datetime, other_end: datetime
) -> bool:
    """Half-open overlap test; intervals that only touch do not overlap."""

    return start < other_end and other_start < end


def slot_starts(
    target_date: date,
    block_start: time,
    block_end: time,
    *,
    duration: timedelta,
    step: timedelta,
    tz: ZoneInfo,
) -> Iterator[datetime]:
    """Yield local slot starts whose full duration fits inside the block.

    A slot ending exactly at ``block_end`` is included.
    """

    current = datetime.combine(target_date, block_start, tzinfo=tz)
    limit = datetime.combine(target_date, block_end, tzinfo=tz)
    while current + duration <= limit:
        yield current
        current += step
