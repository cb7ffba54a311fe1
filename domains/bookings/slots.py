"""Appointment slot generation: pure functions, no database access.

Candidates start every ``interval_minutes`` inside each availability window
(wall-clock times in the requested timezone). A candidate is offered when:
- it ends within its window
- it does not overlap a busy interval once widened by the service buffers
- it starts at least ``min_notice_minutes`` from now
- it starts no more than ``max_advance_days`` from now
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable

from dateutil import tz as dateutil_tz

from core.errors import ValidationError
from core.timeutils import ensure_utc


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def get_zone(name: str | None) -> tzinfo:
    """Resolve an IANA timezone name; raises ValidationError when unknown."""
    zone = dateutil_tz.gettz(name or "UTC")
    if zone is None:
        raise ValidationError(f"Unknown timezone: {name}")
    return zone


def window_bounds(day: date, start: str, end: str, zone: tzinfo) -> tuple[datetime, datetime]:
    """UTC bounds of a wall-clock window on ``day``."""
    window_start = datetime.combine(day, parse_hhmm(start), tzinfo=zone)
    window_end = datetime.combine(day, parse_hhmm(end), tzinfo=zone)
    return window_start.astimezone(timezone.utc), window_end.astimezone(timezone.utc)


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    return start < other_end and end > other_start


def generate_slots(
    day: date,
    windows: Iterable[tuple[str, str]],
    zone: tzinfo,
    duration_minutes: int,
    busy: Iterable[tuple[datetime, datetime]],
    now: datetime,
    buffer_before: int = 0,
    buffer_after: int = 0,
    min_notice_minutes: int = 0,
    max_advance_days: int = 60,
    interval_minutes: int = 30,
) -> list[datetime]:
    """Available slot start times (UTC, ascending) for one provider on one day."""
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=interval_minutes)
    before = timedelta(minutes=buffer_before)
    after = timedelta(minutes=buffer_after)

    now = ensure_utc(now)
    earliest = now + timedelta(minutes=min_notice_minutes)
    latest = now + timedelta(days=max_advance_days)
    busy = [(ensure_utc(s), ensure_utc(e)) for s, e in busy]

    slots: set[datetime] = set()
    for start, end in windows:
        window_start, window_end = window_bounds(day, start, end, zone)
        slot = window_start
        while slot + duration <= window_end:
            slot_end = slot + duration
            conflict = any(overlaps(slot - before, slot_end + after, b_start, b_end) for b_start, b_end in busy)
            if not conflict and earliest <= slot <= latest:
                slots.add(slot)
            slot += step
    return sorted(slots)
