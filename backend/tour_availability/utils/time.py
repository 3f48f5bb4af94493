from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo

JST = ZoneInfo("Asia/Tokyo")


def now_in(tz: ZoneInfo = JST) -> datetime:
    return datetime.now(timezone.utc).astimezone(tz)


def parse_hhmm(value: object) -> time | None:
    """Parse an exact "HH:MM" string. Returns None for anything else."""
    if not isinstance(value, str):
        return None
    parts = value.split(":")
    if len(parts) != 2 or not all(len(p) == 2 and p.isdigit() for p in parts):
        return None
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
