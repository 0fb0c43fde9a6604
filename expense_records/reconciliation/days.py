"""
Calendar-day helpers.

Records are keyed by day. A record_date is always the local midnight that
starts the day; everything that groups records by day goes through here so
the timezone is applied in one place.
"""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterator, Optional, Union
from zoneinfo import ZoneInfo

from expense_records.config import get_settings


DayLike = Union[date, datetime]


def local_zone(name: Optional[str] = None) -> tzinfo:
    """
    Resolve the timezone used for day boundaries.

    An explicit name wins; otherwise the configured EXPENSE_RECORDS_TIMEZONE;
    if that is empty, the system local zone.
    """
    if name is None:
        name = get_settings().engine.timezone
    if name:
        return ZoneInfo(name)
    return datetime.now().astimezone().tzinfo


def to_day(value: DayLike, tz: Optional[tzinfo] = None) -> date:
    """Calendar day of a date or datetime, in the given zone."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(tz or local_zone()).date()
    return value


def start_of_day(value: DayLike, tz: Optional[tzinfo] = None) -> datetime:
    """Local midnight that starts the day containing value."""
    tz = tz or local_zone()
    return datetime.combine(to_day(value, tz), time.min, tzinfo=tz)


def day_bounds(value: DayLike, tz: Optional[tzinfo] = None) -> tuple[datetime, datetime]:
    """Half-open [start, next_start) interval covering the day."""
    tz = tz or local_zone()
    day = to_day(value, tz)
    return start_of_day(day, tz), start_of_day(day + timedelta(days=1), tz)


def same_day(a: DayLike, b: DayLike, tz: Optional[tzinfo] = None) -> bool:
    tz = tz or local_zone()
    return to_day(a, tz) == to_day(b, tz)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every day from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
