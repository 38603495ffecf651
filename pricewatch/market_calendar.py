"""
US equities market calendar in Eastern time.

Pure functions, no state. Every function accepts an aware datetime (naive
values are treated as UTC) and returns aware UTC datetimes.

Holidays are not modelled: a business day is any weekday.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from .constants import (
    EASTERN_TIMEZONE,
    MARKET_CLOSE_HOUR,
    MARKET_CLOSE_MINUTE,
    MARKET_OPEN_HOUR,
    MARKET_OPEN_MINUTE,
)

ET = ZoneInfo(EASTERN_TIMEZONE)


@dataclass(frozen=True)
class EasternComponents:
    """Wall-clock view of an instant in Eastern time (weekday: 0=Sunday ... 6=Saturday)"""

    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    weekday: int
    utc_offset_minutes: int


@dataclass(frozen=True)
class MonitorWindow:
    """Interval during which a watch may stay pending"""

    start: datetime
    close: datetime


def to_utc(instant: datetime) -> datetime:
    """Normalize to an aware UTC datetime"""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_eastern(instant: datetime) -> datetime:
    return to_utc(instant).astimezone(ET)


def eastern_components(instant: datetime) -> EasternComponents:
    """Break an instant into Eastern wall-clock components, DST aware"""
    zoned = _to_eastern(instant)
    offset = zoned.utcoffset() or timedelta(0)
    return EasternComponents(
        year=zoned.year,
        month=zoned.month,
        day=zoned.day,
        hour=zoned.hour,
        minute=zoned.minute,
        second=zoned.second,
        weekday=(zoned.weekday() + 1) % 7,
        utc_offset_minutes=int(offset.total_seconds() // 60),
    )


def eastern_datetime(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """UTC instant of an Eastern wall-clock time"""
    return datetime(year, month, day, hour, minute, tzinfo=ET).astimezone(timezone.utc)


def start_of_eastern_day(instant: datetime) -> datetime:
    zoned = _to_eastern(instant)
    return eastern_datetime(zoned.year, zoned.month, zoned.day)


def add_days(instant: datetime, days: int) -> datetime:
    """Add whole days in UTC (24h steps, unaffected by DST)"""
    return to_utc(instant) + timedelta(days=days)


def _boundary(instant: datetime, hour: int, minute: int) -> datetime:
    zoned = _to_eastern(instant)
    return eastern_datetime(zoned.year, zoned.month, zoned.day, hour, minute)


def market_open(instant: datetime) -> datetime:
    """09:30 Eastern on the calendar day containing ``instant``"""
    return _boundary(instant, MARKET_OPEN_HOUR, MARKET_OPEN_MINUTE)


def market_close(instant: datetime) -> datetime:
    """16:00 Eastern on the calendar day containing ``instant``"""
    return _boundary(instant, MARKET_CLOSE_HOUR, MARKET_CLOSE_MINUTE)


def is_weekend(instant: datetime) -> bool:
    return _to_eastern(instant).weekday() >= 5


def is_market_hours(instant: datetime) -> bool:
    """True on a weekday between the open and the close, both inclusive"""
    if is_weekend(instant):
        return False
    moment = to_utc(instant)
    return market_open(moment) <= moment <= market_close(moment)


def next_business_day(instant: datetime) -> datetime:
    """
    Same Eastern wall-clock time on the next weekday.

    Advances one calendar day at a time until the result is not on a weekend.
    """
    zoned = _to_eastern(instant)
    while True:
        # Aware arithmetic on the same tzinfo keeps the wall-clock time
        zoned = zoned + timedelta(days=1)
        zoned = zoned.astimezone(timezone.utc).astimezone(ET)
        if zoned.weekday() < 5:
            return zoned.astimezone(timezone.utc)


def _next_session(instant: datetime) -> MonitorWindow:
    start = market_open(next_business_day(instant))
    return MonitorWindow(start=start, close=market_close(start))


def compute_monitor_window(alerted_at: datetime) -> MonitorWindow:
    """
    Window during which a watch created at ``alerted_at`` may run.

    - during market hours: from the alert until that day's close
    - on a weekend: the next business day's session
    - before the open: that day's session
    - at or after the close: the next business day's session
    """
    moment = to_utc(alerted_at)

    if is_market_hours(moment):
        return MonitorWindow(start=moment, close=market_close(moment))

    if is_weekend(moment):
        return _next_session(moment)

    open_at = market_open(moment)
    close_at = market_close(moment)

    if moment < open_at:
        return MonitorWindow(start=open_at, close=close_at)

    return _next_session(moment)
