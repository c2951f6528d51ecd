"""Time utilities (UTC storage, configurable local zone)."""

from datetime import date, datetime, time, timezone, tzinfo
from decimal import Decimal
from typing import Any, Optional, Protocol
from zoneinfo import ZoneInfo

from navtracker.config import settings


def local_zone() -> tzinfo:
    """Zone used for calendar boundaries such as midnight and Jan 1."""
    return ZoneInfo(settings.TIMEZONE)


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def to_utc(dt: datetime, naive_assumed_tz: tzinfo = timezone.utc) -> datetime:
    """Convert datetime to a UTC timezone-aware value."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=naive_assumed_tz)
    return dt.astimezone(timezone.utc)


def parse_instant(value: Any) -> Optional[datetime]:
    """
    Coerce a raw timestamp into a UTC-aware datetime.

    Accepts datetimes, dates, ISO-8601 strings (with or without a trailing Z)
    and epoch milliseconds. Returns None when the value cannot be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, (int, float, Decimal)):
        try:
            return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def local_midnight(day: date, zone: Optional[tzinfo] = None) -> datetime:
    """Midnight of `day` in the local zone, returned in UTC."""
    zone = zone or local_zone()
    return datetime.combine(day, time.min, tzinfo=zone).astimezone(timezone.utc)


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock, UTC-aware."""

    def now(self) -> datetime:
        return now_utc()
