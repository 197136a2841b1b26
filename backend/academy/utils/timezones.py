from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

COMMON_TIMEZONES = (
    "UTC",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Phoenix",
    "America/Anchorage",
    "Pacific/Honolulu",
    "Europe/London",
    "Europe/Paris",
    "Asia/Tokyo",
    "Australia/Sydney",
)


@dataclass(frozen=True)
class TimeUntil:
    days: int
    hours: int
    minutes: int
    seconds: int
    is_past: bool


def get_zone(name: str) -> ZoneInfo:
    """Return the IANA zone for ``name`` or raise ``ValueError``."""
    if not name or not isinstance(name, str):
        raise ValueError("timezone is required")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def is_valid_timezone(name: str) -> bool:
    try:
        get_zone(name)
    except ValueError:
        return False
    return True


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(local_datetime: str | datetime, tz_name: str) -> datetime:
    """Interpret a wall-clock time in ``tz_name`` and return it in UTC."""
    zone = get_zone(tz_name)
    if isinstance(local_datetime, str):
        local_datetime = datetime.fromisoformat(local_datetime)
    if local_datetime.tzinfo is not None:
        return local_datetime.astimezone(timezone.utc)
    return local_datetime.replace(tzinfo=zone).astimezone(timezone.utc)


def from_utc(utc_datetime: str | datetime, tz_name: str) -> datetime:
    """Convert a UTC instant to a naive wall-clock time in ``tz_name``."""
    zone = get_zone(tz_name)
    if isinstance(utc_datetime, str):
        utc_datetime = datetime.fromisoformat(utc_datetime.replace("Z", "+00:00"))
    return ensure_aware(utc_datetime).astimezone(zone).replace(tzinfo=None)


def is_future(value: datetime, *, now: datetime | None = None) -> bool:
    return ensure_aware(value) > (now or utcnow())


def time_until(value: datetime, *, now: datetime | None = None) -> TimeUntil:
    remaining = ensure_aware(value) - (now or utcnow())
    total_seconds = int(remaining.total_seconds())
    if total_seconds < 0:
        return TimeUntil(days=0, hours=0, minutes=0, seconds=0, is_past=True)
    days, rest = divmod(total_seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return TimeUntil(days=days, hours=hours, minutes=minutes, seconds=seconds, is_past=False)
