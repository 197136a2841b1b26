"""Translate email-program schedule phrases into cron and next-run timestamps.

Supported phrases (case-insensitive)::

    every day at 8am            -> 0 8 * * *
    daily at 18:30              -> 30 18 * * *
    every monday at 9am         -> 0 9 * * 1
    every fridays at 5:15pm     -> 15 17 * * 5
    every weekday at noon       -> 0 12 * * 1-5

Weekday numbers follow cron (Sunday = 0).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .timezones import get_zone

WEEKDAYS = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}
_WORKDAYS = (1, 2, 3, 4, 5)

_SCHEDULE_RE = re.compile(
    r"^(?:every\s+(?P<period>day|weekday|[a-z]+?)s?|daily)\s+at\s+(?P<time>.+)$"
)
_TIME_RE = re.compile(r"^(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<meridiem>am|pm)?$")


class InvalidScheduleError(ValueError):
    """Raised when schedule text is outside the supported vocabulary."""


@dataclass(frozen=True)
class Schedule:
    minute: int
    hour: int
    weekdays: tuple[int, ...] | None = None

    @property
    def cron(self) -> str:
        if self.weekdays is None:
            day_field = "*"
        elif self.weekdays == _WORKDAYS:
            day_field = "1-5"
        else:
            day_field = ",".join(str(day) for day in self.weekdays)
        return f"{self.minute} {self.hour} * * {day_field}"

    def matches_day(self, moment: datetime) -> bool:
        if self.weekdays is None:
            return True
        # Python: Monday = 0; cron: Sunday = 0.
        return (moment.weekday() + 1) % 7 in self.weekdays


def _parse_time(raw: str) -> tuple[int, int]:
    raw = raw.strip()
    if raw == "noon":
        return 12, 0
    if raw == "midnight":
        return 0, 0
    match = _TIME_RE.match(raw)
    if not match:
        raise InvalidScheduleError(f"Unrecognised time: {raw!r}")
    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    meridiem = match.group("meridiem")
    if minute > 59:
        raise InvalidScheduleError(f"Minute out of range: {raw!r}")
    if meridiem:
        if not 1 <= hour <= 12:
            raise InvalidScheduleError(f"Hour out of range: {raw!r}")
        hour = hour % 12
        if meridiem == "pm":
            hour += 12
    elif hour > 23:
        raise InvalidScheduleError(f"Hour out of range: {raw!r}")
    return hour, minute


def parse_schedule(text: str) -> Schedule:
    normalized = " ".join((text or "").strip().lower().split())
    match = _SCHEDULE_RE.match(normalized)
    if not match:
        raise InvalidScheduleError(f"Unsupported schedule: {text!r}")

    hour, minute = _parse_time(match.group("time"))
    period = match.group("period")
    if period is None or period == "day":
        return Schedule(minute=minute, hour=hour)
    if period == "weekday":
        return Schedule(minute=minute, hour=hour, weekdays=_WORKDAYS)
    if period in WEEKDAYS:
        return Schedule(minute=minute, hour=hour, weekdays=(WEEKDAYS[period],))
    raise InvalidScheduleError(f"Unknown day: {period!r}")


def schedule_text_to_cron(text: str | None) -> str | None:
    if text is None or not text.strip():
        return None
    return parse_schedule(text).cron


def next_run_time(
    text: str | None,
    tz_name: str,
    *,
    now: datetime | None = None,
) -> datetime | None:
    """Return the next UTC instant strictly after ``now`` matching ``text`` in ``tz_name``."""

    if text is None or not text.strip():
        return None
    schedule = parse_schedule(text)
    try:
        zone = get_zone(tz_name)
    except ValueError as exc:
        raise InvalidScheduleError(str(exc)) from exc

    now_utc = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    reference = now_utc.astimezone(zone)
    for offset in range(8):
        day = reference.date() + timedelta(days=offset)
        candidate = datetime(
            day.year, day.month, day.day, schedule.hour, schedule.minute, tzinfo=zone
        )
        # Compare instants; same-zone datetimes compare by wall clock and ignore fold.
        candidate_utc = candidate.astimezone(timezone.utc)
        if candidate_utc <= now_utc or not schedule.matches_day(candidate):
            continue
        return candidate_utc
    raise InvalidScheduleError(f"No upcoming run for schedule: {text!r}")  # pragma: no cover
