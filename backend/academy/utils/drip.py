from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from .timezones import ensure_aware, utcnow


class DripType(str, Enum):
    immediate = "immediate"
    days_after_enrollment = "days_after_enrollment"
    specific_date = "specific_date"


def _coerce_drip_type(drip_type: DripType | str | None) -> DripType:
    if drip_type is None or drip_type == "":
        return DripType.immediate
    return DripType(drip_type)


def _parse_days(drip_value: Any) -> int:
    if drip_value is None or drip_value == "":
        return 0
    days = int(drip_value)
    if days < 0:
        raise ValueError("drip days must not be negative")
    return days


def _parse_date(drip_value: Any) -> datetime | None:
    if drip_value is None or drip_value == "":
        return None
    if isinstance(drip_value, datetime):
        return ensure_aware(drip_value)
    raw = str(drip_value).strip().replace("Z", "+00:00")
    return ensure_aware(datetime.fromisoformat(raw))


def normalize_drip_value(drip_type: DripType | str | None, drip_value: Any) -> Any:
    """Validate a drip value for storage; raises ``ValueError`` when malformed."""

    kind = _coerce_drip_type(drip_type)
    if kind is DripType.immediate:
        return None
    if kind is DripType.days_after_enrollment:
        return _parse_days(drip_value)
    parsed = _parse_date(drip_value)
    if parsed is None:
        raise ValueError("specific_date drip requires a date")
    return parsed.isoformat()


def compute_unlocked_at(
    drip_type: DripType | str | None,
    drip_value: Any,
    enrolled_at: datetime | None,
) -> datetime | None:
    """Return when a lesson opens for a learner, or None if it cannot be determined."""

    kind = _coerce_drip_type(drip_type)
    if kind is DripType.specific_date:
        return _parse_date(drip_value)
    if enrolled_at is None:
        return None
    enrolled_at = ensure_aware(enrolled_at)
    if kind is DripType.immediate:
        return enrolled_at
    return enrolled_at + timedelta(days=_parse_days(drip_value))


def is_lesson_unlocked(
    drip_type: DripType | str | None,
    drip_value: Any,
    enrolled_at: datetime | None,
    *,
    now: datetime | None = None,
) -> bool:
    kind = _coerce_drip_type(drip_type)
    if kind is DripType.immediate:
        return True
    if kind is DripType.specific_date and _parse_date(drip_value) is None:
        return True
    unlocked_at = compute_unlocked_at(kind, drip_value, enrolled_at)
    if unlocked_at is None:
        return False
    return unlocked_at <= (now or utcnow())


def format_time_until_unlock(unlocked_at: datetime | None, *, now: datetime | None = None) -> str:
    if unlocked_at is None:
        return "Locked"
    remaining = ensure_aware(unlocked_at) - (now or utcnow())
    seconds = int(remaining.total_seconds())
    if seconds <= 0:
        return "Available now"
    days, rest = divmod(seconds, 86400)
    if days:
        return f"Unlocks in {days} day{'s' if days != 1 else ''}"
    hours, rest = divmod(rest, 3600)
    if hours:
        return f"Unlocks in {hours} hour{'s' if hours != 1 else ''}"
    minutes = max(1, rest // 60)
    return f"Unlocks in {minutes} minute{'s' if minutes != 1 else ''}"
