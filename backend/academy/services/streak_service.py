from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Mapping

from .. import schemas
from ..repositories import streaks as streaks_repo
from ..utils.timezones import utcnow

logger = logging.getLogger(__name__)


def empty_streak() -> dict[str, Any]:
    return {
        "current_streak": 0,
        "longest_streak": 0,
        "last_activity_date": None,
        "streak_started_at": None,
        "total_learning_days": 0,
    }


def advance_streak(record: Mapping[str, Any] | None, today: date) -> dict[str, Any]:
    """Return the streak after activity on ``today``; repeat activity the same day is a no-op."""

    if not record:
        return {
            "current_streak": 1,
            "longest_streak": 1,
            "last_activity_date": today,
            "streak_started_at": today,
            "total_learning_days": 1,
        }

    current = dict(record)
    last = current.get("last_activity_date")
    if last == today:
        return current

    if last == today - timedelta(days=1):
        streak = int(current.get("current_streak") or 0) + 1
        started = current.get("streak_started_at") or today
    else:
        streak = 1
        started = today

    current.update(
        current_streak=streak,
        longest_streak=max(int(current.get("longest_streak") or 0), streak),
        last_activity_date=today,
        streak_started_at=started,
        total_learning_days=int(current.get("total_learning_days") or 0) + 1,
    )
    return current


def streak_freeze(record: Mapping[str, Any] | None, now: datetime) -> schemas.StreakFreeze:
    if not record:
        return schemas.StreakFreeze(streak_at_risk=False)
    now = now.astimezone(timezone.utc)
    last = record.get("last_activity_date")
    midnight = datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=timezone.utc)
    hours_left = int((midnight - now).total_seconds() // 3600)
    return schemas.StreakFreeze(
        streak_at_risk=last is not None and last < now.date(),
        last_activity_date=last,
        current_streak=int(record.get("current_streak") or 0),
        hours_until_reset=hours_left,
    )


async def record_activity(
    user_id: str,
    payload: schemas.StreakActivityRequest,
    *,
    now: datetime | None = None,
) -> schemas.StreakResponse:
    moment = now or utcnow()
    today = moment.astimezone(timezone.utc).date()
    existing = await streaks_repo.get_streak(user_id)
    updated = advance_streak(existing, today)
    if updated != existing:
        updated = await streaks_repo.save_streak(user_id, updated)
        if existing and updated["current_streak"] == 1 and existing.get("current_streak"):
            logger.info("Streak reset for user %s after %s days", user_id, existing["current_streak"])
    await streaks_repo.log_activity(
        user_id,
        today,
        lessons_completed=payload.lessons_completed,
        minutes_studied=payload.minutes_studied,
    )
    return await get_streak_summary(user_id, now=moment)


async def get_streak_summary(
    user_id: str,
    *,
    now: datetime | None = None,
) -> schemas.StreakResponse:
    moment = (now or utcnow()).astimezone(timezone.utc)
    record = await streaks_repo.get_streak(user_id)
    today = moment.date()
    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)

    base = dict(record) if record else empty_streak()
    stats = schemas.StreakStats(
        current_streak=int(base.get("current_streak") or 0),
        longest_streak=int(base.get("longest_streak") or 0),
        total_learning_days=int(base.get("total_learning_days") or 0),
        last_activity_date=base.get("last_activity_date"),
        streak_started_at=base.get("streak_started_at"),
        days_this_week=await streaks_repo.count_active_days(user_id, week_start) if record else 0,
        days_this_month=await streaks_repo.count_active_days(user_id, month_start) if record else 0,
    )
    return schemas.StreakResponse(stats=stats, freeze=streak_freeze(record, moment))


__all__ = [
    "empty_streak",
    "advance_streak",
    "streak_freeze",
    "record_activity",
    "get_streak_summary",
]
