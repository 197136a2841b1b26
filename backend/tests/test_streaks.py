from datetime import date, datetime, timezone

import pytest

from academy.repositories import streaks as streaks_repo
from academy.services.streak_service import advance_streak, streak_freeze

TODAY = date(2024, 4, 10)


def _record(current, longest, last, started, total=None):
    return {
        "current_streak": current,
        "longest_streak": longest,
        "last_activity_date": last,
        "streak_started_at": started,
        "total_learning_days": total if total is not None else current,
    }


def test_first_activity_starts_streak():
    result = advance_streak(None, TODAY)
    assert result["current_streak"] == 1
    assert result["longest_streak"] == 1
    assert result["streak_started_at"] == TODAY
    assert result["total_learning_days"] == 1


def test_same_day_activity_is_unchanged():
    record = _record(3, 5, TODAY, date(2024, 4, 8), total=9)
    assert advance_streak(record, TODAY) == record


def test_consecutive_day_extends_streak():
    record = _record(3, 3, date(2024, 4, 9), date(2024, 4, 7))
    result = advance_streak(record, TODAY)
    assert result["current_streak"] == 4
    assert result["longest_streak"] == 4
    assert result["streak_started_at"] == date(2024, 4, 7)
    assert result["total_learning_days"] == 4


def test_gap_restarts_streak_and_keeps_longest():
    record = _record(6, 8, date(2024, 4, 7), date(2024, 4, 2), total=20)
    result = advance_streak(record, TODAY)
    assert result["current_streak"] == 1
    assert result["longest_streak"] == 8
    assert result["streak_started_at"] == TODAY
    assert result["total_learning_days"] == 21


def test_streak_freeze_flags_risk_before_midnight():
    now = datetime(2024, 4, 10, 18, 30, tzinfo=timezone.utc)
    freeze = streak_freeze(_record(4, 4, date(2024, 4, 9), date(2024, 4, 6)), now)
    assert freeze.streak_at_risk is True
    assert freeze.hours_until_reset == 5
    assert freeze.current_streak == 4


def test_streak_freeze_is_safe_after_activity_today():
    now = datetime(2024, 4, 10, 8, 0, tzinfo=timezone.utc)
    freeze = streak_freeze(_record(4, 4, TODAY, date(2024, 4, 7)), now)
    assert freeze.streak_at_risk is False
    assert freeze.hours_until_reset == 16


def test_streak_freeze_without_record():
    freeze = streak_freeze(None, datetime(2024, 4, 10, tzinfo=timezone.utc))
    assert freeze.streak_at_risk is False


@pytest.mark.anyio("asyncio")
async def test_record_activity_endpoint(async_client, student, monkeypatch):
    store: dict = {}
    logged: list = []

    async def fake_get_streak(user_id):
        return store.get(user_id)

    async def fake_save_streak(user_id, record):
        store[user_id] = dict(record, user_id=user_id)
        return store[user_id]

    async def fake_log_activity(user_id, activity_date, *, lessons_completed, minutes_studied):
        logged.append((user_id, activity_date, lessons_completed, minutes_studied))

    async def fake_count_active_days(user_id, since):
        return len({entry[1] for entry in logged if entry[1] >= since})

    monkeypatch.setattr(streaks_repo, "get_streak", fake_get_streak)
    monkeypatch.setattr(streaks_repo, "save_streak", fake_save_streak)
    monkeypatch.setattr(streaks_repo, "log_activity", fake_log_activity)
    monkeypatch.setattr(streaks_repo, "count_active_days", fake_count_active_days)

    resp = await async_client.post(
        "/api/streaks/activity", json={"lessons_completed": 2, "minutes_studied": 30}
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["stats"]["current_streak"] == 1
    assert body["stats"]["days_this_week"] == 1
    assert body["freeze"]["streak_at_risk"] is False
    assert logged[0][2:] == (2, 30)

    again = await async_client.post("/api/streaks/activity", json={})
    assert again.json()["stats"]["current_streak"] == 1
    assert again.json()["stats"]["total_learning_days"] == 1

    me = await async_client.get("/api/streaks/me")
    assert me.status_code == 200
    assert me.json()["stats"]["longest_streak"] == 1


@pytest.mark.anyio("asyncio")
async def test_streaks_require_login(async_client):
    resp = await async_client.get("/api/streaks/me")
    assert resp.status_code == 401
