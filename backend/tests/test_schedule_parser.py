from datetime import datetime, timezone

import pytest

from academy.utils.schedule_parser import (
    InvalidScheduleError,
    next_run_time,
    parse_schedule,
    schedule_text_to_cron,
)


@pytest.mark.parametrize(
    "text, cron",
    [
        ("every day at 8am", "0 8 * * *"),
        ("Every Day at 8AM", "0 8 * * *"),
        ("daily at 18:30", "30 18 * * *"),
        ("every monday at 9am", "0 9 * * 1"),
        ("every fridays at 5:15pm", "15 17 * * 5"),
        ("every sunday at 12am", "0 0 * * 0"),
        ("every weekday at noon", "0 12 * * 1-5"),
        ("every saturday at midnight", "0 0 * * 6"),
    ],
)
def test_schedule_text_to_cron(text, cron):
    assert schedule_text_to_cron(text) == cron


@pytest.mark.parametrize("text", [None, "", "   "])
def test_blank_schedule_has_no_cron(text):
    assert schedule_text_to_cron(text) is None


@pytest.mark.parametrize(
    "text",
    ["whenever", "every blursday at 9am", "every day at 25:00", "every day at 13pm", "daily at 9:75"],
)
def test_unsupported_schedule_raises(text):
    with pytest.raises(InvalidScheduleError):
        parse_schedule(text)


def test_next_run_later_same_day():
    now = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)  # 07:00 in New York
    result = next_run_time("every day at 8am", "America/New_York", now=now)
    assert result == datetime(2024, 3, 4, 13, 0, tzinfo=timezone.utc)


def test_next_run_rolls_to_tomorrow_when_time_passed():
    now = datetime(2024, 3, 4, 14, 0, tzinfo=timezone.utc)  # 09:00 in New York
    result = next_run_time("every day at 8am", "America/New_York", now=now)
    assert result == datetime(2024, 3, 5, 13, 0, tzinfo=timezone.utc)


def test_next_run_exact_match_is_not_returned():
    now = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)
    result = next_run_time("daily at 8:00", "UTC", now=now)
    assert result == datetime(2024, 3, 5, 8, 0, tzinfo=timezone.utc)


def test_next_run_weekly_wraps_to_next_week():
    # Monday 2024-03-04 10:00 UTC, schedule already passed today.
    now = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)
    result = next_run_time("every monday at 9am", "UTC", now=now)
    assert result == datetime(2024, 3, 11, 9, 0, tzinfo=timezone.utc)


def test_next_run_weekday_skips_weekend():
    # Friday 2024-03-08 13:00 UTC
    now = datetime(2024, 3, 8, 13, 0, tzinfo=timezone.utc)
    result = next_run_time("every weekday at noon", "UTC", now=now)
    assert result == datetime(2024, 3, 11, 12, 0, tzinfo=timezone.utc)


def test_next_run_respects_dst_change():
    # US clocks move forward on 2024-03-10; 8am EDT is 12:00 UTC.
    now = datetime(2024, 3, 9, 14, 0, tzinfo=timezone.utc)
    result = next_run_time("every day at 8am", "America/New_York", now=now)
    assert result == datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_next_run_during_repeated_fall_back_hour():
    # 2026-11-01 06:15 UTC is 01:15 EST, after the 01:30 EDT run already happened.
    now = datetime(2026, 11, 1, 6, 15, tzinfo=timezone.utc)
    result = next_run_time("every day at 1:30am", "America/New_York", now=now)
    assert result > now
    assert result == datetime(2026, 11, 2, 6, 30, tzinfo=timezone.utc)


def test_next_run_local_day_differs_from_utc_day():
    # 2024-03-05 03:00 UTC is still Monday evening in Los Angeles.
    now = datetime(2024, 3, 5, 3, 0, tzinfo=timezone.utc)
    result = next_run_time("every monday at 9pm", "America/Los_Angeles", now=now)
    assert result == datetime(2024, 3, 5, 5, 0, tzinfo=timezone.utc)


def test_next_run_unknown_timezone():
    with pytest.raises(InvalidScheduleError):
        next_run_time("every day at 8am", "Mars/Olympus", now=datetime.now(timezone.utc))


def test_next_run_blank_schedule():
    assert next_run_time(None, "UTC") is None
