from datetime import datetime, timedelta, timezone

import pytest

from academy.utils.drip import (
    DripType,
    compute_unlocked_at,
    format_time_until_unlock,
    is_lesson_unlocked,
    normalize_drip_value,
)

ENROLLED = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_immediate_lessons_are_always_open():
    assert is_lesson_unlocked(DripType.immediate, None, None)
    assert compute_unlocked_at("immediate", None, ENROLLED) == ENROLLED
    assert compute_unlocked_at("immediate", None, None) is None


def test_days_after_enrollment():
    assert compute_unlocked_at("days_after_enrollment", 7, ENROLLED) == ENROLLED + timedelta(days=7)
    before = ENROLLED + timedelta(days=6, hours=23)
    after = ENROLLED + timedelta(days=7)
    assert not is_lesson_unlocked("days_after_enrollment", 7, ENROLLED, now=before)
    assert is_lesson_unlocked("days_after_enrollment", 7, ENROLLED, now=after)


def test_days_after_enrollment_missing_value_means_zero_days():
    assert compute_unlocked_at("days_after_enrollment", None, ENROLLED) == ENROLLED


def test_days_after_enrollment_without_enrollment_is_locked():
    assert compute_unlocked_at("days_after_enrollment", 3, None) is None
    assert not is_lesson_unlocked("days_after_enrollment", 3, None)


def test_specific_date_ignores_enrollment():
    unlock = "2024-06-01T00:00:00Z"
    expected = datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert compute_unlocked_at("specific_date", unlock, None) == expected
    assert not is_lesson_unlocked("specific_date", unlock, None, now=expected - timedelta(seconds=1))
    assert is_lesson_unlocked("specific_date", unlock, None, now=expected)


def test_specific_date_naive_value_is_utc():
    assert compute_unlocked_at("specific_date", "2024-06-01T12:00:00", None) == datetime(
        2024, 6, 1, 12, tzinfo=timezone.utc
    )


def test_specific_date_without_value_is_open():
    assert is_lesson_unlocked("specific_date", None, None)


@pytest.mark.parametrize(
    "delta, label",
    [
        (timedelta(days=3, hours=2), "Unlocks in 3 days"),
        (timedelta(days=1), "Unlocks in 1 day"),
        (timedelta(hours=5, minutes=10), "Unlocks in 5 hours"),
        (timedelta(minutes=1, seconds=30), "Unlocks in 1 minute"),
        (timedelta(seconds=20), "Unlocks in 1 minute"),
        (timedelta(seconds=0), "Available now"),
    ],
)
def test_format_time_until_unlock(delta, label):
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert format_time_until_unlock(now + delta, now=now) == label


def test_format_time_until_unlock_unknown():
    assert format_time_until_unlock(None) == "Locked"


def test_normalize_drip_value():
    assert normalize_drip_value("immediate", "anything") is None
    assert normalize_drip_value("days_after_enrollment", "5") == 5
    assert normalize_drip_value("specific_date", "2024-06-01") == "2024-06-01T00:00:00+00:00"
    with pytest.raises(ValueError):
        normalize_drip_value("days_after_enrollment", -1)
    with pytest.raises(ValueError):
        normalize_drip_value("specific_date", None)
    with pytest.raises(ValueError):
        normalize_drip_value("weekly", 1)
