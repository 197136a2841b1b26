from datetime import datetime, timezone

import pytest

from academy.utils.timezones import (
    ensure_aware,
    from_utc,
    get_zone,
    is_future,
    is_valid_timezone,
    time_until,
    to_utc,
)


def test_get_zone_rejects_unknown_name():
    with pytest.raises(ValueError):
        get_zone("Nowhere/Special")


@pytest.mark.parametrize("name, valid", [("UTC", True), ("Europe/Paris", True), ("", False), ("Bogus", False)])
def test_is_valid_timezone(name, valid):
    assert is_valid_timezone(name) is valid


def test_naive_datetime_is_treated_as_utc():
    naive = datetime(2024, 6, 1, 12, 0)
    assert ensure_aware(naive).tzinfo is timezone.utc


def test_wall_clock_round_trip_through_new_york():
    utc_value = to_utc("2024-07-01T09:30:00", "America/New_York")
    assert utc_value == datetime(2024, 7, 1, 13, 30, tzinfo=timezone.utc)
    assert from_utc(utc_value, "America/New_York") == datetime(2024, 7, 1, 9, 30)


def test_time_until_breaks_down_remaining_time():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    target = datetime(2024, 1, 3, 5, 6, 7, tzinfo=timezone.utc)
    remaining = time_until(target, now=now)
    assert (remaining.days, remaining.hours, remaining.minutes, remaining.seconds) == (2, 5, 6, 7)
    assert remaining.is_past is False
    assert time_until(now, now=target).is_past is True
    assert is_future(target, now=now)
