"""Tests for human time parsing and release date arithmetic."""
from datetime import datetime, time, timedelta, timezone

import pytest

from arc_countdown.timeutil import (
    InvalidTimeFormat,
    daily_time,
    days_remaining,
    format_hhmm,
    format_release_date,
    has_passed,
    parse_release_date,
    parse_time,
    time_to_cron,
    validate_time_input,
)

UTC = timezone.utc


class TestParseTime:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("3pm", "15:00"),
            ("3am", "03:00"),
            ("12am", "00:00"),
            ("12pm", "12:00"),
            ("15:00", "15:00"),
            ("00:30", "00:30"),
            ("23:59", "23:59"),
            ("3:30pm", "15:30"),
            ("11:45am", "11:45"),
            ("9", "09:00"),
            (" 3 PM ", "15:00"),
        ],
    )
    def test_round_trips_to_wall_clock(self, raw, expected):
        """Parsing then formatting HH:MM gives the same wall-clock time."""
        assert format_hhmm(*parse_time(raw)) == expected

    @pytest.mark.parametrize("raw", ["invalid", "", "3:xx", "25:00", "12:60", "13pm", "pm", "3::00"])
    def test_rejects_garbage_and_out_of_range(self, raw):
        with pytest.raises(InvalidTimeFormat):
            parse_time(raw)

    def test_error_lists_supported_formats(self):
        with pytest.raises(InvalidTimeFormat) as exc:
            parse_time("noon")
        assert '"noon"' in str(exc.value)
        assert "3:30pm" in str(exc.value)
        assert exc.value.raw == "noon"

    def test_invalid_time_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_time("soon")


class TestScheduleForms:
    def test_cron_is_seconds_first(self):
        assert time_to_cron("3pm") == "0 0 15 * * *"
        assert time_to_cron("9:05am") == "0 5 9 * * *"

    def test_daily_time_is_utc(self):
        assert daily_time("3:30pm") == time(15, 30, tzinfo=UTC)

    def test_validate_time_input(self):
        assert validate_time_input("15:00") == (True, None)
        ok, error = validate_time_input("later")
        assert ok is False
        assert "Invalid time format" in error


class TestDaysRemaining:
    def test_same_instant_is_zero(self):
        now = datetime(2025, 10, 30, tzinfo=UTC)
        assert days_remaining(now, now) == 0

    def test_one_day_ahead_same_time_is_one(self):
        now = datetime(2025, 10, 29, 8, 0, tzinfo=UTC)
        assert days_remaining(now + timedelta(days=1), now) == 1

    def test_partial_days_round_up(self):
        target = datetime(2025, 10, 30, tzinfo=UTC)
        assert days_remaining(target, target - timedelta(hours=1)) == 1
        assert days_remaining(target, target - timedelta(days=2, minutes=1)) == 3

    def test_never_negative(self):
        target = datetime(2025, 10, 30, tzinfo=UTC)
        assert days_remaining(target, target + timedelta(days=5)) == 0

    def test_monotonically_non_increasing(self):
        target = datetime(2025, 10, 30, tzinfo=UTC)
        start = target - timedelta(days=70)
        previous = None
        for hours in range(0, 24 * 72, 7):
            value = days_remaining(target, start + timedelta(hours=hours))
            assert value >= 0
            if previous is not None:
                assert value <= previous
            previous = value


class TestReleaseDate:
    def test_has_passed_is_inclusive(self):
        target = datetime(2025, 10, 30, tzinfo=UTC)
        assert has_passed(target, target)
        assert not has_passed(target, target - timedelta(seconds=1))

    def test_parse_zulu_and_naive(self):
        assert parse_release_date("2025-10-30T00:00:00Z") == datetime(2025, 10, 30, tzinfo=UTC)
        assert parse_release_date("2025-10-30T00:00:00") == datetime(2025, 10, 30, tzinfo=UTC)

    def test_parse_keeps_offset(self):
        dt = parse_release_date("2025-10-30T02:00:00+02:00")
        assert dt == datetime(2025, 10, 30, tzinfo=UTC)

    def test_format_release_date(self):
        assert format_release_date(datetime(2025, 10, 30, tzinfo=UTC)) == "October 30, 2025"
