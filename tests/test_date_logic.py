"""
OpsLedger - Date Logic Tests.

Property-based and unit tests for DateManager class.
Tests ensure correct schedule parsing, zone alignment and
trailing month windows.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest
from hypothesis import given, settings
from hypothesis.strategies import dates, integers, datetimes

from opsledger.date_logic import DateManager, InvalidScheduleError


class TestDateManagerUnit:
    """Unit tests for DateManager edge cases."""

    def setup_method(self) -> None:
        """Initialise DateManager for each test."""
        self.dm = DateManager()

    def test_parse_date_iso_string(self) -> None:
        """Verify ISO date strings are parsed."""
        assert self.dm.parse_date("2024-12-18") == date(2024, 12, 18)

    def test_parse_date_accepts_datetime(self) -> None:
        """Verify a datetime is reduced to its date."""
        assert self.dm.parse_date(datetime(2024, 12, 18, 9, 30)) == date(2024, 12, 18)

    def test_parse_date_invalid_raises(self) -> None:
        """Verify malformed dates raise InvalidScheduleError."""
        with pytest.raises(InvalidScheduleError) as exc_info:
            self.dm.parse_date("2024-13-45")
        assert exc_info.value.field_name == "scheduled_date"

    def test_parse_date_accepts_timestamp_string(self) -> None:
        """Verify an ISO timestamp string yields its date part."""
        assert self.dm.parse_date("2024-12-18T09:30:00") == date(2024, 12, 18)
        assert self.dm.parse_date("2024-12-18 23:59") == date(2024, 12, 18)

    @pytest.mark.parametrize("value", ["2024-12-18garbage", "2024-12-18T99:99"])
    def test_parse_date_trailing_text_raises(self, value: str) -> None:
        """Verify text after the date must be a valid time."""
        with pytest.raises(InvalidScheduleError):
            self.dm.parse_date(value)

    def test_parse_date_non_string_raises(self) -> None:
        """Verify non-string, non-date values raise."""
        with pytest.raises(InvalidScheduleError):
            self.dm.parse_date(20241218)

    def test_parse_time_hours_minutes(self) -> None:
        """Verify HH:MM strings are parsed."""
        assert self.dm.parse_time("14:30") == time(14, 30)

    def test_parse_time_drops_seconds(self) -> None:
        """Verify the store's HH:MM:SS form drops seconds."""
        assert self.dm.parse_time("14:30:59") == time(14, 30)

    def test_parse_time_single_digit_hour(self) -> None:
        """Verify a single-digit hour is accepted."""
        assert self.dm.parse_time("9:05") == time(9, 5)

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "", "12"])
    def test_parse_time_invalid_raises(self, value: str) -> None:
        """Verify malformed times raise InvalidScheduleError."""
        with pytest.raises(InvalidScheduleError) as exc_info:
            self.dm.parse_time(value)
        assert exc_info.value.field_name == "scheduled_time"

    def test_invalid_schedule_error_is_value_error(self) -> None:
        """Verify InvalidScheduleError can be caught as ValueError."""
        with pytest.raises(ValueError):
            self.dm.parse_time("25:00")

    def test_combine_schedule_naive(self) -> None:
        """Verify a naive reference yields a naive schedule."""
        combined = self.dm.combine_schedule("2024-12-18", "14:30")
        assert combined == datetime(2024, 12, 18, 14, 30)
        assert combined.tzinfo is None

    def test_combine_schedule_takes_reference_zone(self) -> None:
        """Verify the schedule is read in the zone of the reference."""
        zone = timezone(timedelta(hours=2))
        reference = datetime(2024, 12, 18, 8, 0, tzinfo=zone)

        combined = self.dm.combine_schedule("2024-12-18", "14:30", reference)

        assert combined == datetime(2024, 12, 18, 14, 30, tzinfo=zone)

    def test_truncate_to_minute(self) -> None:
        """Verify seconds and microseconds are dropped."""
        moment = datetime(2024, 12, 18, 14, 30, 45, 123456)
        assert self.dm.truncate_to_minute(moment) == datetime(2024, 12, 18, 14, 30)

    def test_align_converts_aware_values(self) -> None:
        """Verify aware instants are converted to the reference zone."""
        reference = datetime(2024, 12, 18, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        moment = datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc)

        aligned = self.dm.align(moment, reference)

        assert (aligned.year, aligned.month, aligned.day, aligned.hour) == (2025, 1, 1, 1)

    def test_align_naive_reference_drops_zone(self) -> None:
        """Verify a naive reference yields naive values."""
        moment = datetime(2024, 12, 18, 9, 0, tzinfo=timezone.utc)
        aligned = self.dm.align(moment, datetime(2024, 12, 18))
        assert aligned.tzinfo is None

    def test_month_label(self) -> None:
        """Verify month labels."""
        assert self.dm.month_label(2024, 12) == "Dec 2024"
        assert self.dm.month_label(2025, 1) == "Jan 2025"

    def test_month_label_invalid_month_raises(self) -> None:
        """Verify an invalid month raises ValueError."""
        with pytest.raises(ValueError, match="Month must be between 1 and 12"):
            self.dm.month_label(2024, 13)

    def test_trailing_months_crosses_year(self) -> None:
        """Verify the window crosses a year boundary."""
        keys = self.dm.trailing_months(date(2025, 2, 10), 4)
        assert keys == [(2024, 11), (2024, 12), (2025, 1), (2025, 2)]

    def test_trailing_months_empty_window(self) -> None:
        """Verify a zero or negative window is empty."""
        assert self.dm.trailing_months(date(2024, 12, 18), 0) == []
        assert self.dm.trailing_months(date(2024, 12, 18), -3) == []

    def test_is_within_period_inclusive(self) -> None:
        """Verify both range ends are inclusive."""
        reference = datetime(2024, 12, 31, 12, 0)
        start = date(2024, 12, 1)
        end = date(2024, 12, 31)

        assert self.dm.is_within_period(datetime(2024, 12, 1, 0, 0), start, end, reference)
        assert self.dm.is_within_period(datetime(2024, 12, 31, 23, 59), start, end, reference)
        assert not self.dm.is_within_period(datetime(2025, 1, 1, 0, 0), start, end, reference)

    def test_schedule_label(self) -> None:
        """Verify Today, Tomorrow and weekday labels."""
        reference = datetime(2024, 12, 16, 8, 0)

        assert self.dm.schedule_label(datetime(2024, 12, 16, 15, 0), reference) == "Today"
        assert self.dm.schedule_label(datetime(2024, 12, 17, 9, 0), reference) == "Tomorrow"
        assert self.dm.schedule_label(datetime(2024, 12, 18, 9, 0), reference) == "Wed, Dec 18"


class TestDateManagerProperty:
    """Property-based tests for DateManager."""

    def setup_method(self) -> None:
        """Initialise DateManager for each test."""
        self.dm = DateManager()

    @given(
        dates(min_value=date(2000, 1, 1), max_value=date(2100, 12, 31)),
        integers(min_value=1, max_value=36)
    )
    @settings(max_examples=200)
    def test_trailing_months_length_and_order(self, reference: date, window: int) -> None:
        """
        Property: The window has exactly the requested length, is strictly
        ascending, and ends with the reference month.
        """
        keys = self.dm.trailing_months(reference, window)

        assert len(keys) == window
        assert keys == sorted(keys)
        assert len(set(keys)) == window
        assert keys[-1] == (reference.year, reference.month)

    @given(
        dates(min_value=date(2000, 1, 1), max_value=date(2100, 12, 31)),
        integers(min_value=2, max_value=36)
    )
    @settings(max_examples=100)
    def test_trailing_months_are_consecutive(self, reference: date, window: int) -> None:
        """
        Property: Adjacent keys are exactly one calendar month apart.
        """
        keys = self.dm.trailing_months(reference, window)
        for (y1, m1), (y2, m2) in zip(keys, keys[1:]):
            assert (y2 * 12 + m2) - (y1 * 12 + m1) == 1

    @given(integers(min_value=0, max_value=23), integers(min_value=0, max_value=59))
    @settings(max_examples=100)
    def test_parse_time_accepts_every_valid_time(self, hours: int, minutes: int) -> None:
        """
        Property: Every zero-padded 24-hour time parses to itself.
        """
        assert self.dm.parse_time(f"{hours:02d}:{minutes:02d}") == time(hours, minutes)

    @given(datetimes(min_value=datetime(2000, 1, 1), max_value=datetime(2100, 1, 1)))
    @settings(max_examples=100)
    def test_truncate_to_minute_never_later(self, moment: datetime) -> None:
        """
        Property: Truncation never moves an instant forward, and never by
        a full minute or more.
        """
        truncated = self.dm.truncate_to_minute(moment)
        assert truncated <= moment
        assert moment - truncated < timedelta(minutes=1)
