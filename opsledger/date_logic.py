"""
OpsLedger - Date Logic Module.

This module provides the date and time handling shared by the status
deriver and the aggregator: parsing stored schedule fields, aligning
instants to a single reference clock, and building trailing month windows.

All comparisons are made against a "now" supplied by the caller. Nothing
in this module reads the system clock.

Classes:
    InvalidScheduleError: Raised for malformed schedule dates or times.
    DateManager: Manages all date-related calculations.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple, Union


class InvalidScheduleError(ValueError):
    """
    Raised when a stored schedule date or time cannot be parsed.

    Attributes:
        field_name: Name of the offending field.
        value: The raw value that failed to parse.
    """

    def __init__(self, field_name: str, value: object, message: str):
        super().__init__(f"Invalid {field_name} {value!r}: {message}")
        self.field_name = field_name
        self.value = value


class DateManager:
    """
    Manages date calculations for status derivation and aggregation.

    Schedule fields are stored as an ISO calendar date and a 24-hour
    time of day without a zone. They are interpreted as wall-clock values
    in the zone of the reference instant they are compared with.

    Example:
        >>> dm = DateManager()
        >>> dm.combine_schedule("2024-12-18", "14:30")
        datetime.datetime(2024, 12, 18, 14, 30)
        >>> dm.month_label(2024, 12)
        'Dec 2024'
    """

    TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$")

    def parse_date(self, value: Union[str, date]) -> date:
        """
        Parses a stored calendar date.

        Args:
            value: ISO date string ("YYYY-MM-DD"), an ISO timestamp whose
                date part is taken, or a date.

        Returns:
            The calendar date.

        Raises:
            InvalidScheduleError: If the value is not a valid date.
        """
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if not isinstance(value, str):
            raise InvalidScheduleError(
                "scheduled_date", value, "expected an ISO date string"
            )

        text = value.strip()
        try:
            if len(text) <= 10:
                return date.fromisoformat(text)
            if text[10] not in ("T", " "):
                raise ValueError(f"unexpected text after the date: '{text[10:]}'")
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            return datetime.fromisoformat(text).date()
        except ValueError as exc:
            raise InvalidScheduleError("scheduled_date", value, str(exc)) from exc

    def parse_time(self, value: Union[str, time]) -> time:
        """
        Parses a stored time of day at minute resolution.

        Accepts "HH:MM" and the "HH:MM:SS" form the store returns for
        time columns. Seconds are dropped.

        Args:
            value: Time string or a time.

        Returns:
            Time of day with seconds and microseconds set to zero.

        Raises:
            InvalidScheduleError: If the value is not a valid 24-hour time.
        """
        if isinstance(value, time):
            return value.replace(second=0, microsecond=0, tzinfo=None)
        if not isinstance(value, str):
            raise InvalidScheduleError(
                "scheduled_time", value, "expected an HH:MM string"
            )

        match = self.TIME_PATTERN.match(value.strip())
        if not match:
            raise InvalidScheduleError(
                "scheduled_time", value, "expected 24-hour HH:MM"
            )

        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours > 23 or minutes > 59:
            raise InvalidScheduleError(
                "scheduled_time", value, "hour or minute out of range"
            )
        return time(hours, minutes)

    def combine_schedule(
        self,
        scheduled_date: Union[str, date],
        scheduled_time: Union[str, time],
        reference: Optional[datetime] = None
    ) -> datetime:
        """
        Combines a stored date and time into a single instant.

        Args:
            scheduled_date: Stored calendar date.
            scheduled_time: Stored time of day.
            reference: Instant whose zone the schedule is read in.
                       A naive reference yields a naive result.

        Returns:
            The scheduled instant.

        Raises:
            InvalidScheduleError: If either field is malformed.
        """
        combined = datetime.combine(
            self.parse_date(scheduled_date),
            self.parse_time(scheduled_time)
        )
        if reference is not None and reference.tzinfo is not None:
            combined = combined.replace(tzinfo=reference.tzinfo)
        return combined

    def truncate_to_minute(self, moment: datetime) -> datetime:
        """Drops seconds and microseconds from an instant."""
        return moment.replace(second=0, microsecond=0)

    def align(self, moment: datetime, reference: datetime) -> datetime:
        """
        Expresses an instant in the zone of the reference instant.

        Aware values are converted to the reference zone. Mixed naive and
        aware values are treated as wall-clock values of the reference.

        Args:
            moment: Instant to align.
            reference: Reference instant for the derivation pass.

        Returns:
            An instant comparable with the reference.
        """
        if reference.tzinfo is None:
            return moment.replace(tzinfo=None)
        if moment.tzinfo is None:
            return moment.replace(tzinfo=reference.tzinfo)
        return moment.astimezone(reference.tzinfo)

    def local_date(self, moment: datetime, reference: datetime) -> date:
        """Returns the calendar date of an instant in the reference zone."""
        return self.align(moment, reference).date()

    def month_label(self, year: int, month: int) -> str:
        """
        Returns the display label of a month bucket.

        Args:
            year: Four-digit year.
            month: Month number (1-12).

        Returns:
            Label like "Dec 2024".

        Raises:
            ValueError: If month is not in range 1-12.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {month}")
        return f"{calendar.month_abbr[month]} {year}"

    def trailing_months(
        self,
        reference: Union[date, datetime],
        window_months: int
    ) -> List[Tuple[int, int]]:
        """
        Lists consecutive (year, month) keys ending at the reference month.

        Args:
            reference: Date or instant inside the last month of the window.
            window_months: Number of months in the window.

        Returns:
            Keys in ascending chronological order. Empty when the window
            is zero or negative.
        """
        if window_months <= 0:
            return []

        last_index = reference.year * 12 + (reference.month - 1)
        keys = []
        for offset in range(window_months - 1, -1, -1):
            index = last_index - offset
            keys.append((index // 12, index % 12 + 1))
        return keys

    def is_within_period(
        self,
        moment: datetime,
        date_from: date,
        date_to: date,
        reference: datetime
    ) -> bool:
        """
        Checks whether an instant falls inside an inclusive day range.

        The range starts at the beginning of date_from and ends at the end
        of date_to, both in the reference zone.
        """
        return date_from <= self.local_date(moment, reference) <= date_to

    def schedule_label(self, scheduled: datetime, reference: datetime) -> str:
        """
        Returns a short day label for a scheduled instant.

        Args:
            scheduled: Scheduled instant.
            reference: Reference instant for the pass.

        Returns:
            "Today", "Tomorrow", or a label like "Wed, Dec 18".
        """
        scheduled_day = self.local_date(scheduled, reference)
        today = reference.date()

        if scheduled_day == today:
            return "Today"
        if scheduled_day == today + timedelta(days=1):
            return "Tomorrow"
        return (
            f"{calendar.day_abbr[scheduled_day.weekday()]}, "
            f"{calendar.month_abbr[scheduled_day.month]} {scheduled_day.day}"
        )
