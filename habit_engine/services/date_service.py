"""
Date calculation and validation service.
Every date comparison in the engine goes through normalize_to_day: raw
timestamps are never compared directly.
"""
from datetime import datetime, timedelta, date, timezone
from typing import Protocol, Union

from habit_engine.exceptions import (
    FutureDateException, BeforeHabitStartException, ValidationException
)

Instant = Union[datetime, date, str]


class Clock(Protocol):
    """Source of the current UTC day"""

    def today(self) -> date:
        ...


class SystemClock:
    """Clock backed by the system wall clock, in UTC"""

    def today(self) -> date:
        return datetime.now(timezone.utc).date()


class DateService:
    """Service for date-related operations"""

    @staticmethod
    def normalize_to_day(instant: Instant) -> date:
        """
        Truncate an instant to its UTC calendar day.

        Aware datetimes are converted to UTC first. Naive datetimes are taken
        to already be in UTC. Plain dates pass through unchanged. ISO strings
        ("2024-01-03" or "2024-01-03T22:10:00+02:00") are parsed first.

        Args:
            instant: datetime, date or ISO 8601 string

        Returns:
            Date-only value in UTC

        Raises:
            ValidationException: If a string cannot be parsed
        """
        if isinstance(instant, str):
            try:
                instant = datetime.fromisoformat(instant.strip().replace("Z", "+00:00"))
            except ValueError:
                raise ValidationException("date", f"cannot parse '{instant}'")

        if isinstance(instant, datetime):
            if instant.tzinfo is not None:
                instant = instant.astimezone(timezone.utc)
            return instant.date()

        return instant

    @staticmethod
    def validate_completion_date(day: Instant, habit_start_day: Instant, today: date) -> date:
        """
        Validate that a completion may be recorded for a day.

        Args:
            day: Requested completion day
            habit_start_day: The habit's start date
            today: Current UTC day from the injected clock

        Returns:
            Normalized completion day

        Raises:
            FutureDateException: If day is after today
            BeforeHabitStartException: If day is before the habit start
        """
        day = DateService.normalize_to_day(day)
        start = DateService.normalize_to_day(habit_start_day)
        today = DateService.normalize_to_day(today)

        if day > today:
            raise FutureDateException(day, today)
        if day < start:
            raise BeforeHabitStartException(day, start)
        return day

    @staticmethod
    def week_start(day: date) -> date:
        """Monday of the week containing day"""
        return day - timedelta(days=day.weekday())

    @staticmethod
    def month_start(day: date) -> date:
        """First day of the month containing day"""
        return day.replace(day=1)

    @staticmethod
    def year_start(day: date) -> date:
        """First day of the year containing day"""
        return day.replace(month=1, day=1)

    @staticmethod
    def shift_months(day: date, months: int) -> date:
        """First day of the month `months` away from day's month"""
        index = day.year * 12 + (day.month - 1) + months
        return date(index // 12, index % 12 + 1, 1)

    @staticmethod
    def month_end(day: date) -> date:
        """Last day of the month containing day"""
        return DateService.shift_months(day, 1) - timedelta(days=1)

    @staticmethod
    def days_between(start: Instant, end: Instant) -> int:
        """Whole days from start to end (negative if end precedes start)"""
        return (DateService.normalize_to_day(end) - DateService.normalize_to_day(start)).days
