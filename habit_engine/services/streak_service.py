"""
Streak calculation service.
Greedy backward scans: the work done is proportional to the streak length,
not to the size of the completion history.
"""
from datetime import date, timedelta
from typing import Container, Iterable, Optional

from habit_engine.models import HabitCompletion


class StreakService:
    """Service for consecutive-day streak calculations"""

    @staticmethod
    def current_streak(
        completed_days: Container[date],
        reference_day: date,
        today: date,
        start_day: Optional[date] = None
    ) -> int:
        """
        Count consecutive completed days ending at the reference day.

        The scan starts at min(reference_day, today) and walks backward until
        the first day that is not completed or falls before start_day. A past
        reference day that is not completed yields 0. Today is still open, so
        when it has no completion yet the streak ending yesterday is reported.

        Args:
            completed_days: Days with completed=True (set-like)
            reference_day: Day the streak should end on
            today: Current UTC day
            start_day: Habit start; nothing before it counts

        Returns:
            Streak length in days
        """
        cursor = min(reference_day, today)
        if cursor == today and cursor not in completed_days:
            cursor -= timedelta(days=1)

        streak = 0
        while cursor in completed_days:
            if start_day is not None and cursor < start_day:
                break
            streak += 1
            cursor -= timedelta(days=1)

        return streak

    @staticmethod
    def streak_from_descending(
        days_desc: Iterable[date],
        reference_day: date,
        start_day: Optional[date] = None,
        today: Optional[date] = None
    ) -> int:
        """
        Count consecutive days ending at reference_day from a descending stream.

        Consumes the iterable only until the first gap, so a database cursor
        behind it fetches just the rows that belong to the streak. Passing
        today enables the same open-day rule as current_streak.

        Args:
            days_desc: Completed days, most recent first, no duplicates
            reference_day: Day the streak should end on
            start_day: Habit start; nothing before it counts
            today: Current UTC day, if reference_day may still be open

        Returns:
            Streak length in days
        """
        if today is not None:
            reference_day = min(reference_day, today)
        open_day = reference_day if reference_day == today else None

        expected = reference_day
        streak = 0

        for day in days_desc:
            if day > expected:
                continue
            if day != expected and streak == 0 and expected == open_day:
                expected -= timedelta(days=1)
            if day != expected:
                break
            if start_day is not None and day < start_day:
                break
            streak += 1
            expected -= timedelta(days=1)

        return streak

    @staticmethod
    def longest_streak(completions: Iterable[HabitCompletion]) -> int:
        """Highest streak snapshot ever recorded (0 for an empty history)"""
        return max((c.streak_count or 0 for c in completions), default=0)
