"""
Statistics service - read-side analytics over completion history.
All values are recomputed on read; every ratio guards its denominator so an
empty history produces zeros and placeholders instead of errors.
"""
from collections import Counter, defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from habit_engine.constants import (
    WEEKLY_SERIES_LENGTH, MONTHLY_SERIES_LENGTH, PERFECT_WEEKS_WINDOW,
    COMPLETION_RATE_DAYS, TOP_CATEGORIES_LIMIT,
    SUCCESS_RATE_EXCELLENT, SUCCESS_RATE_GOOD, SUCCESS_RATE_BUILDING,
    STREAK_INSIGHT_DAYS, LOW_AVERAGE_RATIO, MILESTONE_COMPLETIONS,
    NO_DATA_PLACEHOLDER, NO_HABITS_PLACEHOLDER,
    WEEKDAY_NAMES, WEEKDAY_SHORT_NAMES, MONTH_NAMES,
    DEFAULT_COLOR_CODE, DEFAULT_ICON
)
from habit_engine.models import Habit, HabitCompletion
from habit_engine.repositories.habit_repository import HabitRepository
from habit_engine.repositories.completion_repository import CompletionRepository
from habit_engine.schemas import HabitDetailStats, UserStats
from habit_engine.services.completion_service import CompletionService
from habit_engine.services.date_service import Clock, DateService, SystemClock
from habit_engine.services.streak_service import StreakService

# Completion record creation hour buckets, in tie-break order
TIME_OF_DAY_BUCKETS = [
    ("Morning", 6, 12),
    ("Afternoon", 12, 18),
    ("Evening", 18, 24),
    ("Night", 0, 6),
]


class StatisticsService:
    """Service for habit and user statistics"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.habit_repo = HabitRepository()
        self.completion_repo = CompletionRepository()
        self.completion_service = CompletionService(db, self.clock)

    # ===== HABIT STATISTICS =====

    def get_habit_statistics(self, habit_id: int, user_id: str) -> HabitDetailStats:
        """
        Build the detail statistics for one habit.

        Raises:
            HabitNotFoundException: Habit missing or owned by someone else
        """
        habit = self.completion_service.get_owned_habit(habit_id, user_id)
        completions = self.completion_repo.get_completed_for_habit(self.db, habit.id)
        current_streak = self.completion_service.current_streak_for(habit)
        return self.build_habit_statistics(habit, completions, current_streak, self.clock.today())

    @staticmethod
    def build_habit_statistics(
        habit: Habit,
        completions: Sequence[HabitCompletion],
        current_streak: int,
        today: date
    ) -> HabitDetailStats:
        """Assemble HabitDetailStats from a habit and its completed records"""
        days = [c.completion_date for c in completions]
        total = len(days)

        week_start = DateService.week_start(today)
        month_start = DateService.month_start(today)
        year_start = DateService.year_start(today)

        success_rate = StatisticsService.calculate_success_rate(
            total, habit.start_date, habit.frequency, today
        )
        average_per_week = StatisticsService.calculate_average_per_week(
            total, habit.start_date, today
        )
        week_completions = sum(1 for d in days if week_start <= d <= today)

        return HabitDetailStats(
            habit_id=habit.id,
            habit_name=habit.name or "",
            habit_description=habit.description or "",
            habit_icon=habit.icon or DEFAULT_ICON,
            habit_color=habit.color_code or DEFAULT_COLOR_CODE,
            category=habit.category or "",
            frequency=habit.frequency,
            target_count=habit.target_count,
            start_date=habit.start_date,
            total_completions=total,
            current_streak=current_streak,
            longest_streak=StreakService.longest_streak(completions),
            today_completed=today in days,
            week_completions=week_completions,
            month_completions=sum(1 for d in days if month_start <= d <= today),
            year_completions=sum(1 for d in days if year_start <= d <= today),
            average_completions_per_week=average_per_week,
            success_rate=success_rate,
            best_day_of_week=StatisticsService.best_day_of_week(days),
            most_productive_month=StatisticsService.most_productive_month(days),
            weekly_data=StatisticsService.weekly_series(days, today),
            monthly_data=StatisticsService.monthly_series(days, today),
            daily_completion_pattern=StatisticsService.daily_pattern(days),
            insights=StatisticsService.generate_insights(
                success_rate=success_rate,
                current_streak=current_streak,
                week_completions=week_completions,
                average_per_week=average_per_week,
                total_completions=total,
                frequency=habit.frequency
            )
        )

    @staticmethod
    def calculate_success_rate(
        completed_count: int,
        start_date: date,
        frequency: int,
        today: date
    ) -> float:
        """
        Completions achieved as a percentage of those expected since start.

        expected = (days_since_start / 7) * frequency, result capped at 100.
        Returns 0 on the start day itself or before it.
        """
        days_since_start = DateService.days_between(start_date, today)
        if days_since_start <= 0:
            return 0.0

        expected = (days_since_start / 7.0) * (frequency or 0)
        if expected <= 0:
            return 0.0

        return max(0.0, min(completed_count / expected * 100, 100.0))

    @staticmethod
    def calculate_average_per_week(completed_count: int, start_date: date, today: date) -> float:
        if completed_count == 0:
            return 0.0
        weeks = max(1, DateService.days_between(start_date, today) // 7)
        return completed_count / weeks

    @staticmethod
    def _mode(counts: Sequence[int]) -> Optional[Tuple[int, int]]:
        """Index and count of the largest non-zero bucket, first one wins ties"""
        best = None
        for index, count in enumerate(counts):
            if count > 0 and (best is None or count > best[1]):
                best = (index, count)
        return best

    @staticmethod
    def _times(count: int) -> str:
        return f"{count} time" if count == 1 else f"{count} times"

    @staticmethod
    def weekday_counts(days: Iterable[date]) -> List[int]:
        counts = [0] * 7
        for d in days:
            counts[d.weekday()] += 1
        return counts

    @staticmethod
    def best_day_of_week(days: Sequence[date]) -> str:
        best = StatisticsService._mode(StatisticsService.weekday_counts(days))
        if best is None:
            return NO_DATA_PLACEHOLDER
        index, count = best
        return f"{WEEKDAY_NAMES[index]} ({StatisticsService._times(count)})"

    @staticmethod
    def most_productive_month(days: Sequence[date]) -> str:
        counts = [0] * 12
        for d in days:
            counts[d.month - 1] += 1
        best = StatisticsService._mode(counts)
        if best is None:
            return NO_DATA_PLACEHOLDER
        index, count = best
        return f"{MONTH_NAMES[index]} ({StatisticsService._times(count)})"

    @staticmethod
    def weekly_series(
        days: Sequence[date],
        today: date,
        weeks: int = WEEKLY_SERIES_LENGTH
    ) -> Dict[str, int]:
        """
        Completion counts for the last N Monday-based calendar weeks, oldest first.
        Built from calendar boundaries so empty weeks still get an entry.
        """
        series = {}
        current_week = DateService.week_start(today)
        for offset in range(weeks - 1, -1, -1):
            start = current_week - timedelta(weeks=offset)
            end = start + timedelta(days=6)
            label = f"{start:%d/%m} - {end:%d/%m}"
            series[label] = sum(1 for d in days if start <= d <= end)
        return series

    @staticmethod
    def monthly_series(
        days: Sequence[date],
        today: date,
        months: int = MONTHLY_SERIES_LENGTH
    ) -> Dict[str, int]:
        """Completion counts for the last N calendar months, oldest first"""
        series = {}
        for offset in range(months - 1, -1, -1):
            start = DateService.shift_months(today, -offset)
            end = DateService.month_end(start)
            label = f"{MONTH_NAMES[start.month - 1][:3]} {start.year}"
            series[label] = sum(1 for d in days if start <= d <= end)
        return series

    @staticmethod
    def daily_pattern(days: Sequence[date]) -> Dict[str, int]:
        counts = StatisticsService.weekday_counts(days)
        return dict(zip(WEEKDAY_SHORT_NAMES, counts))

    @staticmethod
    def generate_insights(
        success_rate: float,
        current_streak: int,
        week_completions: int,
        average_per_week: float,
        total_completions: int,
        frequency: int
    ) -> List[str]:
        """Rule table over the computed numbers, in rule priority order"""
        insights = []

        if success_rate >= SUCCESS_RATE_EXCELLENT:
            insights.append("🎯 Excellent work! You keep impressive consistency with this habit.")
        elif success_rate >= SUCCESS_RATE_GOOD:
            insights.append("📈 You are on the right track. Keep going to consolidate the habit.")
        elif success_rate >= SUCCESS_RATE_BUILDING:
            insights.append("💪 You are building the habit. Try to be more consistent this week.")
        else:
            insights.append("🌱 Every great habit starts with small steps. Don't give up.")

        if current_streak >= STREAK_INSIGHT_DAYS:
            insights.append(
                f"🔥 Impressive {current_streak}-day streak! The habit is becoming automatic."
            )

        if week_completions >= frequency:
            insights.append("✅ You met your frequency target this week. Fantastic!")
        else:
            remaining = frequency - week_completions
            day_word = "day" if remaining == 1 else "days"
            insights.append(
                f"📅 {remaining} more {day_word} this week to reach your frequency target."
            )

        if average_per_week < frequency * LOW_AVERAGE_RATIO:
            insights.append("💡 Consider adjusting your frequency target if it is hard to keep up.")

        if total_completions >= MILESTONE_COMPLETIONS:
            insights.append(
                f"🏆 Over {MILESTONE_COMPLETIONS} completions! Habits tend to become "
                f"automatic after about 66 days."
            )

        return insights

    # ===== USER STATISTICS =====

    def get_user_statistics(self, user_id: str) -> UserStats:
        """Build aggregate statistics across all of a user's habits"""
        today = self.clock.today()
        all_habits = self.habit_repo.get_all_for_user(self.db, user_id)
        active_habits = [h for h in all_habits if h.is_active]
        completions = self.completion_repo.get_completed_for_user(self.db, user_id)

        current_streak = max(
            (self.completion_service.current_streak_for(h) for h in active_habits),
            default=0
        )
        return self.build_user_statistics(
            all_habits, active_habits, completions, current_streak, today
        )

    @staticmethod
    def build_user_statistics(
        all_habits: Sequence[Habit],
        active_habits: Sequence[Habit],
        completions: Sequence[HabitCompletion],
        current_streak: int,
        today: date
    ) -> UserStats:
        days = [c.completion_date for c in completions]
        by_habit: Dict[int, List[date]] = defaultdict(list)
        for c in completions:
            by_habit[c.habit_id].append(c.completion_date)

        week_start = DateService.week_start(today)
        month_start = DateService.month_start(today)

        completion_rate = 0.0
        if active_habits:
            completion_rate = min(
                len(days) / (len(active_habits) * COMPLETION_RATE_DAYS) * 100, 100.0
            )

        categories = Counter(h.category for h in active_habits if h.category)
        success_rates = [
            (h.name, StatisticsService.calculate_success_rate(
                len(by_habit.get(h.id, [])), h.start_date, h.frequency, today
            ))
            for h in active_habits
        ]

        return UserStats(
            total_habits=len(all_habits),
            active_habits=len(active_habits),
            total_completions=len(days),
            today_completions=sum(1 for d in days if d == today),
            week_completions=sum(1 for d in days if week_start <= d <= today),
            month_completions=sum(1 for d in days if month_start <= d <= today),
            longest_streak=StreakService.longest_streak(completions),
            current_streak=current_streak,
            completion_rate=completion_rate,
            top_categories=dict(categories.most_common(TOP_CATEGORIES_LIMIT)),
            weekly_consistency=StatisticsService.weekly_consistency(days, today),
            most_successful_habit=StatisticsService.most_successful_habit(success_rates),
            most_difficult_habit=StatisticsService.most_difficult_habit(success_rates),
            improvement_rate=StatisticsService.improvement_rate(days, today),
            best_time_of_day=StatisticsService.best_time_of_day(completions),
            weekly_distribution=dict(
                zip(WEEKDAY_NAMES, StatisticsService.weekday_counts(days))
            ),
            perfect_weeks=StatisticsService.perfect_weeks(active_habits, by_habit, today),
            weekly_trend_data=StatisticsService.weekly_series(days, today)
        )

    @staticmethod
    def weekly_consistency(days: Sequence[date], today: date) -> float:
        """Share of the last 7 days (today included) with at least one completion"""
        window_start = today - timedelta(days=6)
        active_days = {d for d in days if window_start <= d <= today}
        return len(active_days) / 7.0 * 100

    @staticmethod
    def most_successful_habit(success_rates: Sequence[Tuple[str, float]]) -> str:
        if not success_rates:
            return NO_HABITS_PLACEHOLDER
        name, rate = max(success_rates, key=lambda item: item[1])
        return name if rate > 0 else NO_DATA_PLACEHOLDER

    @staticmethod
    def most_difficult_habit(success_rates: Sequence[Tuple[str, float]]) -> str:
        if not success_rates:
            return NO_HABITS_PLACEHOLDER
        # Only habits with some progress qualify
        with_progress = [item for item in success_rates if item[1] > 0]
        if not with_progress:
            return NO_DATA_PLACEHOLDER
        return min(with_progress, key=lambda item: item[1])[0]

    @staticmethod
    def improvement_rate(days: Sequence[date], today: date) -> float:
        """Month-to-date completions compared with the whole previous month, in percent"""
        current_start = DateService.month_start(today)
        previous_start = DateService.shift_months(today, -1)
        previous_end = current_start - timedelta(days=1)

        current = sum(1 for d in days if current_start <= d <= today)
        previous = sum(1 for d in days if previous_start <= d <= previous_end)

        if previous == 0:
            return 100.0 if current > 0 else 0.0
        return (current - previous) / previous * 100

    @staticmethod
    def best_time_of_day(completions: Sequence[HabitCompletion]) -> str:
        """Busiest period by the hour (UTC) completion records were created"""
        best_label, best_count = None, 0
        for label, start_hour, end_hour in TIME_OF_DAY_BUCKETS:
            count = sum(
                1 for c in completions
                if c.created_at is not None and start_hour <= c.created_at.hour < end_hour
            )
            if count > best_count:
                best_label, best_count = label, count
        return best_label or NO_DATA_PLACEHOLDER

    @staticmethod
    def perfect_weeks(
        habits: Sequence[Habit],
        days_by_habit: Dict[int, List[date]],
        today: date,
        windows: int = PERFECT_WEEKS_WINDOW
    ) -> int:
        """
        Count rolling 7-day windows ending today, today-7, ... in which every
        active habit reached its weekly frequency.
        """
        if not habits:
            return 0

        perfect = 0
        for weeks_back in range(windows):
            window_end = today - timedelta(weeks=weeks_back)
            window_start = window_end - timedelta(days=6)
            if all(
                sum(1 for d in days_by_habit.get(h.id, []) if window_start <= d <= window_end)
                >= h.frequency
                for h in habits
            ):
                perfect += 1
        return perfect
