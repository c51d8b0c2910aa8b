"""
HabitEngine - the contract offered to the HTTP layer.

Caller errors (invalid dates, unknown or foreign habits, non-favorites) come
back as False/None. Concurrency conflicts are retried a bounded number of
times by re-running the whole operation; if they persist, or storage fails,
the exception propagates.
"""
import logging
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.orm import Session

from habit_engine.constants import MAX_CONFLICT_RETRIES
from habit_engine.exceptions import (
    ConcurrencyConflictException, HabitNotFoundException, ValidationException
)
from habit_engine.models import Habit, HabitCompletion
from habit_engine.schemas import HabitCreate, HabitDetailStats, HabitUpdate, UserStats
from habit_engine.services.completion_service import CompletionService
from habit_engine.services.date_service import Clock, Instant, SystemClock
from habit_engine.services.favorites_service import FavoritesService
from habit_engine.services.habit_service import HabitService
from habit_engine.services.limit_gate import LimitGate
from habit_engine.services.statistics_service import StatisticsService

logger = logging.getLogger("habit_engine.engine")

T = TypeVar("T")


class HabitEngine:
    """Facade over the completion, favorites, statistics and habit services"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        limit_gate: Optional[LimitGate] = None,
        max_retries: int = MAX_CONFLICT_RETRIES
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.max_retries = max(0, max_retries)
        self.habit_service = HabitService(db, self.clock, limit_gate)
        self.completion_service = CompletionService(db, self.clock)
        self.favorites_service = FavoritesService(db)
        self.statistics_service = StatisticsService(db, self.clock)

    def _with_retry(self, operation: str, action: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return action()
            except ConcurrencyConflictException:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(f"{operation} gave up after {attempt} conflicting attempts")
                    raise
                logger.info(f"{operation} conflicted, retrying ({attempt}/{self.max_retries})")

    # ===== COMPLETIONS =====

    def toggle_completion(self, habit_id: int, day: Optional[Instant], user_id: str) -> bool:
        """Toggle a day's completion; False when the day or habit is rejected"""
        if day is None:
            day = self.clock.today()
        try:
            self._with_retry(
                "toggle_completion",
                lambda: self.completion_service.toggle(habit_id, day, user_id)
            )
        except (ValidationException, HabitNotFoundException) as e:
            logger.info(f"Toggle rejected for habit {habit_id} by user {user_id}: {e}")
            return False
        return True

    def get_completions(
        self,
        habit_id: int,
        user_id: str,
        start: Optional[Instant] = None,
        end: Optional[Instant] = None
    ) -> List[HabitCompletion]:
        """Completion records, most recent first; empty for unknown habits"""
        try:
            return self.completion_service.get_completions(habit_id, user_id, start, end)
        except HabitNotFoundException:
            return []

    def get_current_streak(self, habit_id: int, user_id: str) -> int:
        """Current streak; 0 for unknown habits"""
        try:
            return self.completion_service.get_current_streak(habit_id, user_id)
        except HabitNotFoundException:
            return 0

    # ===== FAVORITES =====

    def toggle_favorite(self, habit_id: int, user_id: str) -> bool:
        try:
            self._with_retry(
                "toggle_favorite",
                lambda: self.favorites_service.toggle_favorite(habit_id, user_id)
            )
        except (ValidationException, HabitNotFoundException) as e:
            logger.info(f"Favorite toggle rejected for habit {habit_id} by user {user_id}: {e}")
            return False
        return True

    def reorder_favorite(self, habit_id: int, user_id: str, new_position: int) -> bool:
        try:
            self._with_retry(
                "reorder_favorite",
                lambda: self.favorites_service.reorder(habit_id, user_id, new_position)
            )
        except (ValidationException, HabitNotFoundException) as e:
            logger.info(f"Reorder rejected for habit {habit_id} by user {user_id}: {e}")
            return False
        return True

    def get_favorites(self, user_id: str) -> List[Habit]:
        return self.favorites_service.get_favorites(user_id)

    # ===== STATISTICS =====

    def get_habit_statistics(self, habit_id: int, user_id: str) -> Optional[HabitDetailStats]:
        try:
            return self.statistics_service.get_habit_statistics(habit_id, user_id)
        except HabitNotFoundException:
            return None

    def get_user_statistics(self, user_id: str) -> UserStats:
        return self.statistics_service.get_user_statistics(user_id)

    # ===== HABITS =====

    def create_habit(self, user_id: str, habit_data: HabitCreate) -> Habit:
        """Create a habit; raises HabitLimitReachedException when the gate refuses"""
        return self.habit_service.create_habit(user_id, habit_data)

    def update_habit(
        self, habit_id: int, user_id: str, habit_update: HabitUpdate
    ) -> Optional[Habit]:
        try:
            return self._with_retry(
                "update_habit",
                lambda: self.habit_service.update_habit(habit_id, user_id, habit_update)
            )
        except HabitNotFoundException:
            return None

    def archive_habit(self, habit_id: int, user_id: str) -> bool:
        try:
            self._with_retry(
                "archive_habit",
                lambda: self.habit_service.archive_habit(habit_id, user_id)
            )
        except HabitNotFoundException:
            return False
        return True

    def get_habits(self, user_id: str) -> List[Habit]:
        return self.habit_service.get_habits(user_id)

    def get_habit(self, habit_id: int, user_id: str) -> Optional[Habit]:
        try:
            return self.habit_service.get_habit(habit_id, user_id)
        except HabitNotFoundException:
            return None

    def can_create_habit(self, user_id: str) -> bool:
        return self.habit_service.can_create_habit(user_id)

    def get_active_habit_count(self, user_id: str) -> int:
        return self.habit_service.get_active_count(user_id)

    def get_habit_usage(self, user_id: str) -> dict:
        """Active habit count and whether the LimitGate allows one more"""
        return {
            "active_habits": self.get_active_habit_count(user_id),
            "can_create": self.can_create_habit(user_id)
        }
