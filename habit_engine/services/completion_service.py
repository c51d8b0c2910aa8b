"""
Completion service.
Per-day completion state machine for a habit:

    NoRecord           --toggle--> RecordedComplete   (streak = streak(day-1) + 1)
    RecordedIncomplete --toggle--> RecordedComplete   (streak recomputed)
    RecordedComplete   --toggle--> RecordedIncomplete (streak = 0)

Invalid days (future, before habit start) are rejected before any write.
Other days' streak snapshots are never rewritten here.
"""
import logging
import threading
import weakref
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from habit_engine.constants import COMPLETED_NOTE
from habit_engine.exceptions import (
    HabitNotFoundException, ConcurrencyConflictException, PersistenceException
)
from habit_engine.models import Habit, HabitCompletion, utcnow
from habit_engine.repositories.habit_repository import HabitRepository
from habit_engine.repositories.completion_repository import CompletionRepository
from habit_engine.services.date_service import Clock, DateService, Instant, SystemClock
from habit_engine.services.streak_service import StreakService

logger = logging.getLogger("habit_engine.completions")

# One lock per habit serializes read-compute-write of streak snapshots in-process.
# Cross-process races are caught by the version column and the unique day key.
# Entries vanish once no toggle holds a reference to the lock.
_habit_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
_habit_locks_guard = threading.Lock()


def _habit_lock(habit_id: int) -> threading.Lock:
    with _habit_locks_guard:
        lock = _habit_locks.get(habit_id)
        if lock is None:
            lock = _habit_locks[habit_id] = threading.Lock()
        return lock


class CompletionService:
    """Service for toggling and reading habit completions"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.habit_repo = HabitRepository()
        self.completion_repo = CompletionRepository()
        self.date_service = DateService()
        self.streak_service = StreakService()

    def get_owned_habit(self, habit_id: int, user_id: str) -> Habit:
        """Get a habit owned by the user or raise HabitNotFoundException"""
        habit = self.habit_repo.get_owned(self.db, habit_id, user_id)
        if not habit:
            raise HabitNotFoundException(habit_id)
        return habit

    def toggle(self, habit_id: int, day: Instant, user_id: str) -> HabitCompletion:
        """
        Toggle the completion state of a habit for one day.

        Args:
            habit_id: Habit to toggle
            day: Day to toggle (any instant, normalized to its UTC day)
            user_id: Caller; must own the habit

        Returns:
            The created or updated completion record

        Raises:
            HabitNotFoundException: Habit missing or owned by someone else
            FutureDateException: Day is after today
            BeforeHabitStartException: Day is before the habit start
            ConcurrencyConflictException: A concurrent write won the race
            PersistenceException: Storage failure
        """
        habit = self.get_owned_habit(habit_id, user_id)
        today = self.clock.today()
        completion_date = self.date_service.validate_completion_date(
            day, habit.start_date, today
        )

        with _habit_lock(habit.id):
            try:
                return self._apply_toggle(habit, completion_date)
            except (StaleDataError, IntegrityError) as e:
                self.db.rollback()
                logger.warning(
                    f"Toggle conflict on habit {habit.id} for {completion_date}: {e}"
                )
                raise ConcurrencyConflictException("toggle", str(e))
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Toggle failed on habit {habit.id} for {completion_date}: {e}")
                raise PersistenceException("toggle", str(e))

    def _apply_toggle(self, habit: Habit, completion_date: date) -> HabitCompletion:
        existing = self.completion_repo.get_by_day(self.db, habit.id, completion_date)

        if existing is None:
            completion = HabitCompletion(
                habit_id=habit.id,
                completion_date=completion_date,
                completed=True,
                notes=COMPLETED_NOTE,
                streak_count=self._streak_before(habit, completion_date) + 1,
                created_at=utcnow()
            )
            completion = self.completion_repo.create(self.db, completion)
            logger.info(
                f"Habit {habit.id} completed for {completion_date} "
                f"(streak {completion.streak_count})"
            )
            return completion

        if existing.completed:
            existing.completed = False
            existing.notes = None
            existing.streak_count = 0
        else:
            existing.completed = True
            existing.notes = COMPLETED_NOTE
            existing.streak_count = self._streak_before(habit, completion_date) + 1

        completion = self.completion_repo.update(self.db, existing)
        logger.info(
            f"Habit {habit.id} set to completed={completion.completed} for {completion_date} "
            f"(streak {completion.streak_count})"
        )
        return completion

    def _streak_before(self, habit: Habit, day: date) -> int:
        """Streak ending the day before `day`, read from committed history"""
        previous = day - timedelta(days=1)
        days = self.completion_repo.iter_completed_days_desc(self.db, habit.id, previous)
        try:
            return self.streak_service.streak_from_descending(
                days, previous, start_day=habit.start_date
            )
        finally:
            days.close()

    def get_completions(
        self,
        habit_id: int,
        user_id: str,
        start: Optional[Instant] = None,
        end: Optional[Instant] = None
    ) -> List[HabitCompletion]:
        """Get a habit's completion records within optional bounds, most recent first"""
        habit = self.get_owned_habit(habit_id, user_id)
        start_day = self.date_service.normalize_to_day(start) if start is not None else None
        end_day = self.date_service.normalize_to_day(end) if end is not None else None
        return self.completion_repo.get_range(self.db, habit.id, start_day, end_day)

    def get_current_streak(self, habit_id: int, user_id: str) -> int:
        """Get the habit's streak as of today"""
        habit = self.get_owned_habit(habit_id, user_id)
        return self.current_streak_for(habit)

    def current_streak_for(self, habit: Habit) -> int:
        """Streak as of today for an already-loaded habit"""
        today = self.clock.today()
        days = self.completion_repo.iter_completed_days_desc(self.db, habit.id, today)
        try:
            return self.streak_service.streak_from_descending(
                days, today, start_day=habit.start_date, today=today
            )
        finally:
            days.close()
