"""
Habit management service.
Handles habit creation (gated by the LimitGate), updates and archival.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from habit_engine.constants import HABIT_STATUS_ACTIVE, HABIT_STATUS_ARCHIVED
from habit_engine.exceptions import (
    HabitLimitReachedException, HabitNotFoundException,
    ConcurrencyConflictException, PersistenceException, ValidationException
)
from habit_engine.models import Habit, utcnow
from habit_engine.repositories.habit_repository import HabitRepository
from habit_engine.schemas import HabitCreate, HabitUpdate
from habit_engine.services.date_service import Clock, DateService, SystemClock
from habit_engine.services.favorites_service import FavoritesService
from habit_engine.services.limit_gate import AllowAllLimitGate, LimitGate

logger = logging.getLogger("habit_engine.habits")


class HabitService:
    """Service for habit management"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        limit_gate: Optional[LimitGate] = None
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.limit_gate = limit_gate or AllowAllLimitGate()
        self.habit_repo = HabitRepository()
        self.date_service = DateService()
        self.favorites_service = FavoritesService(db)

    def get_habits(self, user_id: str) -> List[Habit]:
        """Get the user's active habits, newest first"""
        return self.habit_repo.get_active_for_user(self.db, user_id)

    def get_habit(self, habit_id: int, user_id: str) -> Habit:
        """Get one of the user's habits, archived ones included"""
        habit = self.habit_repo.get_owned(self.db, habit_id, user_id)
        if not habit:
            raise HabitNotFoundException(habit_id)
        return habit

    def can_create_habit(self, user_id: str) -> bool:
        return self.limit_gate.can_create_habit(user_id)

    def get_active_count(self, user_id: str) -> int:
        return self.habit_repo.count_active(self.db, user_id)

    def create_habit(self, user_id: str, habit_data: HabitCreate) -> Habit:
        """
        Create a habit for the user.

        Owner and creation timestamp are stamped here, never taken from the
        caller. The start date is normalized to a UTC day and defaults to today.

        Raises:
            HabitLimitReachedException: The LimitGate refused another habit
            ValidationException: end_date precedes start_date
        """
        if not self.limit_gate.can_create_habit(user_id):
            logger.info(f"Habit creation refused for user {user_id}: limit reached")
            raise HabitLimitReachedException(user_id)

        data = habit_data.model_dump(exclude={"start_date"})
        if habit_data.start_date is not None:
            start_date = self.date_service.normalize_to_day(habit_data.start_date)
        else:
            start_date = self.clock.today()

        if data.get("end_date") is not None and data["end_date"] < start_date:
            raise ValidationException("end_date", "must not precede start_date")

        habit = Habit(
            **data,
            user_id=user_id,
            start_date=start_date,
            status=HABIT_STATUS_ACTIVE,
            created_at=utcnow()
        )
        try:
            habit = self.habit_repo.create(self.db, habit)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Habit creation failed for user {user_id}: {e}")
            raise PersistenceException("create_habit", str(e))

        logger.info(f"Habit {habit.id} created for user {user_id}")
        return habit

    def update_habit(self, habit_id: int, user_id: str, habit_update: HabitUpdate) -> Habit:
        """Update a habit's configuration; start_date is never touched"""
        habit = self.get_habit(habit_id, user_id)

        update_data = habit_update.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            if key in ("name", "frequency") and value is None:
                continue
            setattr(habit, key, value)

        if habit.end_date is not None and habit.end_date < habit.start_date:
            self.db.rollback()
            raise ValidationException("end_date", "must not precede start_date")

        return self._save(habit, "update_habit")

    def archive_habit(self, habit_id: int, user_id: str) -> Habit:
        """
        Soft-delete a habit.

        The habit leaves the favorites list (which is renumbered) and all of
        its completions stay in place for history and statistics.
        """
        habit = self.get_habit(habit_id, user_id)
        if habit.status == HABIT_STATUS_ARCHIVED:
            return habit

        self.favorites_service.remove_from_favorites(habit)
        habit.status = HABIT_STATUS_ARCHIVED
        habit = self._save(habit, "archive_habit")
        logger.info(f"Habit {habit.id} archived for user {user_id}")
        return habit

    def _save(self, habit: Habit, operation: str) -> Habit:
        try:
            return self.habit_repo.update(self.db, habit)
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"{operation} conflict on habit {habit.id}: {e}")
            raise ConcurrencyConflictException(operation, str(e))
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{operation} failed on habit {habit.id}: {e}")
            raise PersistenceException(operation, str(e))
