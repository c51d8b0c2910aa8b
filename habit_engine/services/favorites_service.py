"""
Favorites service.
Keeps favorite_order dense (1..N) among a user's active favorite habits.
Every mutation renumbers the whole list inside one transaction.
"""
import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from habit_engine.exceptions import (
    HabitNotFoundException, NotFavoritedException, ValidationException,
    ConcurrencyConflictException, PersistenceException
)
from habit_engine.models import Habit
from habit_engine.repositories.habit_repository import HabitRepository

logger = logging.getLogger("habit_engine.favorites")


class FavoritesService:
    """Service for managing the user's favorite habits"""

    def __init__(self, db: Session):
        self.db = db
        self.habit_repo = HabitRepository()

    def get_favorites(self, user_id: str) -> List[Habit]:
        """Get active favorites in the user's order"""
        return self.habit_repo.get_favorites(self.db, user_id)

    def toggle_favorite(self, habit_id: int, user_id: str) -> Habit:
        """
        Star or unstar a habit.

        Starring appends the habit at max(order) + 1. Unstarring sets its
        order to 0 and closes the gap it leaves behind. Either way the whole
        list is renumbered in the same commit, so every sibling row passes
        its version check and a concurrent change surfaces as a conflict.

        Raises:
            HabitNotFoundException: Habit missing or owned by someone else
            ValidationException: Starring an archived habit
        """
        habit = self._get_owned(habit_id, user_id)

        if habit.is_favorite:
            habit.is_favorite = False
            habit.favorite_order = 0
            remaining = [h for h in self.habit_repo.get_favorites(self.db, user_id) if h.id != habit.id]
            self._renumber(remaining)
        else:
            if not habit.is_active:
                raise ValidationException("habit_id", f"habit {habit_id} is archived")
            habit.favorite_order = self.habit_repo.get_max_favorite_order(self.db, user_id) + 1
            habit.is_favorite = True
            self._flush("toggle_favorite")
            # Re-read with this star in place; stars committed since the max was read show up here
            self.db.expire_all()
            self._renumber(self.habit_repo.get_favorites(self.db, user_id))

        self._commit("toggle_favorite")
        self.db.refresh(habit)
        logger.info(
            f"Habit {habit.id} favorite={habit.is_favorite} (order {habit.favorite_order})"
        )
        return habit

    def reorder(self, habit_id: int, user_id: str, new_position: int) -> List[Habit]:
        """
        Move a favorite to a new 0-based position and renumber the list.

        The position is clamped to [0, count of the other favorites].

        Returns:
            Favorites in their new order

        Raises:
            HabitNotFoundException: Habit missing or owned by someone else
            NotFavoritedException: Habit is not a favorite
        """
        habit = self._get_owned(habit_id, user_id)
        favorites = self.habit_repo.get_favorites(self.db, user_id)

        if not habit.is_favorite or habit not in favorites:
            raise NotFavoritedException(habit_id)

        favorites.remove(habit)
        position = max(0, min(new_position, len(favorites)))
        favorites.insert(position, habit)
        self._renumber(favorites)

        self._commit("reorder_favorite")
        logger.info(f"Habit {habit.id} moved to favorite position {position + 1}")
        return favorites

    def remove_from_favorites(self, habit: Habit) -> None:
        """Unstar a habit without committing, closing the gap it leaves"""
        if not habit.is_favorite:
            return
        habit.is_favorite = False
        habit.favorite_order = 0
        remaining = [h for h in self.habit_repo.get_favorites(self.db, habit.user_id) if h.id != habit.id]
        self._renumber(remaining)

    def _get_owned(self, habit_id: int, user_id: str) -> Habit:
        habit = self.habit_repo.get_owned(self.db, habit_id, user_id)
        if not habit:
            raise HabitNotFoundException(habit_id)
        return habit

    @staticmethod
    def _renumber(favorites: List[Habit]) -> None:
        """Assign 1..N and mark every row dirty so each one is version-checked"""
        for index, favorite in enumerate(favorites, start=1):
            favorite.favorite_order = index
            flag_modified(favorite, "favorite_order")

    def _flush(self, operation: str) -> None:
        self._write(operation, self.db.flush)

    def _commit(self, operation: str) -> None:
        self._write(operation, self.db.commit)

    def _write(self, operation: str, action) -> None:
        try:
            action()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning(f"{operation} conflict: {e}")
            raise ConcurrencyConflictException(operation, str(e))
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{operation} failed: {e}")
            raise PersistenceException(operation, str(e))
