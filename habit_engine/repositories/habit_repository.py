"""
Habit repository - Data access layer for Habit model.
Handles all database queries related to habits.
"""
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_, func

from habit_engine.models import Habit
from habit_engine.constants import HABIT_STATUS_ACTIVE


class HabitRepository:
    """Repository for Habit data access"""

    @staticmethod
    def get_owned(db: Session, habit_id: int, user_id: str) -> Optional[Habit]:
        """Get habit by ID only if it belongs to the user"""
        return db.query(Habit).filter(
            and_(
                Habit.id == habit_id,
                Habit.user_id == user_id
            )
        ).first()

    @staticmethod
    def get_active_for_user(db: Session, user_id: str) -> List[Habit]:
        """Get the user's active habits, newest first"""
        return db.query(Habit).filter(
            and_(
                Habit.user_id == user_id,
                Habit.status == HABIT_STATUS_ACTIVE
            )
        ).order_by(Habit.created_at.desc(), Habit.id.desc()).all()

    @staticmethod
    def get_all_for_user(db: Session, user_id: str) -> List[Habit]:
        """Get all of the user's habits including archived ones"""
        return db.query(Habit).filter(Habit.user_id == user_id).order_by(Habit.id).all()

    @staticmethod
    def count_active(db: Session, user_id: str) -> int:
        """Count the user's active habits"""
        return db.query(Habit).filter(
            and_(
                Habit.user_id == user_id,
                Habit.status == HABIT_STATUS_ACTIVE
            )
        ).count()

    @staticmethod
    def get_favorites(db: Session, user_id: str) -> List[Habit]:
        """Get active favorite habits in favorite order, newest first on ties"""
        return db.query(Habit).filter(
            and_(
                Habit.user_id == user_id,
                Habit.status == HABIT_STATUS_ACTIVE,
                Habit.is_favorite == True
            )
        ).order_by(Habit.favorite_order, Habit.created_at.desc(), Habit.id.desc()).all()

    @staticmethod
    def get_max_favorite_order(db: Session, user_id: str) -> int:
        """Get the highest favorite_order among active favorites (0 if none)"""
        max_order = db.query(func.max(Habit.favorite_order)).filter(
            and_(
                Habit.user_id == user_id,
                Habit.status == HABIT_STATUS_ACTIVE,
                Habit.is_favorite == True
            )
        ).scalar()
        return max_order or 0

    @staticmethod
    def create(db: Session, habit: Habit) -> Habit:
        """Create a new habit"""
        db.add(habit)
        db.commit()
        db.refresh(habit)
        return habit

    @staticmethod
    def update(db: Session, habit: Habit) -> Habit:
        """Update existing habit"""
        db.commit()
        db.refresh(habit)
        return habit
