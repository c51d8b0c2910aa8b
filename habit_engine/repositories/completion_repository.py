"""
Completion repository - Data access layer for HabitCompletion model.
Completions are never deleted; this repository only reads, inserts and updates.
"""
from datetime import date
from typing import Iterator, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_, select

from habit_engine.models import Habit, HabitCompletion


class CompletionRepository:
    """Repository for HabitCompletion data access"""

    @staticmethod
    def get_by_day(db: Session, habit_id: int, day: date) -> Optional[HabitCompletion]:
        """Get the completion record for a habit on a specific day"""
        return db.query(HabitCompletion).filter(
            and_(
                HabitCompletion.habit_id == habit_id,
                HabitCompletion.completion_date == day
            )
        ).first()

    @staticmethod
    def get_range(
        db: Session,
        habit_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[HabitCompletion]:
        """Get a habit's completion records within optional bounds, most recent first"""
        query = db.query(HabitCompletion).filter(HabitCompletion.habit_id == habit_id)

        if start is not None:
            query = query.filter(HabitCompletion.completion_date >= start)
        if end is not None:
            query = query.filter(HabitCompletion.completion_date <= end)

        return query.order_by(HabitCompletion.completion_date.desc()).all()

    @staticmethod
    def iter_completed_days_desc(db: Session, habit_id: int, up_to: date) -> Iterator[date]:
        """Yield completed days on or before up_to, most recent first, streaming rows"""
        statement = select(HabitCompletion.completion_date).where(
            and_(
                HabitCompletion.habit_id == habit_id,
                HabitCompletion.completed == True,
                HabitCompletion.completion_date <= up_to
            )
        ).order_by(HabitCompletion.completion_date.desc()).execution_options(yield_per=64)

        result = db.execute(statement)
        try:
            for completion_date in result.scalars():
                yield completion_date
        finally:
            result.close()

    @staticmethod
    def get_completed_for_habit(db: Session, habit_id: int) -> List[HabitCompletion]:
        """Get completed records for a habit, oldest first"""
        return db.query(HabitCompletion).filter(
            and_(
                HabitCompletion.habit_id == habit_id,
                HabitCompletion.completed == True
            )
        ).order_by(HabitCompletion.completion_date).all()

    @staticmethod
    def get_completed_for_user(db: Session, user_id: str) -> List[HabitCompletion]:
        """Get completed records across all of a user's habits, archived ones included"""
        return db.query(HabitCompletion).join(
            Habit, Habit.id == HabitCompletion.habit_id
        ).filter(
            and_(
                Habit.user_id == user_id,
                HabitCompletion.completed == True
            )
        ).order_by(HabitCompletion.completion_date).all()

    @staticmethod
    def create(db: Session, completion: HabitCompletion) -> HabitCompletion:
        """Create new completion record"""
        db.add(completion)
        db.commit()
        db.refresh(completion)
        return completion

    @staticmethod
    def update(db: Session, completion: HabitCompletion) -> HabitCompletion:
        """Update existing completion record"""
        db.commit()
        db.refresh(completion)
        return completion
