from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, ForeignKey, UniqueConstraint
)
from datetime import datetime, timezone

from habit_engine.database import Base
from habit_engine.constants import (
    HABIT_STATUS_ACTIVE, DEFAULT_COLOR_CODE, DEFAULT_ICON
)


def utcnow() -> datetime:
    """Naive UTC timestamp, the storage convention for created_at columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Habit(Base):
    __tablename__ = "habits"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String, nullable=True)
    category = Column(String, nullable=True)
    frequency = Column(Integer, nullable=False, default=1)  # Target completions per week
    target_count = Column(Integer, nullable=True)
    color_code = Column(String, default=DEFAULT_COLOR_CODE)
    icon = Column(String, default=DEFAULT_ICON)

    # Lifecycle
    start_date = Column(Date, nullable=False)  # Never changed after creation
    end_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default=HABIT_STATUS_ACTIVE)  # active, archived
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Favorites
    is_favorite = Column(Boolean, nullable=False, default=False)
    favorite_order = Column(Integer, nullable=False, default=0)  # 1..N among favorites, 0 otherwise

    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_active(self) -> bool:
        return self.status == HABIT_STATUS_ACTIVE


class HabitCompletion(Base):
    __tablename__ = "habit_completions"
    __table_args__ = (
        UniqueConstraint("habit_id", "completion_date", name="uq_habit_completion_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Plain foreign key: completions outlive their habit's archival
    habit_id = Column(Integer, ForeignKey("habits.id"), nullable=False, index=True)
    completion_date = Column(Date, nullable=False, index=True)  # UTC day, no time part
    completed = Column(Boolean, nullable=False, default=False)
    notes = Column(String, nullable=True)
    streak_count = Column(Integer, nullable=False, default=0)  # Snapshot as of this day
    created_at = Column(DateTime, nullable=False, default=utcnow)

    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
