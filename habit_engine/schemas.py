from pydantic import BaseModel, Field, computed_field
from datetime import datetime, date
from typing import Dict, List, Optional

from habit_engine.constants import DEFAULT_COLOR_CODE, DEFAULT_ICON


class HabitBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = None
    frequency: int = Field(default=1, ge=1)  # Target completions per week
    target_count: Optional[int] = Field(default=None, ge=1)
    color_code: str = Field(default=DEFAULT_COLOR_CODE, max_length=20)
    icon: str = Field(default=DEFAULT_ICON, max_length=20)
    end_date: Optional[date] = None

class HabitCreate(HabitBase):
    start_date: Optional[datetime | date] = None  # Defaults to today (UTC)

class HabitUpdate(BaseModel):
    # start_date is deliberately absent: it never changes after creation
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = None
    frequency: Optional[int] = Field(None, ge=1)
    target_count: Optional[int] = Field(None, ge=1)
    color_code: Optional[str] = Field(None, max_length=20)
    icon: Optional[str] = Field(None, max_length=20)
    end_date: Optional[date] = None

class HabitResponse(HabitBase):
    id: int
    user_id: str
    start_date: date
    status: str
    created_at: datetime
    is_favorite: bool = False
    favorite_order: int = 0

    class Config:
        from_attributes = True

class HabitUsageResponse(BaseModel):
    active_habits: int
    can_create: bool


# Completion schemas
class CompletionResponse(BaseModel):
    id: int
    habit_id: int
    completion_date: date
    completed: bool
    notes: Optional[str] = None
    streak_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True

class ReorderFavoriteRequest(BaseModel):
    new_position: int  # 0-based, clamped to the list bounds

class OperationResult(BaseModel):
    ok: bool

class StreakResponse(BaseModel):
    habit_id: int
    current_streak: int


def _streak_emoji(streak: int) -> str:
    if streak >= 30:
        return "🔥"
    if streak >= 14:
        return "⚡"
    if streak >= 7:
        return "🌟"
    if streak >= 3:
        return "⭐"
    return "🌱"


# Statistics schemas
class HabitDetailStats(BaseModel):
    # Habit info
    habit_id: int
    habit_name: str
    habit_description: str = ""
    habit_icon: str = DEFAULT_ICON
    habit_color: str = DEFAULT_COLOR_CODE
    category: str = ""
    frequency: int
    target_count: Optional[int] = None
    start_date: date

    # Basic statistics
    total_completions: int = 0
    current_streak: int = 0
    longest_streak: int = 0

    # Completions by period
    today_completed: bool = False
    week_completions: int = 0
    month_completions: int = 0
    year_completions: int = 0

    # Advanced metrics
    average_completions_per_week: float = 0.0
    success_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    best_day_of_week: str = ""
    most_productive_month: str = ""

    # Chart series
    weekly_data: Dict[str, int] = Field(default_factory=dict)
    monthly_data: Dict[str, int] = Field(default_factory=dict)
    daily_completion_pattern: Dict[str, int] = Field(default_factory=dict)

    insights: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def success_rate_formatted(self) -> str:
        return f"{self.success_rate:.1f}%"

    @computed_field
    @property
    def average_completions_formatted(self) -> str:
        return f"{self.average_completions_per_week:.1f}"

    @computed_field
    @property
    def streak_emoji(self) -> str:
        return _streak_emoji(self.current_streak)

    @computed_field
    @property
    def consistency_level(self) -> str:
        if self.success_rate >= 90:
            return "Excellent"
        if self.success_rate >= 75:
            return "Very good"
        if self.success_rate >= 60:
            return "Good"
        if self.success_rate >= 40:
            return "Developing"
        return "Beginner"

class UserStats(BaseModel):
    total_habits: int = 0
    active_habits: int = 0
    total_completions: int = 0
    today_completions: int = 0
    week_completions: int = 0
    month_completions: int = 0
    longest_streak: int = 0
    current_streak: int = 0
    completion_rate: float = 0.0
    top_categories: Dict[str, int] = Field(default_factory=dict)

    weekly_consistency: float = 0.0
    most_successful_habit: str = ""
    most_difficult_habit: str = ""
    improvement_rate: float = 0.0
    best_time_of_day: str = ""
    weekly_distribution: Dict[str, int] = Field(default_factory=dict)
    perfect_weeks: int = 0
    weekly_trend_data: Dict[str, int] = Field(default_factory=dict)

    @computed_field
    @property
    def completion_rate_formatted(self) -> str:
        return f"{self.completion_rate:.1f}%"

    @computed_field
    @property
    def streak_emoji(self) -> str:
        return _streak_emoji(self.current_streak)
