"""
Habit HTTP routes.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from habit_engine.database import get_db
from habit_engine.engine import HabitEngine
from habit_engine.schemas import (
    HabitCreate, HabitUpdate, HabitResponse, HabitUsageResponse,
    CompletionResponse, ReorderFavoriteRequest, OperationResult, StreakResponse,
    HabitDetailStats, UserStats
)
from habit_engine.services.date_service import Clock, SystemClock
from habit_engine.services.limit_gate import AllowAllLimitGate, LimitGate

router = APIRouter(prefix="/api/habits", tags=["habits"])


def get_clock() -> Clock:
    return SystemClock()


def get_limit_gate() -> LimitGate:
    return AllowAllLimitGate()


def get_current_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    """Caller identity, set by the authentication layer in front of this service"""
    return x_user_id


def get_engine(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    limit_gate: LimitGate = Depends(get_limit_gate)
) -> HabitEngine:
    return HabitEngine(db, clock=clock, limit_gate=limit_gate)


@router.get("", response_model=List[HabitResponse])
def get_habits(
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    """Get the user's active habits"""
    return engine.get_habits(user_id)


@router.post("", response_model=HabitResponse, status_code=status.HTTP_201_CREATED)
def create_habit(
    habit: HabitCreate,
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    """Create a new habit (subject to the plan's habit limit)"""
    return engine.create_habit(user_id, habit)


@router.get("/usage", response_model=HabitUsageResponse)
def get_habit_usage(
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    """Active habit count and whether another habit may be created"""
    return engine.get_habit_usage(user_id)


@router.get("/favorites", response_model=List[HabitResponse])
def get_favorites(
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    """Get favorite habits in the user's order"""
    return engine.get_favorites(user_id)


@router.get("/stats", response_model=UserStats)
def get_user_statistics(
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    """Aggregate statistics across the user's habits"""
    return engine.get_user_statistics(user_id)


@router.get("/{habit_id}", response_model=HabitResponse)
def get_habit(
    habit_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    habit = engine.get_habit(habit_id, user_id)
    if not habit:
        raise HTTPException(status_code=404, detail="Habit not found")
    return habit


@router.put("/{habit_id}", response_model=HabitResponse)
def update_habit(
    habit_id: int,
    habit_update: HabitUpdate,
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    habit = engine.update_habit(habit_id, user_id, habit_update)
    if not habit:
        raise HTTPException(status_code=404, detail="Habit not found")
    return habit


@router.delete("/{habit_id}", status_code=status.HTTP_204_NO_CONTENT)
def archive_habit(
    habit_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    """Archive a habit; its completions are kept"""
    if not engine.archive_habit(habit_id, user_id):
        raise HTTPException(status_code=404, detail="Habit not found")


@router.post("/{habit_id}/toggle", response_model=OperationResult)
def toggle_completion(
    habit_id: int,
    day: Optional[str] = Query(None, alias="date"),
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    """Toggle completion for a day (today when no date is given)"""
    return {"ok": engine.toggle_completion(habit_id, day, user_id)}


@router.get("/{habit_id}/completions", response_model=List[CompletionResponse])
def get_completions(
    habit_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    """Completion records, most recent first"""
    return engine.get_completions(habit_id, user_id, start, end)


@router.get("/{habit_id}/streak", response_model=StreakResponse)
def get_current_streak(
    habit_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    return {"habit_id": habit_id, "current_streak": engine.get_current_streak(habit_id, user_id)}


@router.post("/{habit_id}/favorite", response_model=OperationResult)
def toggle_favorite(
    habit_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    return {"ok": engine.toggle_favorite(habit_id, user_id)}


@router.put("/{habit_id}/favorite-order", response_model=OperationResult)
def reorder_favorite(
    habit_id: int,
    request: ReorderFavoriteRequest,
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    """Move a favorite to a new 0-based position"""
    return {"ok": engine.reorder_favorite(habit_id, user_id, request.new_position)}


@router.get("/{habit_id}/stats", response_model=HabitDetailStats)
def get_habit_statistics(
    habit_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: HabitEngine = Depends(get_engine)
):
    stats = engine.get_habit_statistics(habit_id, user_id)
    if not stats:
        raise HTTPException(status_code=404, detail="Habit not found")
    return stats
