"""
Shared fixtures for habit engine tests.
Each test gets a fresh in-memory SQLite database and a fixed clock.
"""
import os
import tempfile

# Point the app at throwaway storage before any habit_engine module is imported
os.environ.setdefault("HABIT_ENGINE_DATABASE_URL", "sqlite://")
os.environ.setdefault("HABIT_ENGINE_LOG_DIR", tempfile.mkdtemp(prefix="habit-engine-logs-"))

import pytest
from datetime import date, datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from habit_engine.database import Base
from habit_engine.models import Habit, HabitCompletion
from habit_engine.constants import HABIT_STATUS_ACTIVE


class FixedClock:
    """Clock pinned to a given day; tests move it with advance()"""

    def __init__(self, day: date):
        self.day = day

    def today(self) -> date:
        return self.day

    def advance(self, days: int = 1) -> None:
        self.day = self.day + timedelta(days=days)


class StaticLimitGate:
    """LimitGate with a fixed answer that records who asked"""

    def __init__(self, allowed: bool = True):
        self.allowed = allowed
        self.calls = []

    def can_create_habit(self, user_id: str) -> bool:
        self.calls.append(user_id)
        return self.allowed


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Database session bound to the per-test in-memory database"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def today():
    return date(2024, 3, 14)  # Thursday


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)


@pytest.fixture
def clock(today):
    return FixedClock(today)


@pytest.fixture
def user_id():
    return "user-1"


@pytest.fixture
def other_user_id():
    return "user-2"


@pytest.fixture
def habit_factory(db_session, user_id):
    """Create habits directly in the database"""

    def _create(
        name: str = "Exercise",
        start_date: date = date(2024, 1, 1),
        frequency: int = 3,
        owner: str = None,
        **kwargs
    ) -> Habit:
        habit = Habit(
            user_id=owner or user_id,
            name=name,
            start_date=start_date,
            frequency=frequency,
            status=kwargs.pop("status", HABIT_STATUS_ACTIVE),
            created_at=kwargs.pop("created_at", datetime(2024, 1, 1, 8, 0, 0)),
            **kwargs
        )
        db_session.add(habit)
        db_session.commit()
        db_session.refresh(habit)
        return habit

    return _create


@pytest.fixture
def add_completion(db_session):
    """Insert completion rows directly, bypassing the toggle rules"""

    def _add(
        habit: Habit,
        day: date,
        completed: bool = True,
        streak_count: int = 1,
        created_at: datetime = None
    ) -> HabitCompletion:
        completion = HabitCompletion(
            habit_id=habit.id,
            completion_date=day,
            completed=completed,
            streak_count=streak_count if completed else 0,
            created_at=created_at or datetime.combine(day, datetime.min.time()).replace(hour=9)
        )
        db_session.add(completion)
        db_session.commit()
        db_session.refresh(completion)
        return completion

    return _add


@pytest.fixture
def add_run(add_completion):
    """Insert `length` consecutive completed days ending on last_day"""

    def _add(habit: Habit, last_day: date, length: int) -> None:
        for offset in range(length - 1, -1, -1):
            add_completion(habit, last_day - timedelta(days=offset), streak_count=length - offset)

    return _add


@pytest.fixture
def limit_gate():
    return StaticLimitGate(allowed=True)


@pytest.fixture
def client(db_engine, clock, limit_gate):
    """TestClient wired to the per-test database, clock and limit gate"""
    from fastapi.testclient import TestClient

    from habit_engine.database import get_db
    from habit_engine.main import app
    from habit_engine.routes import get_clock, get_limit_gate

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_limit_gate] = lambda: limit_gate
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
