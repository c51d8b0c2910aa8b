"""
Tests for the HabitEngine facade.

Tests cover:
1. Boolean/None results for rejected caller input
2. Bounded retry on concurrency conflicts
3. Delegation to the underlying services
"""
import pytest
from datetime import date, timedelta
from unittest.mock import patch

from habit_engine.engine import HabitEngine
from habit_engine.schemas import HabitCreate, HabitUpdate
from habit_engine.constants import HABIT_STATUS_ARCHIVED
from habit_engine.exceptions import (
    ConcurrencyConflictException, HabitLimitReachedException, PersistenceException
)
from habit_engine.tests.conftest import StaticLimitGate


@pytest.fixture
def engine(db_session, clock):
    return HabitEngine(db_session, clock=clock, limit_gate=StaticLimitGate(True), max_retries=2)


class TestToggleCompletion:
    """Tests for toggle_completion"""

    def test_valid_toggle_returns_true(self, engine, habit_factory, user_id, today):
        """Should return True and record the completion"""
        habit = habit_factory()

        assert engine.toggle_completion(habit.id, today, user_id) is True
        assert engine.get_current_streak(habit.id, user_id) == 1

    def test_defaults_to_today(self, engine, habit_factory, user_id, today):
        """A missing day means today"""
        habit = habit_factory()

        engine.toggle_completion(habit.id, None, user_id)

        completions = engine.get_completions(habit.id, user_id)
        assert [c.completion_date for c in completions] == [today]

    def test_future_day_returns_false(self, engine, habit_factory, user_id, today):
        """Should return False and write nothing"""
        habit = habit_factory()

        assert engine.toggle_completion(habit.id, today + timedelta(days=1), user_id) is False
        assert engine.get_completions(habit.id, user_id) == []

    def test_before_start_returns_false(self, engine, habit_factory, user_id):
        """Should return False for a day before the habit start"""
        habit = habit_factory(start_date=date(2024, 3, 1))

        assert engine.toggle_completion(habit.id, date(2024, 2, 1), user_id) is False

    def test_foreign_habit_returns_false(self, engine, habit_factory, other_user_id, today):
        """Should return False for another user's habit"""
        habit = habit_factory()

        assert engine.toggle_completion(habit.id, today, other_user_id) is False

    def test_unparseable_day_returns_false(self, engine, habit_factory, user_id):
        """Should return False for a day that cannot be parsed"""
        habit = habit_factory()

        assert engine.toggle_completion(habit.id, "yesterday-ish", user_id) is False


class TestRetry:
    """Tests for conflict retry"""

    def test_conflict_retried_then_succeeds(self, engine, habit_factory, user_id, today):
        """A transient conflict is retried transparently"""
        habit = habit_factory()
        original = engine.completion_service.toggle
        calls = []

        def flaky(*args):
            calls.append(args)
            if len(calls) == 1:
                raise ConcurrencyConflictException("toggle", "lost race")
            return original(*args)

        with patch.object(engine.completion_service, "toggle", side_effect=flaky):
            assert engine.toggle_completion(habit.id, today, user_id) is True

        assert len(calls) == 2

    def test_persistent_conflict_propagates(self, engine, habit_factory, user_id, today):
        """Conflicts beyond max_retries surface to the caller"""
        habit = habit_factory()
        conflict = ConcurrencyConflictException("toggle", "lost race")

        with patch.object(engine.completion_service, "toggle", side_effect=conflict) as toggle:
            with pytest.raises(ConcurrencyConflictException):
                engine.toggle_completion(habit.id, today, user_id)

        assert toggle.call_count == 3

    def test_persistence_failure_not_retried(self, engine, habit_factory, user_id, today):
        """Storage failures propagate immediately"""
        habit = habit_factory()
        failure = PersistenceException("toggle", "disk full")

        with patch.object(engine.completion_service, "toggle", side_effect=failure) as toggle:
            with pytest.raises(PersistenceException):
                engine.toggle_completion(habit.id, today, user_id)

        assert toggle.call_count == 1


class TestFavorites:
    """Tests for favorites through the facade"""

    def test_toggle_and_reorder(self, engine, habit_factory, user_id):
        """Should report success and keep the requested order"""
        a = habit_factory(name="A")
        b = habit_factory(name="B")

        assert engine.toggle_favorite(a.id, user_id) is True
        assert engine.toggle_favorite(b.id, user_id) is True
        assert engine.reorder_favorite(b.id, user_id, 0) is True

        assert [h.name for h in engine.get_favorites(user_id)] == ["B", "A"]

    def test_reorder_non_favorite_returns_false(self, engine, habit_factory, user_id):
        """Should return False instead of raising"""
        habit = habit_factory()

        assert engine.reorder_favorite(habit.id, user_id, 0) is False

    def test_toggle_unknown_returns_false(self, engine, user_id):
        """Should return False for a missing habit"""
        assert engine.toggle_favorite(4242, user_id) is False

    def test_star_archived_returns_false(self, engine, habit_factory, user_id):
        """Should return False and leave an archived habit out of favorites"""
        habit = habit_factory(status=HABIT_STATUS_ARCHIVED)

        assert engine.toggle_favorite(habit.id, user_id) is False
        assert engine.get_favorites(user_id) == []


class TestReads:
    """Tests for reads of unknown habits"""

    def test_unknown_habit_reads(self, engine, user_id):
        """Unknown habits read as empty, zero or None"""
        assert engine.get_completions(4242, user_id) == []
        assert engine.get_current_streak(4242, user_id) == 0
        assert engine.get_habit_statistics(4242, user_id) is None
        assert engine.get_habit(4242, user_id) is None
        assert engine.update_habit(4242, user_id, HabitUpdate(name="X")) is None
        assert engine.archive_habit(4242, user_id) is False

    def test_user_statistics_available_for_new_user(self, engine, user_id):
        """A new user gets an all-zero aggregate"""
        stats = engine.get_user_statistics(user_id)

        assert stats.total_habits == 0


class TestHabits:
    """Tests for habit management through the facade"""

    def test_create_list_archive(self, engine, user_id):
        """Created habits are listed until archived"""
        habit = engine.create_habit(user_id, HabitCreate(name="Stretch"))

        assert [h.id for h in engine.get_habits(user_id)] == [habit.id]
        assert engine.get_active_habit_count(user_id) == 1
        assert engine.archive_habit(habit.id, user_id) is True
        assert engine.get_habits(user_id) == []

    def test_create_refused_by_gate(self, db_session, clock, user_id):
        """The gate's refusal propagates as HabitLimitReachedException"""
        engine = HabitEngine(db_session, clock=clock, limit_gate=StaticLimitGate(False))

        assert engine.can_create_habit(user_id) is False
        with pytest.raises(HabitLimitReachedException):
            engine.create_habit(user_id, HabitCreate(name="Stretch"))
