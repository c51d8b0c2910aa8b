"""
Tests for FavoritesService.

Tests cover:
1. Starring and unstarring habits
2. Reordering with clamped positions
3. Dense 1..N ordering after any sequence of operations
4. Rollback and conflicts when another session changes the list
"""
import pytest
from datetime import datetime
from unittest.mock import patch

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from habit_engine.services.favorites_service import FavoritesService
from habit_engine.repositories.habit_repository import HabitRepository
from habit_engine.constants import HABIT_STATUS_ARCHIVED
from habit_engine.exceptions import (
    HabitNotFoundException, NotFavoritedException, ValidationException,
    ConcurrencyConflictException, PersistenceException
)


def orders(favorites):
    return [(h.name, h.favorite_order) for h in favorites]


@pytest.fixture
def other_session(db_engine):
    """Second session on the same database, standing in for a concurrent request"""
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def three_favorites(db_session, habit_factory, user_id):
    """Habits A, B, C starred in that order"""
    service = FavoritesService(db_session)
    habits = [
        habit_factory(name=name, created_at=datetime(2024, 1, 1, 8, i))
        for i, name in enumerate("ABC")
    ]
    for habit in habits:
        service.toggle_favorite(habit.id, user_id)
    return habits


class TestToggleFavorite:
    """Tests for toggle_favorite function"""

    def test_star_appends_at_end(self, db_session, three_favorites, user_id):
        """Should number favorites in the order they were starred"""
        service = FavoritesService(db_session)

        assert orders(service.get_favorites(user_id)) == [("A", 1), ("B", 2), ("C", 3)]

    def test_unstar_closes_gap(self, db_session, three_favorites, user_id):
        """Should renumber the remaining favorites densely"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)

        habit = service.toggle_favorite(b.id, user_id)

        assert habit.is_favorite is False
        assert habit.favorite_order == 0
        assert orders(service.get_favorites(user_id)) == [("A", 1), ("C", 2)]

    def test_restar_goes_to_end(self, db_session, three_favorites, user_id):
        """A habit starred again is appended after the others"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)

        service.toggle_favorite(a.id, user_id)
        service.toggle_favorite(a.id, user_id)

        assert orders(service.get_favorites(user_id)) == [("B", 1), ("C", 2), ("A", 3)]

    def test_foreign_habit_rejected(self, db_session, habit_factory, other_user_id):
        """Should raise HabitNotFoundException for another user's habit"""
        habit = habit_factory()
        service = FavoritesService(db_session)

        with pytest.raises(HabitNotFoundException):
            service.toggle_favorite(habit.id, other_user_id)

        db_session.refresh(habit)
        assert habit.is_favorite is False

    def test_favorites_are_per_user(self, db_session, habit_factory, user_id, other_user_id):
        """Each user's list is numbered independently"""
        mine = habit_factory(name="Mine")
        theirs = habit_factory(name="Theirs", owner=other_user_id)
        service = FavoritesService(db_session)

        service.toggle_favorite(mine.id, user_id)
        service.toggle_favorite(theirs.id, other_user_id)

        assert orders(service.get_favorites(user_id)) == [("Mine", 1)]
        assert orders(service.get_favorites(other_user_id)) == [("Theirs", 1)]

    def test_archived_habit_cannot_be_starred(self, db_session, habit_factory, user_id):
        """Should raise ValidationException and leave the habit unstarred"""
        habit = habit_factory(status=HABIT_STATUS_ARCHIVED)
        service = FavoritesService(db_session)

        with pytest.raises(ValidationException):
            service.toggle_favorite(habit.id, user_id)

        db_session.refresh(habit)
        assert habit.is_favorite is False
        assert habit.favorite_order == 0


class TestReorder:
    """Tests for reorder function"""

    def test_move_last_to_front(self, db_session, three_favorites, user_id):
        """Moving C to position 0 gives C, A, B"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)

        service.reorder(c.id, user_id, 0)

        assert orders(service.get_favorites(user_id)) == [("C", 1), ("A", 2), ("B", 3)]

    def test_move_first_to_middle(self, db_session, three_favorites, user_id):
        """Moving A to position 1 gives B, A, C"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)

        service.reorder(a.id, user_id, 1)

        assert orders(service.get_favorites(user_id)) == [("B", 1), ("A", 2), ("C", 3)]

    def test_position_clamped_high(self, db_session, three_favorites, user_id):
        """Positions past the end move the habit to the end"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)

        service.reorder(a.id, user_id, 99)

        assert orders(service.get_favorites(user_id)) == [("B", 1), ("C", 2), ("A", 3)]

    def test_position_clamped_low(self, db_session, three_favorites, user_id):
        """Negative positions move the habit to the front"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)

        service.reorder(b.id, user_id, -5)

        assert orders(service.get_favorites(user_id)) == [("B", 1), ("A", 2), ("C", 3)]

    def test_same_position_is_noop(self, db_session, three_favorites, user_id):
        """Reordering into the current slot keeps the list unchanged"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)

        result = service.reorder(b.id, user_id, 1)

        assert orders(result) == [("A", 1), ("B", 2), ("C", 3)]

    def test_not_favorite_rejected(self, db_session, three_favorites, habit_factory, user_id):
        """Should raise NotFavoritedException for an unstarred habit"""
        plain = habit_factory(name="D")
        service = FavoritesService(db_session)

        with pytest.raises(NotFavoritedException):
            service.reorder(plain.id, user_id, 0)

        assert orders(service.get_favorites(user_id)) == [("A", 1), ("B", 2), ("C", 3)]

    def test_unknown_habit_rejected(self, db_session, user_id):
        """Should raise HabitNotFoundException for a missing habit"""
        service = FavoritesService(db_session)

        with pytest.raises(HabitNotFoundException):
            service.reorder(12345, user_id, 0)


class TestDenseOrdering:
    """Orders stay 1..N without gaps or duplicates"""

    def test_dense_after_mixed_sequence(self, db_session, habit_factory, user_id):
        """Any mix of star, unstar and reorder leaves 1..N"""
        service = FavoritesService(db_session)
        habits = [
            habit_factory(name=name, created_at=datetime(2024, 1, 1, 8, i))
            for i, name in enumerate("ABCDE")
        ]

        for habit in habits:
            service.toggle_favorite(habit.id, user_id)
        service.reorder(habits[4].id, user_id, 1)
        service.toggle_favorite(habits[0].id, user_id)
        service.reorder(habits[2].id, user_id, 0)
        service.toggle_favorite(habits[3].id, user_id)
        service.toggle_favorite(habits[0].id, user_id)

        favorites = service.get_favorites(user_id)
        assert [h.favorite_order for h in favorites] == list(range(1, len(favorites) + 1))
        assert [h.name for h in favorites] == ["C", "E", "B", "A"]

    def test_remove_from_favorites_renumbers(self, db_session, three_favorites, user_id):
        """remove_from_favorites closes the gap once committed"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)

        service.remove_from_favorites(a)
        db_session.commit()

        assert orders(service.get_favorites(user_id)) == [("B", 1), ("C", 2)]
        assert a.favorite_order == 0


class TestReorderRollback:
    """A failed reorder leaves the previous ordering in place"""

    def test_stale_commit_restores_order(self, db_session, three_favorites, user_id):
        """A version conflict raises and keeps A, B, C"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)

        with patch.object(db_session, "commit", side_effect=StaleDataError("row changed")):
            with pytest.raises(ConcurrencyConflictException):
                service.reorder(c.id, user_id, 0)

        assert orders(service.get_favorites(user_id)) == [("A", 1), ("B", 2), ("C", 3)]

    def test_storage_failure_restores_order(self, db_session, three_favorites, user_id):
        """A storage error raises and keeps A, B, C"""
        a, b, c = three_favorites
        service = FavoritesService(db_session)
        error = OperationalError("UPDATE habits", {}, Exception("database is locked"))

        with patch.object(db_session, "commit", side_effect=error):
            with pytest.raises(PersistenceException):
                service.reorder(a.id, user_id, 2)

        assert orders(service.get_favorites(user_id)) == [("A", 1), ("B", 2), ("C", 3)]


class TestConcurrentChanges:
    """Interleaved sessions never leave duplicate orders behind"""

    def test_interleaved_stars_stay_dense(self, db_session, other_session, habit_factory, user_id):
        """A star committed after the max was read still ends up numbered 1..N"""
        a = habit_factory(name="A")
        b = habit_factory(name="B")
        mine = FavoritesService(db_session)
        theirs = FavoritesService(other_session)
        read_max = HabitRepository.get_max_favorite_order

        def max_then_concurrent_star(db, owner):
            value = read_max(db, owner)
            theirs.toggle_favorite(b.id, owner)
            return value

        with patch.object(mine.habit_repo, "get_max_favorite_order", side_effect=max_then_concurrent_star):
            mine.toggle_favorite(a.id, user_id)

        favorites = mine.get_favorites(user_id)
        assert sorted(h.name for h in favorites) == ["A", "B"]
        assert [h.favorite_order for h in favorites] == [1, 2]

    def test_sibling_changed_mid_unstar_conflicts(self, db_session, other_session, three_favorites, user_id):
        """Renumbering a sibling another session just moved raises a conflict"""
        a, b, c = three_favorites
        mine = FavoritesService(db_session)
        theirs = FavoritesService(other_session)
        read_favorites = HabitRepository.get_favorites

        def favorites_then_concurrent_reorder(db, owner):
            current = read_favorites(db, owner)
            theirs.reorder(c.id, owner, 0)
            return current

        with patch.object(mine.habit_repo, "get_favorites", side_effect=favorites_then_concurrent_reorder):
            with pytest.raises(ConcurrencyConflictException):
                mine.toggle_favorite(a.id, user_id)

        assert orders(mine.get_favorites(user_id)) == [("C", 1), ("A", 2), ("B", 3)]
