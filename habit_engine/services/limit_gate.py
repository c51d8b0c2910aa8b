"""
Habit creation capability check.
The subscription policy lives outside the engine; the engine only asks.
"""
from typing import Protocol


class LimitGate(Protocol):
    """Answers whether a user may create one more habit"""

    def can_create_habit(self, user_id: str) -> bool:
        ...


class AllowAllLimitGate:
    """Gate used when no subscription service is wired in"""

    def can_create_habit(self, user_id: str) -> bool:
        return True
