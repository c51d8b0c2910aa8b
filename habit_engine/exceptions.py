"""
Custom exceptions for the habit engine.
Provides specific exception types for better error handling and recovery.
"""
from datetime import date


class HabitEngineException(Exception):
    """Base exception for the habit engine"""
    pass


class ValidationException(HabitEngineException):
    """Raised when caller input fails validation"""
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Validation error for {field}: {message}")


class FutureDateException(ValidationException):
    """Raised when a completion is requested for a day after today"""
    def __init__(self, day: date, today: date):
        self.day = day
        self.today = today
        super().__init__("completion_date", f"{day} is after today ({today})")


class BeforeHabitStartException(ValidationException):
    """Raised when a completion is requested for a day before the habit started"""
    def __init__(self, day: date, start_date: date):
        self.day = day
        self.start_date = start_date
        super().__init__("completion_date", f"{day} is before habit start ({start_date})")


class NotFavoritedException(ValidationException):
    """Raised when reordering a habit that is not a favorite"""
    def __init__(self, habit_id: int):
        self.habit_id = habit_id
        super().__init__("habit_id", f"habit {habit_id} is not a favorite")


class HabitNotFoundException(HabitEngineException):
    """Raised when a habit does not exist or belongs to another user"""
    def __init__(self, habit_id: int):
        self.habit_id = habit_id
        super().__init__(f"Habit with ID {habit_id} not found")


class HabitLimitReachedException(HabitEngineException):
    """Raised when the user's plan does not allow another habit"""
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} cannot create more habits")


class ConcurrencyConflictException(HabitEngineException):
    """Raised when a concurrent write invalidated the current operation"""
    def __init__(self, operation: str, details: str):
        self.operation = operation
        self.details = details
        super().__init__(f"Concurrent modification during {operation}: {details}")


class PersistenceException(HabitEngineException):
    """Raised when database operations fail"""
    def __init__(self, operation: str, details: str):
        self.operation = operation
        self.details = details
        super().__init__(f"Database {operation} failed: {details}")
