"""
Application constants and environment-driven configuration.
"""
import os

# Environment configuration
DATABASE_URL = os.getenv("HABIT_ENGINE_DATABASE_URL", "sqlite:///./habits.db")
DEFAULT_LOG_DIRECTORY_PROD = "/var/log/habit-engine"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"
LOG_DIRECTORY = os.getenv("HABIT_ENGINE_LOG_DIR", DEFAULT_LOG_DIRECTORY_PROD)
LOG_FILE = os.getenv("HABIT_ENGINE_LOG_FILE", "habit_engine.log")
MAX_CONFLICT_RETRIES = int(os.getenv("HABIT_ENGINE_MAX_CONFLICT_RETRIES", "3"))
CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "HABIT_ENGINE_CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if origin.strip()
]

# Habit lifecycle
HABIT_STATUS_ACTIVE = "active"
HABIT_STATUS_ARCHIVED = "archived"

# Habit defaults
DEFAULT_COLOR_CODE = "#3B82F6"
DEFAULT_ICON = "📝"
COMPLETED_NOTE = "Completed"

# Statistics windows
WEEKLY_SERIES_LENGTH = 12
MONTHLY_SERIES_LENGTH = 6
PERFECT_WEEKS_WINDOW = 8
COMPLETION_RATE_DAYS = 30
TOP_CATEGORIES_LIMIT = 5

# Insight thresholds
SUCCESS_RATE_EXCELLENT = 80
SUCCESS_RATE_GOOD = 60
SUCCESS_RATE_BUILDING = 40
STREAK_INSIGHT_DAYS = 7
LOW_AVERAGE_RATIO = 0.7
MILESTONE_COMPLETIONS = 30

NO_DATA_PLACEHOLDER = "Not enough data"
NO_HABITS_PLACEHOLDER = "No habits"

WEEKDAY_NAMES = [
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"
]
WEEKDAY_SHORT_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December"
]
