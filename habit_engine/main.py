from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from pathlib import Path

from habit_engine.database import engine, Base
from habit_engine import models  # noqa: F401  Import all models to register them with Base
from habit_engine.auto_migrate import auto_migrate
from habit_engine.constants import (
    LOG_DIRECTORY, LOG_FILE, DEFAULT_LOG_DIRECTORY_DEV, CORS_ALLOWED_ORIGINS
)
from habit_engine.exceptions import (
    HabitEngineException, ValidationException, HabitNotFoundException,
    HabitLimitReachedException, ConcurrencyConflictException, PersistenceException
)
from habit_engine.routes import router as habits_router

# Create log directory if it doesn't exist (for development)
try:
    Path(LOG_DIRECTORY).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIRECTORY) / LOG_FILE
except PermissionError:
    # Fallback to local directory if no permissions for /var/log
    Path(DEFAULT_LOG_DIRECTORY_DEV).mkdir(parents=True, exist_ok=True)
    log_path = Path(DEFAULT_LOG_DIRECTORY_DEV) / LOG_FILE

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_path),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger("habit_engine")

# Create database tables
Base.metadata.create_all(bind=engine)

# Add columns introduced after the database was created
try:
    auto_migrate()
except Exception as e:
    logger.error(f"Auto-migration failed: {e}")
    # Don't crash the app - continue with existing schema

app = FastAPI(
    title="Habit Engine API",
    description="Habit completions, streaks, favorites and statistics",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(habits_router)


@app.exception_handler(HabitEngineException)
async def habit_engine_exception_handler(request: Request, exc: HabitEngineException):
    """Map engine exceptions to HTTP responses without leaking internals"""
    if isinstance(exc, HabitNotFoundException):
        code, detail = status.HTTP_404_NOT_FOUND, "Habit not found"
    elif isinstance(exc, ValidationException):
        code, detail = status.HTTP_400_BAD_REQUEST, str(exc)
    elif isinstance(exc, HabitLimitReachedException):
        code, detail = status.HTTP_403_FORBIDDEN, "Habit limit reached for your plan"
    elif isinstance(exc, ConcurrencyConflictException):
        code, detail = status.HTTP_409_CONFLICT, "Concurrent update, please retry"
    elif isinstance(exc, PersistenceException):
        logger.error(f"Persistence failure on {request.url.path}: {exc}")
        code, detail = status.HTTP_503_SERVICE_UNAVAILABLE, "Storage unavailable"
    else:
        logger.error(f"Unhandled engine error on {request.url.path}: {exc}")
        code, detail = status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error"
    return JSONResponse(status_code=code, content={"detail": detail})


@app.on_event("startup")
async def startup_event():
    logger.info(f"Habit Engine API started. Logging to: {log_path}")


# Health check (no identity required)
@app.get("/")
async def root():
    return {"message": "Habit Engine API", "status": "active"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("habit_engine.main:app", host="0.0.0.0", port=8000, reload=False)
