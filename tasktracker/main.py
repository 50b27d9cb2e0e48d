import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tasktracker.cache.layer import cache_layer
from tasktracker.core.config import get_settings
from tasktracker.core.exceptions import (
    AuthError,
    MissingTokenError,
    NotFoundError,
    TaskTrackerError,
    ValidationError,
)
from tasktracker.core.logging_config import configure_logging
from tasktracker.database import create_db_and_tables, dispose_engine
from tasktracker.routers import tasks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().log_level)
    await cache_layer.init_cache()
    await create_db_and_tables()
    yield
    await cache_layer.close()
    await dispose_engine()


app = FastAPI(
    title="Task Tracker API",
    description="Per-user task tracker with a Redis-backed listing cache",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(tasks.router, prefix="/api")


def _status_for(exc: TaskTrackerError) -> int:
    if isinstance(exc, MissingTokenError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, (AuthError, ValidationError)):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(TaskTrackerError)
async def task_tracker_exception_handler(request: Request, exc: TaskTrackerError):
    code = _status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
        return JSONResponse(status_code=code, content={"message": "Internal Server Error"})
    return JSONResponse(status_code=code, content={"message": exc.message})


@app.get("/")
async def root():
    return {
        "message": "Welcome to Task Tracker API",
        "docs": "/docs",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/health/cache")
async def cache_health():
    return cache_layer.get_stats()
