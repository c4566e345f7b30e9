"""FastAPI application entry point for the grade calculator.

Loads the persisted snapshot on startup (seeding the sample data when
configured and nothing is stored), wires best-effort persistence after
every mutation and mounts the grade routes.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.grades import router as grades_router
from src.config.settings import Environment, get_settings
from src.store.grade_store import GradeStore
from src.store.persistence import JsonFileSnapshotPersistence, persist_on_change
from src.store.sample import sample_snapshot

APP_VERSION = "0.1.0"

settings = get_settings()

_LOG_NAME_TO_LEVEL: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# --- Structured logging ---
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if settings.ENVIRONMENT == Environment.DEV
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _LOG_NAME_TO_LEVEL[settings.LOG_LEVEL.value],
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


def build_store() -> GradeStore:
    """Create the application's store from persisted (or sample) data."""
    persistence = JsonFileSnapshotPersistence(settings.SNAPSHOT_PATH)
    snapshot = persistence.load()
    seeded = False
    if snapshot is None and settings.SEED_SAMPLE_DATA:
        snapshot = sample_snapshot()
        seeded = True
    store = GradeStore(snapshot)
    persist_on_change(store, persistence)
    logger.info(
        "grade_store_loaded",
        path=str(persistence.path),
        years=len(store.snapshot.years),
        seeded=seeded,
    )
    return store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.grade_store = build_store()
    yield


# --- FastAPI app ---
app = FastAPI(
    title="Grade Calculator API",
    description="Weighted degree grades and required-score targets.",
    version=APP_VERSION,
    lifespan=lifespan,
)

# --- CORS middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.ENVIRONMENT == Environment.DEV else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Routers ---
app.include_router(grades_router)


# --- Infrastructure Endpoints ---


@app.get("/health")
async def health_check() -> dict:
    """Liveness probe."""
    return {
        "status": "ok",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
    }


@app.get("/api/version")
async def get_version() -> dict[str, str]:
    """Return application name, version, and environment."""
    return {
        "name": "Grade Calculator",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
    }
