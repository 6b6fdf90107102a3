"""chomper - gamified task tracker backend."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.config import settings
from src.core.db_client import close_connection, init_db
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.scheduler import TaskScheduler
from src.interface.push_sender import build_dispatcher


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    await init_db()
    logger.info("Database initialized", extra={"db_path": settings.sqlite_db_path})

    scheduler = TaskScheduler(dispatcher=build_dispatcher())
    app.state.scheduler = scheduler
    scheduler.start()
    yield
    # Shutdown
    scheduler.stop()
    await close_connection()


app = FastAPI(
    title="chomper",
    description="Gamified task tracker with recurring tasks and a monster companion",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check() -> JSONResponse:
    """Scheduler health check endpoint with job statuses."""
    scheduler: TaskScheduler | None = getattr(app.state, "scheduler", None)
    if scheduler is None:
        return JSONResponse(content={"status": "stopped", "jobs": {}, "dead_letter_queue": []}, status_code=503)

    status = scheduler.get_status()
    dlq = status["dead_letter_queue"]

    has_failures = any(job["consecutive_failures"] > 0 for job in status["jobs"].values())
    overall_status = "degraded" if has_failures or not status["running"] else "healthy"
    if len(dlq) > 0:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "running": status["running"],
            "jobs": status["jobs"],
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )
