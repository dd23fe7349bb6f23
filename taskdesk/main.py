"""taskdesk - Team task board with recurring tasks and overdue alerts."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from taskdesk.core.config import settings
from taskdesk.core.db_client import close_connection, init_db
from taskdesk.core.logging import configure_logfire, instrument_fastapi
from taskdesk.core.scheduler import start_scheduler, stop_scheduler
from taskdesk.interface.cron_router import router as cron_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    if settings.enable_scheduler:
        start_scheduler()
    else:
        logger.info("In-process scheduler disabled; relying on the cron endpoint")
    yield
    # Shutdown
    if settings.enable_scheduler:
        stop_scheduler()
    await close_connection()


app = FastAPI(
    title="taskdesk",
    description="Team task board with recurring tasks and overdue alerts",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(cron_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
