"""routinely - goals, routines, and streaks."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.cache_client import local_cache
from src.core.logging import configure_logfire, instrument_fastapi
from src.interface.progress_router import get_controller
from src.interface.progress_router import router as progress_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    configure_logfire()
    logger.info("startup", extra={"cache": local_cache.get_health_status()})
    yield
    # Let background cleanups finish so their results are not lost
    await get_controller().wait_settled()


app = FastAPI(
    title="routinely",
    description="Goals, daily routines, and consistency streaks",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(progress_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy", "cache": local_cache.get_health_status()}, status_code=200)
