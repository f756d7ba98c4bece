"""FOS Complaints Dashboard API - FastAPI Application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import init_db
from .core.version import get_version
from .routers import charts, fos, trends, version
from .services.scheduler import shutdown_scheduler, start_scheduler

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info(f"FOS Complaints Dashboard API v{get_version()} starting...")

    await init_db()
    start_scheduler()

    yield

    shutdown_scheduler()


app = FastAPI(
    title="FOS Complaints Dashboard",
    description="Complaint handling trends and Financial Ombudsman decisions",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(trends.router)
app.include_router(charts.router)
app.include_router(fos.router)
app.include_router(version.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
