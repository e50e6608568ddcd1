"""
FastAPI application for the lexitrack review service.

Provides REST API for:
- Reviewable item registration and deletion
- Recording review outcomes (flashcards, video progress, video reviews)
- Due queue and next-video selection
- Review history and stats
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from lexitrack import __version__
from lexitrack.db.database import check_connection, init_db
from lexitrack.log import configure_logging

settings = get_settings()


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        check_connection()
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    configure_logging(settings.log_level, settings.log_file)
    logger.info("Starting lexitrack service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    # Shutdown
    logger.info("Shutting down lexitrack service...")


app = FastAPI(
    title="lexitrack",
    description="""
    Spaced-review scheduling for a language-learning app.

    ## Policies

    - **Flashcards**: SM-2 with a 0-5 recall quality
    - **Video progress**: understood / not understood, retried after 2 days
    - **Video reviews**: easy / normal / difficult on a 1-3-7-14-30 day ladder
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "lexitrack",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = _check_database_health()

    result = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {"database": db_status},
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


@app.get("/config", tags=["Health"])
def get_config() -> dict[str, Any]:
    """Get current scheduling configuration (non-sensitive)."""
    return {
        "database": "sqlite" if settings.is_sqlite() else "postgresql",
        "scheduling": settings.get_scheduling_config(),
    }


# ========================================
# Import and mount routers
# ========================================

from lexitrack.api.routers import items_router, review_router  # noqa: E402

app.include_router(items_router.router, prefix="/api/items", tags=["Items"])
app.include_router(review_router.router, prefix="/api/reviews", tags=["Reviews"])
