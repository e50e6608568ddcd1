"""
Shared FastAPI dependencies and error translation.

Routers receive the store and handler through Depends() so tests can swap
them via app.dependency_overrides.
"""

from __future__ import annotations

import random

from fastapi import Depends, HTTPException
from loguru import logger

from config import get_settings
from lexitrack.db.store import ReviewStateStore, get_store
from lexitrack.scheduling import (
    ConcurrencyConflictError,
    NotFoundError,
    ReviewEventHandler,
    SchedulingError,
    StoreUnavailableError,
    ValidationError,
)

_STATUS_BY_ERROR: list[tuple[type[SchedulingError], int]] = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConcurrencyConflictError, 409),
    (StoreUnavailableError, 503),
]


def get_review_store() -> ReviewStateStore:
    return get_store()


def get_review_handler(store: ReviewStateStore = Depends(get_review_store)) -> ReviewEventHandler:
    return ReviewEventHandler.from_settings(store, get_settings(), rng=random.Random())


def http_error(exc: SchedulingError) -> HTTPException:
    """Translate a scheduling error into the matching HTTP error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status_code = 500

    if status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc}")
    else:
        logger.info(f"Rejected request ({status_code}): {exc}")
    return HTTPException(status_code=status_code, detail=str(exc))
