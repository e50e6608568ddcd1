"""API routers for lexitrack."""

from lexitrack.api.routers import items_router, review_router

__all__ = [
    "items_router",
    "review_router",
]
