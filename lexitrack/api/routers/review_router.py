"""
Review router.

Endpoints for recording review outcomes and reading the schedule:
- Outcome recording for each of the three policies
- Due queue (most overdue first)
- Next-video selection from a channel pool
- Stats, per-item history and the low-priority pool
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from config import get_settings
from lexitrack.api.dependencies import get_review_handler, get_review_store, http_error
from lexitrack.api.routers.items_router import ItemResponse
from lexitrack.db.store import ReviewStateStore
from lexitrack.scheduling import (
    CandidateSelector,
    ComprehensionOutcome,
    Difficulty,
    DifficultyOutcome,
    ItemKind,
    NotFoundError,
    PolicyType,
    QualityOutcome,
    ReviewEventHandler,
    ReviewState,
    ReviewStatus,
    SchedulingError,
    count_due,
    due_items,
)
from lexitrack.scheduling.models import ensure_utc, utcnow

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class QualityRequest(BaseModel):
    """SM-2 recall quality for a flashcard."""

    quality: int = Field(..., description="0 = blackout, 5 = perfect recall")
    reviewed_at: datetime | None = Field(None, description="Review time (defaults to now)")


class ComprehensionRequest(BaseModel):
    """Comprehension signal for a watched video."""

    understood: bool
    reviewed_at: datetime | None = None


class DifficultyRequest(BaseModel):
    """Difficulty rating and watch time for a video review."""

    difficulty: Difficulty
    session_duration_seconds: int = Field(..., ge=0, description="Seconds spent re-watching")
    reviewed_at: datetime | None = None


class SelectNextRequest(BaseModel):
    """Candidate pool for next-video selection: explicit ids or a whole channel."""

    item_ids: list[str] | None = None
    channel_id: str | None = None
    now: datetime | None = None


class ReviewStateResponse(BaseModel):
    """Response model for a review state."""

    item_id: str
    policy_type: PolicyType
    ease_factor: float
    interval_days: int
    repetition_count: int
    next_review_at: datetime | None
    last_reviewed_at: datetime | None
    total_review_count: int
    total_review_duration_seconds: int
    in_low_priority_pool: bool
    status: ReviewStatus
    version: int

    @classmethod
    def from_state(cls, state: ReviewState) -> ReviewStateResponse:
        return cls(
            item_id=state.item_id,
            policy_type=state.policy_type,
            ease_factor=state.ease_factor,
            interval_days=state.interval_days,
            repetition_count=state.repetition_count,
            next_review_at=state.next_review_at,
            last_reviewed_at=state.last_reviewed_at,
            total_review_count=state.total_review_count,
            total_review_duration_seconds=state.total_review_duration_seconds,
            in_low_priority_pool=state.in_low_priority_pool,
            status=state.status,
            version=state.version,
        )


class DueQueueResponse(BaseModel):
    """Response model for the due queue."""

    items: list[ReviewStateResponse]
    total_due: int


class SelectNextResponse(BaseModel):
    """Response model for next-video selection (item is null when nothing is left)."""

    item: ItemResponse | None
    pool_size: int


class ReviewHistoryEntry(BaseModel):
    """A single logged review."""

    reviewed_at: datetime
    policy_type: str
    outcome: dict[str, Any]
    session_duration_seconds: int | None
    next_review_before: datetime | None
    next_review_after: datetime | None


# ========================================
# Helpers
# ========================================


def _resolve_now(value: datetime | None) -> datetime:
    return ensure_utc(value) if value is not None else utcnow()


def _record(handler: ReviewEventHandler, item_id: str, build_outcome, reviewed_at) -> ReviewStateResponse:
    try:
        state = handler.record_outcome(item_id, build_outcome(), _resolve_now(reviewed_at))
    except SchedulingError as e:
        raise http_error(e)
    return ReviewStateResponse.from_state(state)


# ========================================
# Outcome Endpoints
# ========================================


@router.post("/{item_id}/quality", response_model=ReviewStateResponse, summary="Record flashcard recall")
def record_quality(
    item_id: str,
    request: QualityRequest,
    handler: ReviewEventHandler = Depends(get_review_handler),
) -> ReviewStateResponse:
    """Record an SM-2 quality grade (0-5) for a flashcard."""
    return _record(handler, item_id, lambda: QualityOutcome(request.quality), request.reviewed_at)


@router.post(
    "/{item_id}/comprehension",
    response_model=ReviewStateResponse,
    summary="Record video comprehension",
)
def record_comprehension(
    item_id: str,
    request: ComprehensionRequest,
    handler: ReviewEventHandler = Depends(get_review_handler),
) -> ReviewStateResponse:
    """
    Record whether a watched video was understood.

    Understood videos move to the low-priority pool; others come back after
    the retry delay.
    """
    return _record(
        handler, item_id, lambda: ComprehensionOutcome(request.understood), request.reviewed_at
    )


@router.post(
    "/{item_id}/difficulty",
    response_model=ReviewStateResponse,
    summary="Record video review difficulty",
)
def record_difficulty(
    item_id: str,
    request: DifficultyRequest,
    handler: ReviewEventHandler = Depends(get_review_handler),
) -> ReviewStateResponse:
    """Record an easy / normal / difficult rating with the session's watch time."""
    return _record(
        handler,
        item_id,
        lambda: DifficultyOutcome(request.difficulty, request.session_duration_seconds),
        request.reviewed_at,
    )


# ========================================
# Queue Endpoints
# ========================================


@router.get("/due", response_model=DueQueueResponse, summary="Get due queue")
def get_due_queue(
    policy_type: PolicyType | None = None,
    kind: ItemKind | None = None,
    limit: int | None = Query(None, description="Page size (defaults to settings)"),
    store: ReviewStateStore = Depends(get_review_store),
) -> DueQueueResponse:
    """Get states whose review time has passed, most overdue first."""
    now = utcnow()
    if limit is None:
        limit = get_settings().due_queue_default_limit

    try:
        states = due_items(store, now, policy_type=policy_type, kind=kind, limit=limit)
        total = count_due(store, now, policy_type=policy_type, kind=kind)
    except SchedulingError as e:
        raise http_error(e)

    return DueQueueResponse(
        items=[ReviewStateResponse.from_state(s) for s in states],
        total_due=total,
    )


@router.post("/select-next", response_model=SelectNextResponse, summary="Select next video")
def select_next(
    request: SelectNextRequest,
    store: ReviewStateStore = Depends(get_review_store),
) -> SelectNextResponse:
    """
    Pick the next video to present from a pool.

    The pool is either the given item ids or every item of a channel.
    Retry-due videos come first, then unseen ones, then anything not mastered.
    """
    try:
        if request.item_ids is not None:
            pool = []
            for item_id in request.item_ids:
                item = store.get_item(item_id)
                if item is None:
                    raise NotFoundError(item_id)
                pool.append(item)
        else:
            pool = store.list_items(channel_id=request.channel_id)

        choice = CandidateSelector().select_next_from_store(store, pool, _resolve_now(request.now))
    except SchedulingError as e:
        raise http_error(e)

    return SelectNextResponse(
        item=ItemResponse.from_item(choice) if choice is not None else None,
        pool_size=len(pool),
    )


@router.get("/stats", summary="Get review statistics")
def get_stats(store: ReviewStateStore = Depends(get_review_store)) -> dict[str, Any]:
    try:
        return store.get_stats(utcnow(), get_settings().mastered_interval_days)
    except SchedulingError as e:
        raise http_error(e)


@router.get(
    "/low-priority",
    response_model=list[ReviewStateResponse],
    summary="List low-priority pool",
)
def get_low_priority_pool(
    limit: int = Query(50, ge=1, le=500),
    store: ReviewStateStore = Depends(get_review_store),
) -> list[ReviewStateResponse]:
    """List understood videos kept for occasional reinforcement."""
    try:
        states = store.list_low_priority_pool(limit=limit)
    except SchedulingError as e:
        raise http_error(e)
    return [ReviewStateResponse.from_state(s) for s in states]


@router.delete(
    "/{item_id}/low-priority",
    response_model=ReviewStateResponse,
    summary="Release from low-priority pool",
)
def release_low_priority(
    item_id: str,
    handler: ReviewEventHandler = Depends(get_review_handler),
) -> ReviewStateResponse:
    try:
        state = handler.release_from_low_priority_pool(item_id)
    except SchedulingError as e:
        raise http_error(e)
    return ReviewStateResponse.from_state(state)


@router.get(
    "/{item_id}/history",
    response_model=list[ReviewHistoryEntry],
    summary="Get review history",
)
def get_history(
    item_id: str,
    limit: int = Query(10, ge=1, le=200),
    store: ReviewStateStore = Depends(get_review_store),
) -> list[ReviewHistoryEntry]:
    """Get logged reviews of an item, most recent first."""
    try:
        if store.get_item(item_id) is None:
            raise NotFoundError(item_id)
        records = store.get_review_history(item_id, limit=limit)
    except SchedulingError as e:
        raise http_error(e)

    return [
        ReviewHistoryEntry(
            reviewed_at=r.reviewed_at,
            policy_type=r.policy_type,
            outcome=r.outcome,
            session_duration_seconds=r.session_duration_seconds,
            next_review_before=r.next_review_before,
            next_review_after=r.next_review_after,
        )
        for r in records
    ]
