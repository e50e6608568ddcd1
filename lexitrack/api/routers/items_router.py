"""
Items router.

Registry of reviewable items. Deleting an item removes its review state and
history with it.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from lexitrack.api.dependencies import get_review_store, http_error
from lexitrack.db.store import ReviewStateStore
from lexitrack.scheduling import ItemKind, NotFoundError, PolicyType, ReviewableItem, SchedulingError

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class ItemCreateRequest(BaseModel):
    """Request model for registering an item."""

    id: str = Field(..., min_length=1, description="Opaque item identifier")
    kind: ItemKind = Field(..., description="flashcard, video-progress or video-review")
    title: str | None = Field(None, description="Display title")
    channel_id: str | None = Field(None, description="Channel the video belongs to")
    created_at: datetime | None = Field(None, description="Creation time (defaults to now)")


class ItemResponse(BaseModel):
    """Response model for a reviewable item."""

    id: str
    kind: ItemKind
    policy_type: PolicyType
    title: str | None
    channel_id: str | None
    created_at: datetime

    @classmethod
    def from_item(cls, item: ReviewableItem) -> ItemResponse:
        return cls(
            id=item.id,
            kind=item.kind,
            policy_type=item.policy_type,
            title=item.title,
            channel_id=item.channel_id,
            created_at=item.created_at,
        )


# ========================================
# Item Endpoints
# ========================================


@router.post("", response_model=ItemResponse, status_code=201, summary="Register item")
def create_item(
    request: ItemCreateRequest,
    store: ReviewStateStore = Depends(get_review_store),
) -> ItemResponse:
    """Register a reviewable item, or update the title/channel of an existing one."""
    try:
        item = store.add_item(
            request.id,
            request.kind,
            created_at=request.created_at,
            title=request.title,
            channel_id=request.channel_id,
        )
    except SchedulingError as e:
        raise http_error(e)
    return ItemResponse.from_item(item)


@router.get("", response_model=list[ItemResponse], summary="List items")
def list_items(
    kind: ItemKind | None = None,
    channel_id: str | None = None,
    store: ReviewStateStore = Depends(get_review_store),
) -> list[ItemResponse]:
    """List items, optionally filtered by kind and channel."""
    try:
        items = store.list_items(kind=kind, channel_id=channel_id)
    except SchedulingError as e:
        raise http_error(e)
    return [ItemResponse.from_item(item) for item in items]


@router.get("/{item_id}", response_model=ItemResponse, summary="Get item")
def get_item(
    item_id: str,
    store: ReviewStateStore = Depends(get_review_store),
) -> ItemResponse:
    try:
        item = store.get_item(item_id)
        if item is None:
            raise NotFoundError(item_id)
    except SchedulingError as e:
        raise http_error(e)
    return ItemResponse.from_item(item)


@router.delete("/{item_id}", summary="Delete item")
def delete_item(
    item_id: str,
    store: ReviewStateStore = Depends(get_review_store),
) -> dict[str, str]:
    """Delete an item along with its review state and history."""
    try:
        deleted = store.delete_item(item_id)
    except SchedulingError as e:
        raise http_error(e)

    if not deleted:
        raise HTTPException(status_code=404, detail=f"Reviewable item not found: {item_id}")

    logger.info(f"Item {item_id} deleted via API")
    return {"status": "deleted", "id": item_id}
