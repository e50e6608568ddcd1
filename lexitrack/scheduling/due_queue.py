"""
Due-Queue Query.

Read-only view of the items whose next review time has passed, most
overdue first. Items with no scheduled review (next_review_at is None) never
appear.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from loguru import logger

from .errors import ValidationError
from .models import ItemKind, PolicyType, ReviewState, ensure_utc

if TYPE_CHECKING:
    from lexitrack.db.store import ReviewStateStore


def _validated_filters(policy_type, kind) -> tuple[PolicyType | None, ItemKind | None]:
    try:
        policy = PolicyType(policy_type) if policy_type is not None else None
        item_kind = ItemKind(kind) if kind is not None else None
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return policy, item_kind


def due_items(
    store: ReviewStateStore,
    now: datetime,
    policy_type: PolicyType | str | None = None,
    kind: ItemKind | str | None = None,
    limit: int = 20,
) -> list[ReviewState]:
    """
    Get states that are due for review.

    Args:
        store: Review state store to scan
        now: Reference time
        policy_type: Only states governed by this policy
        kind: Only states of items of this kind
        limit: Maximum states to return (0 returns an empty list)

    Returns:
        States with next_review_at <= now, ascending by next_review_at
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise ValidationError(f"limit must be a non-negative integer, got {limit!r}")
    policy, item_kind = _validated_filters(policy_type, kind)
    if limit == 0:
        return []

    states = store.scan_due(ensure_utc(now), policy_type=policy, kind=item_kind, limit=limit)
    logger.debug(f"Due queue: {len(states)} states (policy={policy}, kind={item_kind}, limit={limit})")
    return states


def count_due(
    store: ReviewStateStore,
    now: datetime,
    policy_type: PolicyType | str | None = None,
    kind: ItemKind | str | None = None,
) -> int:
    """Count states that are due for review."""
    policy, item_kind = _validated_filters(policy_type, kind)
    return store.count_due(ensure_utc(now), policy_type=policy, kind=item_kind)

