"""
Candidate Selector.

Picks the next video to present from a channel's content pool using
priority tiers. The first non-empty tier wins and the pick within a tier is
uniformly random:

1. Retry tier: binary-comprehension items whose retry time has passed
2. Unseen tier: items without a state, or still marked unwatched
3. Fallback tier: anything not yet mastered
"""

from __future__ import annotations

import random
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, TypeVar

from loguru import logger

from .models import PolicyType, ReviewableItem, ReviewState, ReviewStatus, ensure_utc

if TYPE_CHECKING:
    from lexitrack.db.store import ReviewStateStore

T = TypeVar("T")


def _item_id(item) -> str:
    return item.id if isinstance(item, ReviewableItem) else getattr(item, "id", item)


class CandidateSelector:
    """Chooses the next item to present from a content pool."""

    TIERS = ("retry", "unseen", "fallback")

    def __init__(self, rng: random.Random | None = None):
        """
        Initialize the selector.

        Args:
            rng: Random source for tie-breaks (a fresh Random if None)
        """
        self.rng = rng or random.Random()

    def tiers(
        self,
        pool: Sequence[T],
        states: Mapping[str, ReviewState],
        now: datetime,
    ) -> dict[str, list[T]]:
        """
        Split a pool into the three priority tiers.

        Items are matched to states by id; pool entries may be ReviewableItems,
        objects with an ``id`` attribute, or plain id strings.
        """
        now = ensure_utc(now)
        retry: list[T] = []
        unseen: list[T] = []
        fallback: list[T] = []

        for item in pool:
            state = states.get(_item_id(item))

            if (
                state is not None
                and state.policy_type == PolicyType.BINARY_COMPREHENSION
                and state.is_due(now)
            ):
                retry.append(item)
            if state is None or state.status == ReviewStatus.UNWATCHED:
                unseen.append(item)
            if state is None or state.status != ReviewStatus.MASTERED:
                fallback.append(item)

        return {"retry": retry, "unseen": unseen, "fallback": fallback}

    def select_next(
        self,
        pool: Sequence[T],
        states: Mapping[str, ReviewState],
        now: datetime,
    ) -> T | None:
        """
        Pick the next item to present.

        Args:
            pool: Candidate items
            states: Review state by item id (items without history are absent)
            now: Reference time for retry eligibility

        Returns:
            The chosen item, or None when the pool is empty or fully mastered
        """
        if not pool:
            return None

        tiers = self.tiers(pool, states, now)
        for name in self.TIERS:
            candidates = tiers[name]
            if candidates:
                choice = self.rng.choice(candidates)
                logger.debug(
                    f"Selected {_item_id(choice)} from {name} tier ({len(candidates)} candidates)"
                )
                return choice

        logger.info(f"Every item in a pool of {len(pool)} is mastered")
        return None

    def select_next_from_store(
        self,
        store: ReviewStateStore,
        pool: Sequence[T],
        now: datetime,
    ) -> T | None:
        """Load the pool's states from the store and pick the next item."""
        states = store.get_states(_item_id(item) for item in pool)
        return self.select_next(pool, states, now)
