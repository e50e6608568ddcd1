"""
Review Event Handler.

Orchestrates "outcome recorded" events:
1. Load the item (NotFoundError if it does not exist)
2. Load its state, or start from a fresh default state
3. Apply the policy named by the state's policy_type
4. Write the new state with a version check and log the event
5. Retry from step 2 when the write lost a race
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING

from loguru import logger

from .errors import ConcurrencyConflictError, NotFoundError
from .models import ReviewableItem, ReviewEvent, ReviewState, ensure_utc
from .policies import PolicyRegistry

if TYPE_CHECKING:
    from lexitrack.db.store import ReviewStateStore

DEFAULT_MAX_ATTEMPTS = 3


class ReviewEventHandler:
    """Records review outcomes atomically against the review state store."""

    def __init__(
        self,
        store: ReviewStateStore,
        policies: PolicyRegistry | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        """
        Initialize the handler.

        Args:
            store: Review state store
            policies: Policy registry (creates the default policies if None)
            max_attempts: Load-modify-store attempts before a conflict is surfaced
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.policies = policies or PolicyRegistry()
        self.max_attempts = max_attempts

    @classmethod
    def from_settings(cls, store: ReviewStateStore, settings, rng=None) -> ReviewEventHandler:
        return cls(
            store,
            policies=PolicyRegistry.from_settings(settings, rng=rng),
            max_attempts=settings.max_conflict_retries,
        )

    def record_outcome(self, item_id: str, outcome: object, now: datetime) -> ReviewState:
        """
        Record an outcome for an item and persist the rescheduled state.

        Args:
            item_id: The reviewed item
            outcome: QualityOutcome, ComprehensionOutcome or DifficultyOutcome
            now: Review timestamp

        Returns:
            The persisted ReviewState

        Raises:
            NotFoundError: the item does not exist
            ValidationError: the policy rejected the outcome (nothing is written)
            ConcurrencyConflictError: every attempt lost a race
            StoreUnavailableError: the store could not be reached
        """
        now = ensure_utc(now)
        item = self._require_item(item_id)

        def reschedule(current: ReviewState) -> tuple[ReviewState, ReviewEvent]:
            new_state = self.policies.apply(current, outcome, now)
            return new_state, ReviewEvent(outcome=outcome, reviewed_at=now, previous=current)

        state = self._write_with_retry(item, reschedule)

        logger.debug(
            f"Recorded {type(outcome).__name__} for {item_id}: "
            f"next_review={state.next_review_at}, interval={state.interval_days}d, v{state.version}"
        )
        return state

    def release_from_low_priority_pool(self, item_id: str) -> ReviewState:
        """
        Take an understood item out of the reinforcement rotation.

        Raises:
            NotFoundError: the item does not exist or was never reviewed
        """
        item = self._require_item(item_id)

        def release(current: ReviewState) -> tuple[ReviewState, None]:
            if current.is_new:
                raise NotFoundError(item_id)
            return replace(current, in_low_priority_pool=False), None

        state = self._write_with_retry(item, release)
        logger.info(f"Released {item_id} from the low-priority pool")
        return state

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_item(self, item_id: str) -> ReviewableItem:
        item = self.store.get_item(item_id)
        if item is None:
            raise NotFoundError(item_id)
        return item

    def _load_or_default(self, item: ReviewableItem) -> ReviewState:
        state = self.store.get_state(item.id)
        if state is None:
            return ReviewState.fresh(item.id, item.policy_type, self.policies.initial_ease)
        return state

    def _write_with_retry(self, item: ReviewableItem, mutate) -> ReviewState:
        for attempt in range(1, self.max_attempts + 1):
            current = self._load_or_default(item)
            new_state, event = mutate(current)
            try:
                return self.store.save_state(new_state, event)
            except ConcurrencyConflictError as e:
                if self.store.get_item(item.id) is None:
                    raise NotFoundError(item.id) from e
                if attempt == self.max_attempts:
                    logger.warning(
                        f"Giving up on {item.id} after {attempt} conflicting writes"
                    )
                    raise ConcurrencyConflictError(
                        item.id, current.version, attempts=attempt
                    ) from e
                logger.warning(
                    f"Write conflict on {item.id} (attempt {attempt}/{self.max_attempts}), retrying"
                )
        raise AssertionError("unreachable")
