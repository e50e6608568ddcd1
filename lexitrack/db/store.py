"""
SQLAlchemy-backed Review State Store.

Provides persistence for:
- Reviewable items (with cascade delete of their state and history)
- One scheduling state per item, written with an optimistic version check
- Review event log for history and stats

Supports the three access paths the scheduling core needs: point read,
compare-and-set upsert, and a range scan on next_review_at <= now sorted
ascending.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from loguru import logger
from sqlalchemy import Engine, delete, func, select, update
from sqlalchemy.exc import DisconnectionError, IntegrityError, InterfaceError, OperationalError

from lexitrack.db.database import make_session_factory, session_scope
from lexitrack.db.models import ReviewableItemRow, ReviewEventRow, ReviewStateRow
from lexitrack.scheduling.errors import (
    ConcurrencyConflictError,
    StoreUnavailableError,
    UnknownPolicyError,
)
from lexitrack.scheduling.models import (
    DifficultyOutcome,
    ItemKind,
    PolicyType,
    ReviewableItem,
    ReviewEvent,
    ReviewState,
    ReviewStatus,
    ensure_utc,
)

# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ReviewRecord:
    """A single logged review event."""

    id: int
    item_id: str
    policy_type: str
    reviewed_at: datetime
    outcome: dict
    session_duration_seconds: int | None
    next_review_before: datetime | None
    next_review_after: datetime | None


# =============================================================================
# Conversion helpers
# =============================================================================


def _to_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def outcome_payload(outcome: object) -> dict:
    """JSON-ready dict describing an outcome payload."""
    data = {
        key: value.value if isinstance(value, Enum) else value
        for key, value in asdict(outcome).items()
    }
    data["type"] = type(outcome).__name__
    return data


def _item_from_row(row: ReviewableItemRow) -> ReviewableItem:
    return ReviewableItem(
        id=row.id,
        kind=ItemKind(row.kind),
        created_at=_from_db(row.created_at),
        title=row.title,
        channel_id=row.channel_id,
    )


def _state_from_row(row: ReviewStateRow) -> ReviewState:
    try:
        policy_type = PolicyType(row.policy_type)
    except ValueError as e:
        raise UnknownPolicyError(row.policy_type) from e

    return ReviewState(
        item_id=row.item_id,
        policy_type=policy_type,
        ease_factor=row.ease_factor,
        interval_days=row.interval_days,
        repetition_count=row.repetition_count,
        next_review_at=_from_db(row.next_review_at),
        last_reviewed_at=_from_db(row.last_reviewed_at),
        total_review_count=row.total_review_count,
        total_review_duration_seconds=row.total_review_duration_seconds,
        in_low_priority_pool=row.in_low_priority_pool,
        status=ReviewStatus(row.status),
        version=row.version,
    )


def _state_values(state: ReviewState) -> dict:
    return {
        "policy_type": PolicyType(state.policy_type).value,
        "ease_factor": state.ease_factor,
        "interval_days": state.interval_days,
        "repetition_count": state.repetition_count,
        "next_review_at": _to_db(state.next_review_at),
        "last_reviewed_at": _to_db(state.last_reviewed_at),
        "total_review_count": state.total_review_count,
        "total_review_duration_seconds": state.total_review_duration_seconds,
        "in_low_priority_pool": state.in_low_priority_pool,
        "status": ReviewStatus(state.status).value,
    }


# =============================================================================
# State Store
# =============================================================================


class ReviewStateStore:
    """
    Transactional key-value table of review states, keyed by item id.

    Handles:
    - Item registry (add, get, list, delete with cascade)
    - Review state point reads and compare-and-set writes
    - Due-queue range scans
    - Review log and aggregate stats
    """

    def __init__(self, engine: Engine | None = None):
        """
        Initialize the store.

        Args:
            engine: SQLAlchemy engine (defaults to the one configured by settings)
        """
        self._factory = make_session_factory(engine)

    @contextmanager
    def _session(self) -> Iterator:
        """Transactional session that reports connectivity failures as StoreUnavailableError."""
        try:
            with session_scope(self._factory) as session:
                yield session
        except (OperationalError, InterfaceError, DisconnectionError) as e:
            logger.error(f"Review state store unavailable: {e}")
            raise StoreUnavailableError(str(e)) from e

    # =========================================================================
    # Item Operations
    # =========================================================================

    def add_item(
        self,
        item_id: str,
        kind: ItemKind | str,
        created_at: datetime | None = None,
        title: str | None = None,
        channel_id: str | None = None,
    ) -> ReviewableItem:
        """
        Register an item, or refresh the title/channel of an existing one.

        Args:
            item_id: Opaque identifier
            kind: Item kind
            created_at: Creation time (defaults to now)
            title: Optional display title
            channel_id: Optional channel the item belongs to

        Returns:
            The stored ReviewableItem
        """
        kind = ItemKind(kind)
        created_at = created_at or datetime.now(timezone.utc)

        with self._session() as session:
            row = session.get(ReviewableItemRow, item_id)
            if row is None:
                row = ReviewableItemRow(
                    id=item_id,
                    kind=kind.value,
                    title=title,
                    channel_id=channel_id,
                    created_at=_to_db(created_at),
                )
                session.add(row)
                logger.debug(f"Registered {kind.value} item {item_id}")
            else:
                row.title = title if title is not None else row.title
                row.channel_id = channel_id if channel_id is not None else row.channel_id
            session.flush()
            return _item_from_row(row)

    def get_item(self, item_id: str) -> ReviewableItem | None:
        """Get an item by id, or None if it does not exist."""
        with self._session() as session:
            row = session.get(ReviewableItemRow, item_id)
            return _item_from_row(row) if row is not None else None

    def list_items(
        self,
        kind: ItemKind | str | None = None,
        channel_id: str | None = None,
    ) -> list[ReviewableItem]:
        """List items, optionally filtered by kind and channel (oldest first)."""
        stmt = select(ReviewableItemRow)
        if kind is not None:
            stmt = stmt.where(ReviewableItemRow.kind == ItemKind(kind).value)
        if channel_id is not None:
            stmt = stmt.where(ReviewableItemRow.channel_id == channel_id)
        stmt = stmt.order_by(ReviewableItemRow.created_at.asc(), ReviewableItemRow.id.asc())

        with self._session() as session:
            return [_item_from_row(row) for row in session.scalars(stmt)]

    def delete_item(self, item_id: str) -> bool:
        """
        Delete an item together with its state and review history.

        Returns:
            True if the item existed
        """
        with self._session() as session:
            row = session.get(ReviewableItemRow, item_id)
            if row is None:
                return False
            session.delete(row)
        logger.info(f"Deleted item {item_id} and its review history")
        return True

    # =========================================================================
    # Review State Operations
    # =========================================================================

    def get_state(self, item_id: str) -> ReviewState | None:
        """
        Get the review state of an item.

        Returns:
            ReviewState, or None if the item was never reviewed
        """
        with self._session() as session:
            row = session.get(ReviewStateRow, item_id)
            return _state_from_row(row) if row is not None else None

    def get_states(self, item_ids: Iterable[str]) -> dict[str, ReviewState]:
        """Get review states for several items; items without state are omitted."""
        ids = list(dict.fromkeys(item_ids))
        if not ids:
            return {}

        stmt = select(ReviewStateRow).where(ReviewStateRow.item_id.in_(ids))
        with self._session() as session:
            return {row.item_id: _state_from_row(row) for row in session.scalars(stmt)}

    def save_state(self, state: ReviewState, event: ReviewEvent | None = None) -> ReviewState:
        """
        Write a state if nobody else wrote it since it was read.

        A state with version 0 is inserted; any other version must match the
        stored row. The optional event is logged in the same transaction.

        Args:
            state: State to persist, carrying the version it was read at
            event: Outcome that produced this state

        Returns:
            The state with its new version

        Raises:
            ConcurrencyConflictError: the stored version moved on, or another
                writer inserted the row first
        """
        values = _state_values(state)

        with self._session() as session:
            if state.version == 0:
                session.add(ReviewStateRow(item_id=state.item_id, version=1, **values))
                try:
                    session.flush()
                except IntegrityError as e:
                    raise ConcurrencyConflictError(state.item_id, state.version) from e
                new_version = 1
            else:
                result = session.execute(
                    update(ReviewStateRow)
                    .where(
                        ReviewStateRow.item_id == state.item_id,
                        ReviewStateRow.version == state.version,
                    )
                    .values(version=state.version + 1, **values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ConcurrencyConflictError(state.item_id, state.version)
                new_version = state.version + 1

            if event is not None:
                session.add(self._event_row(state, event))

        return replace(state, version=new_version)

    @staticmethod
    def _event_row(state: ReviewState, event: ReviewEvent) -> ReviewEventRow:
        duration = (
            event.outcome.session_duration_seconds
            if isinstance(event.outcome, DifficultyOutcome)
            else None
        )
        return ReviewEventRow(
            item_id=state.item_id,
            policy_type=PolicyType(state.policy_type).value,
            reviewed_at=_to_db(event.reviewed_at),
            outcome=outcome_payload(event.outcome),
            session_duration_seconds=duration,
            next_review_before=_to_db(event.previous.next_review_at),
            next_review_after=_to_db(state.next_review_at),
            repetition_before=None if event.previous.is_new else event.previous.repetition_count,
            repetition_after=state.repetition_count,
        )

    # =========================================================================
    # Due Queue Scans
    # =========================================================================

    def _due_filter(self, stmt, now: datetime, policy_type=None, kind=None):
        stmt = stmt.where(
            ReviewStateRow.next_review_at.is_not(None),
            ReviewStateRow.next_review_at <= _to_db(now),
        )
        if policy_type is not None:
            stmt = stmt.where(ReviewStateRow.policy_type == PolicyType(policy_type).value)
        if kind is not None:
            stmt = stmt.join(ReviewStateRow.item).where(
                ReviewableItemRow.kind == ItemKind(kind).value
            )
        return stmt

    def scan_due(
        self,
        now: datetime,
        policy_type: PolicyType | str | None = None,
        kind: ItemKind | str | None = None,
        limit: int | None = None,
    ) -> list[ReviewState]:
        """
        Get states whose next review time has passed.

        Args:
            now: Reference time
            policy_type: Only states governed by this policy
            kind: Only states of items of this kind
            limit: Maximum states to return (None for all)

        Returns:
            States ordered by next_review_at ascending (ties by item id)
        """
        stmt = self._due_filter(select(ReviewStateRow), now, policy_type, kind)
        stmt = stmt.order_by(ReviewStateRow.next_review_at.asc(), ReviewStateRow.item_id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._session() as session:
            return [_state_from_row(row) for row in session.scalars(stmt)]

    def count_due(
        self,
        now: datetime,
        policy_type: PolicyType | str | None = None,
        kind: ItemKind | str | None = None,
    ) -> int:
        """Count states whose next review time has passed."""
        stmt = self._due_filter(
            select(func.count()).select_from(ReviewStateRow), now, policy_type, kind
        )
        with self._session() as session:
            return session.scalar(stmt) or 0

    def list_low_priority_pool(self, limit: int = 50) -> list[ReviewState]:
        """States moved to the reinforcement rotation, most recently reviewed first."""
        stmt = (
            select(ReviewStateRow)
            .where(ReviewStateRow.in_low_priority_pool.is_(True))
            .order_by(ReviewStateRow.last_reviewed_at.desc(), ReviewStateRow.item_id.asc())
            .limit(limit)
        )
        with self._session() as session:
            return [_state_from_row(row) for row in session.scalars(stmt)]

    # =========================================================================
    # Review Log Operations
    # =========================================================================

    def get_review_history(self, item_id: str, limit: int = 10) -> list[ReviewRecord]:
        """
        Get review history for an item.

        Returns:
            List of ReviewRecords, most recent first
        """
        stmt = (
            select(ReviewEventRow)
            .where(ReviewEventRow.item_id == item_id)
            .order_by(ReviewEventRow.reviewed_at.desc(), ReviewEventRow.id.desc())
            .limit(limit)
        )
        with self._session() as session:
            return [
                ReviewRecord(
                    id=row.id,
                    item_id=row.item_id,
                    policy_type=row.policy_type,
                    reviewed_at=_from_db(row.reviewed_at),
                    outcome=dict(row.outcome),
                    session_duration_seconds=row.session_duration_seconds,
                    next_review_before=_from_db(row.next_review_before),
                    next_review_after=_from_db(row.next_review_after),
                )
                for row in session.scalars(stmt)
            ]

    # =========================================================================
    # Stats & Analytics
    # =========================================================================

    def get_stats(self, now: datetime, mastered_interval_days: int = 21) -> dict:
        """
        Get overall learning statistics.

        Args:
            now: Reference time for due counts
            mastered_interval_days: Flashcards at or above this interval count as mastered

        Returns:
            Dictionary with aggregate stats per item kind
        """
        now_db = _to_db(now)

        def items_of(kind: ItemKind):
            return select(func.count()).select_from(ReviewableItemRow).where(
                ReviewableItemRow.kind == kind.value
            )

        def states_of(policy: PolicyType, *criteria):
            return (
                select(func.count())
                .select_from(ReviewStateRow)
                .where(ReviewStateRow.policy_type == policy.value, *criteria)
            )

        due = (ReviewStateRow.next_review_at.is_not(None), ReviewStateRow.next_review_at <= now_db)
        flashcard = PolicyType.CONTINUOUS_QUALITY
        progress = PolicyType.BINARY_COMPREHENSION
        tiered = PolicyType.TIERED_DIFFICULTY

        with self._session() as session:
            count = session.scalar
            return {
                "flashcards": {
                    "total": count(items_of(ItemKind.FLASHCARD)),
                    "due": count(states_of(flashcard, *due)),
                    "mastered": count(
                        states_of(flashcard, ReviewStateRow.interval_days >= mastered_interval_days)
                    ),
                    "learning": count(
                        states_of(
                            flashcard,
                            ReviewStateRow.interval_days > 0,
                            ReviewStateRow.interval_days < mastered_interval_days,
                        )
                    ),
                },
                "video_progress": {
                    "total": count(items_of(ItemKind.VIDEO_PROGRESS)),
                    "retry_due": count(states_of(progress, *due)),
                    "understood": count(
                        states_of(progress, ReviewStateRow.status == ReviewStatus.UNDERSTOOD.value)
                    ),
                    "in_low_priority_pool": count(
                        states_of(progress, ReviewStateRow.in_low_priority_pool.is_(True))
                    ),
                },
                "video_reviews": {
                    "total": count(items_of(ItemKind.VIDEO_REVIEW)),
                    "due": count(states_of(tiered, *due)),
                    "total_watch_seconds": count(
                        select(
                            func.coalesce(func.sum(ReviewStateRow.total_review_duration_seconds), 0)
                        ).where(ReviewStateRow.policy_type == tiered.value)
                    ),
                },
                "total_reviews": count(select(func.count()).select_from(ReviewEventRow)),
            }

    def reset(self) -> int:
        """
        Delete every review state and event, keeping the items.

        Returns:
            Number of states deleted
        """
        with self._session() as session:
            session.execute(delete(ReviewEventRow))
            result = session.execute(delete(ReviewStateRow))
            deleted = result.rowcount
        logger.warning(f"Review state reset: {deleted} states deleted")
        return deleted


_default_store: ReviewStateStore | None = None


def get_store() -> ReviewStateStore:
    """Get the store bound to the engine configured by settings."""
    global _default_store
    if _default_store is None:
        _default_store = ReviewStateStore()
    return _default_store
