"""
Domain types for review scheduling.

ReviewState is the mutable scheduling record of a single reviewable item.
Policies never mutate a state in place; they return a copy built with
dataclasses.replace().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .errors import ValidationError

# =============================================================================
# Enums
# =============================================================================


class ItemKind(str, Enum):
    """Kinds of content eligible for spaced review."""

    FLASHCARD = "flashcard"
    VIDEO_PROGRESS = "video-progress"
    VIDEO_REVIEW = "video-review"


class PolicyType(str, Enum):
    """Scheduling policies. Each item kind is governed by exactly one."""

    CONTINUOUS_QUALITY = "continuous-quality"
    BINARY_COMPREHENSION = "binary-comprehension"
    TIERED_DIFFICULTY = "tiered-difficulty"

    @classmethod
    def for_kind(cls, kind: ItemKind) -> PolicyType:
        return _POLICY_BY_KIND[ItemKind(kind)]


_POLICY_BY_KIND = {
    ItemKind.FLASHCARD: PolicyType.CONTINUOUS_QUALITY,
    ItemKind.VIDEO_PROGRESS: PolicyType.BINARY_COMPREHENSION,
    ItemKind.VIDEO_REVIEW: PolicyType.TIERED_DIFFICULTY,
}


class ReviewStatus(str, Enum):
    """Learner-facing progress of an item."""

    UNWATCHED = "unwatched"
    IN_PROGRESS = "in_progress"
    UNDERSTOOD = "understood"
    MASTERED = "mastered"


class Difficulty(str, Enum):
    """Self-reported difficulty of a video review."""

    EASY = "easy"
    NORMAL = "normal"
    DIFFICULT = "difficult"


# =============================================================================
# Time helpers
# =============================================================================


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Items and states
# =============================================================================


@dataclass(frozen=True)
class ReviewableItem:
    """A vocabulary entry, a watched-video progress record, or a video review."""

    id: str
    kind: ItemKind
    created_at: datetime
    title: str | None = None
    channel_id: str | None = None

    @property
    def policy_type(self) -> PolicyType:
        return PolicyType.for_kind(self.kind)


@dataclass
class ReviewState:
    """Scheduling record for one reviewable item."""

    item_id: str
    policy_type: PolicyType
    ease_factor: float = 2.5
    interval_days: int = 0
    # Consecutive successes, retry count or ladder index depending on policy
    repetition_count: int = 0
    next_review_at: datetime | None = None
    last_reviewed_at: datetime | None = None
    total_review_count: int = 0
    total_review_duration_seconds: int = 0
    in_low_priority_pool: bool = False
    status: ReviewStatus = ReviewStatus.UNWATCHED
    # 0 means the state has never been persisted
    version: int = 0

    @classmethod
    def fresh(
        cls,
        item_id: str,
        policy_type: PolicyType,
        initial_ease: float = 2.5,
    ) -> ReviewState:
        """Default state for an item that has no review history yet."""
        return cls(item_id=item_id, policy_type=PolicyType(policy_type), ease_factor=initial_ease)

    @property
    def is_new(self) -> bool:
        return self.version == 0

    @property
    def repetition_level(self) -> int:
        """Ladder index (tiered-difficulty alias of repetition_count)."""
        return self.repetition_count

    @property
    def retry_count(self) -> int:
        """Retry count (binary-comprehension alias of repetition_count)."""
        return self.repetition_count

    def is_due(self, now: datetime) -> bool:
        """Check whether the item is scheduled and its review time has passed."""
        if self.next_review_at is None:
            return False
        return self.next_review_at <= ensure_utc(now)

    def days_overdue(self, now: datetime) -> int:
        """Whole days past the scheduled review time."""
        if self.next_review_at is None:
            return 0
        delta = ensure_utc(now) - self.next_review_at
        return max(0, delta.days)


# =============================================================================
# Outcome payloads
# =============================================================================


@dataclass(frozen=True)
class QualityOutcome:
    """SM-2 recall quality: 0 = total failure, 5 = perfect recall."""

    quality: int

    def __post_init__(self) -> None:
        if isinstance(self.quality, bool) or not isinstance(self.quality, int):
            raise ValidationError(f"Quality must be an integer, got {self.quality!r}")
        if not 0 <= self.quality <= 5:
            raise ValidationError(f"Quality must be between 0 and 5, got {self.quality}")


@dataclass(frozen=True)
class ComprehensionOutcome:
    """Whether the learner understood the video."""

    understood: bool

    def __post_init__(self) -> None:
        if not isinstance(self.understood, bool):
            raise ValidationError(f"understood must be a boolean, got {self.understood!r}")


@dataclass(frozen=True)
class DifficultyOutcome:
    """Difficulty rating of a video review plus the watch time of the session."""

    difficulty: Difficulty
    session_duration_seconds: int = field(default=0)

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "difficulty", Difficulty(self.difficulty))
        except ValueError as e:
            raise ValidationError(f"Unknown difficulty: {self.difficulty!r}") from e
        if isinstance(self.session_duration_seconds, bool) or not isinstance(
            self.session_duration_seconds, int
        ):
            raise ValidationError(
                f"session_duration_seconds must be an integer, got {self.session_duration_seconds!r}"
            )
        if self.session_duration_seconds < 0:
            raise ValidationError("session_duration_seconds cannot be negative")


Outcome = QualityOutcome | ComprehensionOutcome | DifficultyOutcome


@dataclass(frozen=True)
class ReviewEvent:
    """An outcome to log alongside the state write it produced."""

    outcome: Outcome
    reviewed_at: datetime
    previous: ReviewState
