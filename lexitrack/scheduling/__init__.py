"""
Review scheduling core.

Decides when each learning item is next presented, based on the outcome of
its most recent review.

Components:
- Policies: SM-2 (flashcards), binary comprehension (video progress) and
  tiered difficulty (video reviews)
- ReviewEventHandler: atomic load-apply-store of review outcomes
- Due queue: most-overdue-first listing of items to review
- CandidateSelector: tiered pick of the next video from a channel pool
"""

from .due_queue import count_due, due_items
from .errors import (
    ConcurrencyConflictError,
    NotFoundError,
    SchedulingError,
    StoreUnavailableError,
    UnknownPolicyError,
    ValidationError,
)
from .handler import ReviewEventHandler
from .models import (
    ComprehensionOutcome,
    Difficulty,
    DifficultyOutcome,
    ItemKind,
    PolicyType,
    QualityOutcome,
    ReviewableItem,
    ReviewEvent,
    ReviewState,
    ReviewStatus,
)
from .policies import (
    BinaryComprehensionPolicy,
    ContinuousQualityPolicy,
    PolicyRegistry,
    TieredDifficultyPolicy,
)
from .selector import CandidateSelector

__all__ = [
    # Domain types
    "ItemKind",
    "PolicyType",
    "ReviewStatus",
    "Difficulty",
    "ReviewableItem",
    "ReviewState",
    "ReviewEvent",
    "QualityOutcome",
    "ComprehensionOutcome",
    "DifficultyOutcome",
    # Policies
    "ContinuousQualityPolicy",
    "BinaryComprehensionPolicy",
    "TieredDifficultyPolicy",
    "PolicyRegistry",
    # Orchestration and queries
    "ReviewEventHandler",
    "due_items",
    "count_due",
    "CandidateSelector",
    # Errors
    "SchedulingError",
    "ValidationError",
    "UnknownPolicyError",
    "NotFoundError",
    "ConcurrencyConflictError",
    "StoreUnavailableError",
]
