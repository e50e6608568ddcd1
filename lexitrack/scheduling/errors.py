"""
Error taxonomy for the review-scheduling core.

ValidationError and NotFoundError are deterministic and shown to the caller
as-is. ConcurrencyConflictError is retried by the Review Event Handler and
only surfaces once retries are exhausted. StoreUnavailableError is fatal for
the call and never retried here.
"""

from __future__ import annotations


class SchedulingError(Exception):
    """Base class for all review-scheduling errors."""
    pass


class ValidationError(SchedulingError):
    """Raised when an outcome payload is outside the policy's accepted domain."""
    pass


class UnknownPolicyError(ValidationError):
    """Raised when a state names a policy type that has no registered policy."""

    def __init__(self, policy_type: object):
        super().__init__(f"Unknown policy type: {policy_type!r}")
        self.policy_type = policy_type


class NotFoundError(SchedulingError):
    """Raised when a reviewable item does not exist."""

    def __init__(self, item_id: str):
        super().__init__(f"Reviewable item not found: {item_id}")
        self.item_id = item_id


class ConcurrencyConflictError(SchedulingError):
    """Raised when an optimistic write lost a race with another writer."""

    def __init__(self, item_id: str, expected_version: int, attempts: int = 1):
        super().__init__(
            f"Concurrent update of {item_id} (expected version {expected_version}, "
            f"attempts={attempts})"
        )
        self.item_id = item_id
        self.expected_version = expected_version
        self.attempts = attempts


class StoreUnavailableError(SchedulingError):
    """Raised when the review state store cannot be reached."""
    pass
