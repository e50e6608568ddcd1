"""
Review scheduling policies.

Three interchangeable policies share one interface, apply(state, outcome, now):

- ContinuousQualityPolicy: SM-2 for flashcards (quality 0-5)
- BinaryComprehensionPolicy: understood / not understood for video progress
- TieredDifficultyPolicy: easy / normal / difficult ladder for video reviews

Policies are pure. The caller resolves "now" and, for the tiered policy,
supplies the random source, so every result can be reproduced in tests.

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from loguru import logger

from .errors import UnknownPolicyError, ValidationError
from .models import (
    ComprehensionOutcome,
    Difficulty,
    DifficultyOutcome,
    PolicyType,
    QualityOutcome,
    ReviewState,
    ReviewStatus,
    ensure_utc,
)

# =============================================================================
# Policy interface
# =============================================================================


class ReviewPolicy(ABC):
    """Computes the next scheduling state from an outcome signal."""

    policy_type: PolicyType
    outcome_type: type

    def apply(self, state: ReviewState, outcome: object, now: datetime) -> ReviewState:
        """
        Apply an outcome to a state.

        Args:
            state: Current state (left untouched)
            outcome: Policy-specific outcome payload
            now: Review timestamp resolved by the caller

        Returns:
            New ReviewState

        Raises:
            ValidationError: outcome is of the wrong type or outside the
                policy's accepted domain
        """
        if state.policy_type != self.policy_type:
            raise ValidationError(
                f"{type(self).__name__} cannot schedule a {state.policy_type.value} state"
            )
        if not isinstance(outcome, self.outcome_type):
            raise ValidationError(
                f"{self.policy_type.value} expects {self.outcome_type.__name__}, "
                f"got {type(outcome).__name__}"
            )
        return self._apply(state, outcome, ensure_utc(now))

    @abstractmethod
    def _apply(self, state: ReviewState, outcome, now: datetime) -> ReviewState:
        ...


# =============================================================================
# Continuous-quality (SM-2)
# =============================================================================


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_easiness: float = 2.5
    minimum_easiness: float = 1.3
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review
    mastered_interval: int = 21  # Intervals this long count as mastered
    maximum_interval: int = 36500  # Cap so next_review_at stays a valid date


class ContinuousQualityPolicy(ReviewPolicy):
    """
    SM-2 spaced repetition for flashcards.

    Each card has:
    - Easiness Factor (EF): How easy the item is (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive correct recalls
    """

    policy_type = PolicyType.CONTINUOUS_QUALITY
    outcome_type = QualityOutcome

    def __init__(self, config: SM2Config | None = None):
        self.config = config or SM2Config()

    def _apply(self, state: ReviewState, outcome: QualityOutcome, now: datetime) -> ReviewState:
        grade = outcome.quality

        if grade < 3:
            # Failed - reset to beginning
            repetitions = 0
            interval = 0
        else:
            if state.repetition_count == 0:
                interval = self.config.first_interval
            elif state.repetition_count == 1:
                interval = self.config.second_interval
            else:
                # Grows with the ease factor from before this review
                interval = min(
                    round(state.interval_days * state.ease_factor),
                    self.config.maximum_interval,
                )
            repetitions = state.repetition_count + 1

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        ef_delta = 0.1 - (5 - grade) * (0.08 + (5 - grade) * 0.02)
        ease = max(self.config.minimum_easiness, state.ease_factor + ef_delta)

        status = (
            ReviewStatus.MASTERED
            if interval >= self.config.mastered_interval
            else ReviewStatus.IN_PROGRESS
        )

        return replace(
            state,
            ease_factor=ease,
            interval_days=interval,
            repetition_count=repetitions,
            next_review_at=now + timedelta(days=interval),
            last_reviewed_at=now,
            total_review_count=state.total_review_count + 1,
            status=status,
        )


# =============================================================================
# Binary-comprehension
# =============================================================================


@dataclass
class ComprehensionConfig:
    """Configuration for the understood / not-understood policy."""

    retry_delay_days: int = 2


class BinaryComprehensionPolicy(ReviewPolicy):
    """
    Two-outcome policy for watched videos.

    Understood videos leave the urgent rotation for the low-priority pool;
    anything else is retried after a fixed delay.
    """

    policy_type = PolicyType.BINARY_COMPREHENSION
    outcome_type = ComprehensionOutcome

    def __init__(self, config: ComprehensionConfig | None = None):
        self.config = config or ComprehensionConfig()

    def _apply(
        self, state: ReviewState, outcome: ComprehensionOutcome, now: datetime
    ) -> ReviewState:
        if outcome.understood:
            return replace(
                state,
                in_low_priority_pool=True,
                next_review_at=None,
                last_reviewed_at=now,
                total_review_count=state.total_review_count + 1,
                status=ReviewStatus.UNDERSTOOD,
            )

        return replace(
            state,
            repetition_count=state.repetition_count + 1,
            interval_days=self.config.retry_delay_days,
            next_review_at=now + timedelta(days=self.config.retry_delay_days),
            last_reviewed_at=now,
            total_review_count=state.total_review_count + 1,
            status=ReviewStatus.IN_PROGRESS,
        )


# =============================================================================
# Tiered-difficulty
# =============================================================================


@dataclass
class LadderConfig:
    """Configuration for the easy / normal / difficult ladder."""

    ladder: tuple[int, ...] = (1, 3, 7, 14, 30)
    difficult_base_days: int = 7
    difficult_jitter_days: int = 7  # Delay is drawn from [base, base + jitter)
    min_session_seconds: int = 30

    @property
    def max_level(self) -> int:
        return len(self.ladder) - 1


class TieredDifficultyPolicy(ReviewPolicy):
    """
    Ebbinghaus-style ladder for video reviews.

    - easy: no further automatic review
    - normal: climb one rung of the ladder (1, 3, 7, 14, 30 days)
    - difficult: back to rung 0 and a randomized 7-14 day delay, so many
      difficult videos reviewed together do not all come due on one day
    """

    policy_type = PolicyType.TIERED_DIFFICULTY
    outcome_type = DifficultyOutcome

    def __init__(self, config: LadderConfig | None = None, rng: random.Random | None = None):
        self.config = config or LadderConfig()
        self.rng = rng or random.Random()

    def _apply(self, state: ReviewState, outcome: DifficultyOutcome, now: datetime) -> ReviewState:
        if outcome.session_duration_seconds < self.config.min_session_seconds:
            raise ValidationError(
                f"Review session must be at least {self.config.min_session_seconds} seconds, "
                f"got {outcome.session_duration_seconds}"
            )

        level = self._clamp(state.repetition_count)

        if outcome.difficulty is Difficulty.EASY:
            delay_days = None
            status = ReviewStatus.MASTERED
        elif outcome.difficulty is Difficulty.DIFFICULT:
            level = 0
            delay_days = self.config.difficult_base_days + self.rng.randrange(
                0, max(1, self.config.difficult_jitter_days)
            )
            status = ReviewStatus.IN_PROGRESS
        else:
            # A first-ever review starts on rung 0 instead of climbing
            if state.total_review_count > 0:
                level = self._clamp(level + 1)
            delay_days = self.config.ladder[level]
            status = ReviewStatus.IN_PROGRESS

        logger.debug(
            f"Tiered review of {state.item_id}: {outcome.difficulty.value}, "
            f"level={level}, delay={delay_days}d"
        )

        return replace(
            state,
            repetition_count=level,
            interval_days=delay_days or 0,
            next_review_at=None if delay_days is None else now + timedelta(days=delay_days),
            last_reviewed_at=now,
            total_review_count=state.total_review_count + 1,
            total_review_duration_seconds=(
                state.total_review_duration_seconds + outcome.session_duration_seconds
            ),
            status=status,
        )

    def _clamp(self, level: int) -> int:
        return min(max(level, 0), self.config.max_level)


# =============================================================================
# Registry
# =============================================================================


class PolicyRegistry:
    """Dispatches a state to the policy named by its policy_type."""

    def __init__(self, policies: list[ReviewPolicy] | None = None):
        if policies is None:
            policies = [
                ContinuousQualityPolicy(),
                BinaryComprehensionPolicy(),
                TieredDifficultyPolicy(),
            ]
        self._policies: dict[PolicyType, ReviewPolicy] = {p.policy_type: p for p in policies}

    @classmethod
    def from_settings(cls, settings, rng: random.Random | None = None) -> PolicyRegistry:
        """Build the three policies from application Settings."""
        return cls(
            [
                ContinuousQualityPolicy(
                    SM2Config(
                        initial_easiness=settings.sm2_initial_ease,
                        minimum_easiness=settings.sm2_minimum_ease,
                        first_interval=settings.sm2_first_interval_days,
                        second_interval=settings.sm2_second_interval_days,
                        mastered_interval=settings.mastered_interval_days,
                        maximum_interval=settings.sm2_maximum_interval_days,
                    )
                ),
                BinaryComprehensionPolicy(
                    ComprehensionConfig(retry_delay_days=settings.retry_delay_days)
                ),
                TieredDifficultyPolicy(
                    LadderConfig(
                        ladder=tuple(settings.review_ladder_days),
                        difficult_base_days=settings.difficult_base_days,
                        difficult_jitter_days=settings.difficult_jitter_days,
                        min_session_seconds=settings.min_session_seconds,
                    ),
                    rng=rng,
                ),
            ]
        )

    def get(self, policy_type: PolicyType | str) -> ReviewPolicy:
        """
        Look up the policy for a policy type.

        Raises:
            UnknownPolicyError: no policy is registered under that name
        """
        try:
            key = PolicyType(policy_type)
        except ValueError as e:
            raise UnknownPolicyError(policy_type) from e
        if key not in self._policies:
            raise UnknownPolicyError(policy_type)
        return self._policies[key]

    def apply(self, state: ReviewState, outcome: object, now: datetime) -> ReviewState:
        return self.get(state.policy_type).apply(state, outcome, now)

    @property
    def initial_ease(self) -> float:
        policy = self._policies.get(PolicyType.CONTINUOUS_QUALITY)
        if isinstance(policy, ContinuousQualityPolicy):
            return policy.config.initial_easiness
        return SM2Config().initial_easiness
