"""
Unit tests for CandidateSelector tier precedence.

States are built in memory; no store is involved.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from lexitrack.scheduling import (
    CandidateSelector,
    ItemKind,
    PolicyType,
    ReviewableItem,
    ReviewState,
    ReviewStatus,
)

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def video(item_id: str) -> ReviewableItem:
    return ReviewableItem(id=item_id, kind=ItemKind.VIDEO_PROGRESS, created_at=CREATED, channel_id="ch-1")


def progress_state(item_id: str, status: ReviewStatus, next_review_at=None, **kwargs) -> ReviewState:
    return ReviewState(
        item_id=item_id,
        policy_type=PolicyType.BINARY_COMPREHENSION,
        status=status,
        next_review_at=next_review_at,
        version=1,
        **kwargs,
    )


def picks(pool, states, now, seeds=range(40)):
    return {
        getattr(CandidateSelector(random.Random(seed)).select_next(pool, states, now), "id", None)
        for seed in seeds
    }


class TestSelectNext:
    def test_empty_pool(self, now):
        assert CandidateSelector().select_next([], {}, now) is None

    def test_retry_tier_wins(self, now):
        pool = [video("retry"), video("unseen"), video("watching")]
        states = {
            "retry": progress_state("retry", ReviewStatus.IN_PROGRESS, now - timedelta(hours=1)),
            "watching": progress_state("watching", ReviewStatus.IN_PROGRESS, now + timedelta(days=1)),
        }
        assert picks(pool, states, now) == {"retry"}

    def test_retry_due_exactly_now(self, now):
        pool = [video("retry"), video("unseen")]
        states = {"retry": progress_state("retry", ReviewStatus.IN_PROGRESS, now)}
        assert picks(pool, states, now) == {"retry"}

    def test_unseen_before_fallback(self, now):
        pool = [video("new"), video("stale"), video("watching")]
        states = {
            "stale": progress_state("stale", ReviewStatus.UNWATCHED),
            "watching": progress_state("watching", ReviewStatus.IN_PROGRESS, now + timedelta(days=1)),
        }
        assert picks(pool, states, now) == {"new", "stale"}

    def test_fallback_skips_mastered(self, now):
        pool = [video("done"), video("understood"), video("watching")]
        states = {
            "done": progress_state("done", ReviewStatus.MASTERED),
            "understood": progress_state("understood", ReviewStatus.UNDERSTOOD, in_low_priority_pool=True),
            "watching": progress_state("watching", ReviewStatus.IN_PROGRESS, now + timedelta(days=1)),
        }
        assert picks(pool, states, now) == {"understood", "watching"}

    def test_all_mastered(self, now):
        pool = [video("a"), video("b")]
        states = {
            "a": progress_state("a", ReviewStatus.MASTERED),
            "b": progress_state("b", ReviewStatus.MASTERED),
        }
        assert CandidateSelector().select_next(pool, states, now) is None

    def test_due_state_of_other_policy_is_not_a_retry(self, now):
        pool = [video("reviewed"), video("unseen")]
        states = {
            "reviewed": ReviewState(
                item_id="reviewed",
                policy_type=PolicyType.TIERED_DIFFICULTY,
                status=ReviewStatus.IN_PROGRESS,
                next_review_at=now - timedelta(days=3),
                version=2,
            ),
        }
        assert picks(pool, states, now) == {"unseen"}

    def test_random_within_tier(self, now):
        pool = [video("a"), video("b"), video("c")]
        assert picks(pool, {}, now, seeds=range(100)) == {"a", "b", "c"}

    def test_seeded_choice_is_reproducible(self, now):
        pool = [video(str(i)) for i in range(10)]
        first = CandidateSelector(random.Random(7)).select_next(pool, {}, now)
        second = CandidateSelector(random.Random(7)).select_next(pool, {}, now)
        assert first == second

    def test_plain_ids_in_pool(self, now):
        states = {"x": progress_state("x", ReviewStatus.IN_PROGRESS, now - timedelta(days=1))}
        assert CandidateSelector().select_next(["x", "y"], states, now) == "x"


class TestTiers:
    @pytest.fixture
    def pool(self):
        return [video("retry"), video("new"), video("done")]

    def test_tier_membership(self, now, pool):
        states = {
            "retry": progress_state("retry", ReviewStatus.IN_PROGRESS, now - timedelta(days=1)),
            "done": progress_state("done", ReviewStatus.MASTERED),
        }
        tiers = CandidateSelector().tiers(pool, states, now)

        assert [i.id for i in tiers["retry"]] == ["retry"]
        assert [i.id for i in tiers["unseen"]] == ["new"]
        assert [i.id for i in tiers["fallback"]] == ["retry", "new"]
