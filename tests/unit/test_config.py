"""
Unit tests for Settings bounds and their wiring into the policies.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from config import Settings
from lexitrack.scheduling import PolicyRegistry, PolicyType, QualityOutcome, ReviewState


class TestSettingsBounds:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"sm2_minimum_ease": 1.0},
            {"min_session_seconds": 10},
            {"max_conflict_retries": 0},
            {"sm2_maximum_interval_days": 0},
            {"sm2_maximum_interval_days": 10**9},
            {"review_ladder_days": []},
        ],
    )
    def test_rejects_out_of_range(self, overrides):
        with pytest.raises(ValidationError):
            Settings(**overrides)

    def test_rejects_out_of_range_from_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_CONFLICT_RETRIES", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_defaults_are_valid(self):
        settings = Settings()
        assert settings.sm2_minimum_ease == pytest.approx(1.3)
        assert settings.min_session_seconds == 30
        assert settings.max_conflict_retries >= 1
        assert settings.sm2_maximum_interval_days == 36500


class TestMaximumInterval:
    def test_wired_into_flashcard_policy(self, now, rng):
        registry = PolicyRegistry.from_settings(Settings(sm2_maximum_interval_days=30), rng=rng)
        card = ReviewState(
            item_id="card-1",
            policy_type=PolicyType.CONTINUOUS_QUALITY,
            repetition_count=3,
            interval_days=20,
            ease_factor=2.5,
        )

        state = registry.apply(card, QualityOutcome(5), now)

        assert state.interval_days == 30
        assert state.next_review_at == now + timedelta(days=30)

    def test_scheduling_config_reports_cap(self):
        config = Settings(sm2_maximum_interval_days=400).get_scheduling_config()
        assert config["continuous_quality"]["maximum_interval_days"] == 400
