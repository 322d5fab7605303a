"""
Tests for temporal decay.

Test Strategy
-------------
- Exponential and linear curves checked at known ages and at the floor
- Only chat chunks decay; temporally blind chunks are skipped and flagged
- Scene-aware decay ages earlier-scene chunks from the current scene start

Organization
------------
- TestDecayMultiplier: curve math
- TestApplyDecayToResults: per-result decay
- TestSceneAwareDecay: scene ages
- TestDecayForContext: context dispatch
- TestDecayValidationAndReporting: validation, curve and stats
"""

import pytest

from chunkrank.core.config.search import DecayConfig
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.context import Scene, SearchContext
from chunkrank.core.models.scored import ScoredChunk
from chunkrank.features.decay import (
    apply_decay_for_context,
    apply_decay_to_results,
    apply_scene_aware_decay,
    apply_temporal_decay,
    calculate_decay_multiplier,
    get_decay_stats,
    project_decay_curve,
    scene_aware_age,
    validate_decay_settings,
)


# ============================================================================
# Test Helpers
# ============================================================================


def enabled(**kwargs) -> DecayConfig:
    return DecayConfig(enabled=True, **kwargs)


def chat_result(chunk_id: str, message_id: int, score: float = 1.0, **fields) -> ScoredChunk:
    chunk = Chunk(id=chunk_id, text=f"message {chunk_id}", source="chat", message_id=message_id, **fields)
    return ScoredChunk(chunk=chunk, score=score)


# ============================================================================
# Test Classes
# ============================================================================


class TestDecayMultiplier:
    """Tests for calculate_decay_multiplier and apply_temporal_decay.

    Rule #4: Focused test class - tests only decay curves
    """

    @pytest.mark.parametrize(
        "age,expected",
        [(0, 1.0), (50, 0.5), (100, 0.3), (200, 0.3)],
    )
    def test_exponential(self, age, expected):
        assert calculate_decay_multiplier(age, enabled()) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "age,expected",
        [(10, 0.9), (30, 0.7), (100, 0.3)],
    )
    def test_linear(self, age, expected):
        assert calculate_decay_multiplier(age, enabled(mode="linear")) == pytest.approx(expected)

    def test_custom_floor(self):
        assert calculate_decay_multiplier(1000, enabled(min_relevance=0.0)) == pytest.approx(0.0, abs=1e-5)

    def test_disabled_leaves_score(self):
        assert apply_temporal_decay(0.8, 50, DecayConfig()) == 0.8

    def test_zero_age_leaves_score(self):
        assert apply_temporal_decay(0.8, 0, enabled()) == 0.8

    def test_applies_multiplier(self):
        assert apply_temporal_decay(0.8, 50, enabled()) == pytest.approx(0.4)


class TestApplyDecayToResults:
    """Tests for apply_decay_to_results.

    Rule #4: Focused test class - tests only per-result decay
    """

    def test_chat_chunk_decayed(self):
        decayed = apply_decay_to_results([chat_result("old", 50, 0.8)], 100, enabled())

        assert decayed[0].score == pytest.approx(0.4)
        assert decayed[0].original_score == 0.8
        assert decayed[0].decay_applied
        assert decayed[0].decay_multiplier == pytest.approx(0.5)
        assert decayed[0].message_age == 50

    def test_non_chat_chunk_untouched(self):
        result = ScoredChunk(chunk=Chunk(id="doc", text="doc"), score=0.8)

        assert apply_decay_to_results([result], 100, enabled())[0] is result

    def test_temporally_blind_flagged(self):
        decayed = apply_decay_to_results(
            [chat_result("blind", 1, 0.8, temporally_blind=True)], 100, enabled()
        )

        assert decayed[0].score == 0.8
        assert decayed[0].temporally_blind
        assert not decayed[0].decay_applied

    def test_future_message_clamped_to_zero_age(self):
        decayed = apply_decay_to_results([chat_result("future", 120, 0.8)], 100, enabled())

        assert decayed[0].score == 0.8
        assert decayed[0].message_age == 0
        assert not decayed[0].decay_applied

    def test_disabled(self):
        results = [chat_result("old", 1, 0.8)]

        assert apply_decay_to_results(results, 100, DecayConfig()) == results


class TestSceneAwareDecay:
    """Tests for scene-aware ages.

    Rule #4: Focused test class - tests only scene-aware decay
    """

    SCENES = (Scene(0, 10), Scene(40, 60))

    def test_earlier_scene_ages_from_scene_start(self):
        assert scene_aware_age(5, 50, self.SCENES) == 10

    def test_same_scene_uses_distance(self):
        assert scene_aware_age(45, 50, self.SCENES) == 5

    def test_outside_scenes_uses_distance(self):
        assert scene_aware_age(20, 50, self.SCENES) == 30

    def test_open_scene(self):
        assert scene_aware_age(5, 90, (Scene(0, 10), Scene(80))) == 10

    def test_results_decayed_with_scene_age(self):
        decayed = apply_scene_aware_decay(
            [chat_result("early", 5, 1.0)], 50, self.SCENES, enabled(half_life=10)
        )

        assert decayed[0].message_age == 10
        assert decayed[0].score == pytest.approx(0.5)


class TestDecayForContext:
    """Tests for apply_decay_for_context.

    Rule #4: Focused test class - tests only context dispatch
    """

    def test_scene_aware_when_enabled(self):
        context = SearchContext(current_message_id=50, scenes=(Scene(0, 10), Scene(40, 60)))

        decayed = apply_decay_for_context(
            [chat_result("early", 5)], context, enabled(half_life=10, scene_aware=True)
        )

        assert decayed[0].message_age == 10

    def test_plain_when_scene_aware_off(self):
        context = SearchContext(current_message_id=50, scenes=(Scene(0, 10), Scene(40, 60)))

        decayed = apply_decay_for_context([chat_result("early", 5)], context, enabled())

        assert decayed[0].message_age == 45

    def test_no_current_message(self):
        results = [chat_result("early", 5)]

        assert apply_decay_for_context(results, SearchContext(), enabled()) == results


class TestDecayValidationAndReporting:
    """Tests for decay validation, curve projection and stats.

    Rule #4: Focused test class - tests only reporting helpers
    """

    def test_disabled_settings_always_valid(self):
        assert validate_decay_settings({"enabled": False, "mode": "bogus"}).valid

    def test_invalid_raw_settings(self):
        result = validate_decay_settings(
            {"enabled": True, "mode": "linear", "linear_rate": 2, "min_relevance": -1}
        )

        assert not result.valid
        assert result.errors == [
            "Linear rate must be between 0 and 1",
            "Minimum relevance must be between 0 and 1",
        ]

    def test_bad_mode_and_half_life(self):
        result = validate_decay_settings({"enabled": True, "mode": "cubic"})

        assert result.errors == ['Decay mode must be "exponential" or "linear"']
        assert validate_decay_settings({"enabled": True, "half_life": 0}).errors == [
            "Half-life must be greater than 0"
        ]

    def test_config_object_accepted(self):
        assert validate_decay_settings(enabled()).valid

    def test_curve(self):
        curve = project_decay_curve(0.9, enabled())

        assert [p.age for p in curve] == [0, 10, 20, 50, 100, 200]
        assert curve[0].score == 0.9
        assert curve[3].score == pytest.approx(0.45)
        assert curve[5].score == pytest.approx(0.27)

    def test_stats(self):
        decayed = apply_decay_to_results(
            [chat_result("a", 50), chat_result("b", 100), chat_result("c", 150)],
            150,
            enabled(),
        )

        stats = get_decay_stats(decayed)

        assert stats["affected"] == 2
        assert stats["avg_reduction"] == pytest.approx(60.0)
        assert stats["max_reduction"] == pytest.approx(70.0)
        assert stats["avg_age"] == pytest.approx(75.0)

    def test_stats_nothing_decayed(self):
        assert get_decay_stats([])["affected"] == 0
