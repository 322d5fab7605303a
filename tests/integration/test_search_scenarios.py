"""
End-to-end search scenarios.

Test Strategy
-------------
- Each scenario drives SearchOrchestrator with real stages and stub
  collaborators, asserting the ranked ids and scores a caller sees
- Files are loaded through the CLI loaders where a scenario starts from disk

Organization
------------
- TestKeywordScenario: dragon query over keyword-only chunks
- TestImportanceScenario: importance reorders equal matches
- TestRequiredGroupScenario: group member forced into results
- TestDecayScenario: chat chunks decay with scenes
- TestDualVectorScenario: summary chunks win under RRF
- TestSearchProperties: idempotence, monotonicity and boundaries
"""

from dataclasses import replace
from unittest.mock import Mock

import pytest

from chunkrank.cli.loaders import load_chunks, load_context
from chunkrank.core.config import Config
from chunkrank.core.models.chunk import Chunk, ChunkGroup
from chunkrank.core.models.context import Scene, SearchContext
from chunkrank.core.models.scored import ScoredChunk
from chunkrank.features.decay import scene_aware_age
from chunkrank.features.importance import apply_importance_weighting
from chunkrank.query.options import SearchOptions
from chunkrank.query.orchestrator import SearchOrchestrator
from chunkrank.retrieval.dual_vector import create_summary_chunks
from chunkrank.retrieval.fusion import reciprocal_rank_fusion


# ============================================================================
# Test Classes
# ============================================================================


class TestKeywordScenario:
    """Dragon query in keyword mode.

    Rule #4: Focused test class - tests only keyword ranking end to end
    """

    def test_only_dragon_matches(self, config, dragon_chunks):
        options = SearchOptions.from_config(config, search_mode="keyword", threshold=0.0)

        response = SearchOrchestrator(config).search("Tell me about the dragon", dragon_chunks, options)

        assert response.ids == ["dragon"]
        assert response.results[0].score == pytest.approx(1 / 3)

    def test_from_files(self, write_json, config):
        path = write_json(
            "chunks.json",
            [
                {"hash": "d", "text": "The dragon", "keywords": ["dragon", "wyrm"]},
                {"hash": "c", "text": "The castle", "keywords": ["castle"]},
            ],
        )

        response = SearchOrchestrator(config).auto_search("dragon wyrm", load_chunks(path))

        assert response.ids == ["d"]
        assert response.results[0].score == pytest.approx(1.0)


class TestImportanceScenario:
    """Importance weighting on equal keyword matches.

    Rule #4: Focused test class - tests only importance end to end
    """

    def test_weighted_scores(self, config):
        chunks = [
            Chunk(id="minor", text="minor lore", keywords=("dragon", "gold")),
            Chunk(id="major", text="major lore", keywords=("dragon", "gold"), importance=150),
            Chunk(id="trivia", text="trivia", keywords=("dragon", "gold"), importance=50),
        ]
        options = SearchOptions.from_config(
            config, search_mode="keyword", threshold=0.0, apply_groups=False
        )

        # "dragon gold hoard": two of three keywords match -> 2/3
        response = SearchOrchestrator(config).search("dragon gold hoard", chunks, options)

        scores = {r.id: r.score for r in response.results}
        assert response.ids == ["major", "minor", "trivia"]
        assert scores["major"] == pytest.approx(1.0)
        assert scores["minor"] == pytest.approx(2 / 3)
        assert scores["trivia"] == pytest.approx(2 / 3 * 0.5 - 0.05)


class TestRequiredGroupScenario:
    """Required group with no member above the threshold.

    Rule #4: Focused test class - tests only required groups end to end
    """

    def test_best_member_forced(self, config):
        royals = ChunkGroup(name="royals", group_keywords=("king",), requires_group_member=True)
        chunks = [
            Chunk(id="m1", text="The old king", keywords=("weather",), chunk_group=royals),
            Chunk(id="m2", text="The young king", keywords=("weather", "rain"), chunk_group=royals),
            Chunk(id="x", text="Sunny days", keywords=("weather",)),
        ]
        options = SearchOptions.from_config(config, search_mode="keyword", threshold=0.6)

        # Scores: x and m1 match "weather" (1/2), m2 matches both (1.0)
        response = SearchOrchestrator(config).search("weather rain", chunks, options)

        assert response.ids == ["m2"]
        assert not response.results[0].forced_by_group

    def test_member_forced_when_below_threshold(self, config):
        royals = ChunkGroup(name="royals", group_keywords=("king",), requires_group_member=True)
        chunks = [
            Chunk(id="m1", text="The old king", keywords=("storm",), chunk_group=royals),
            Chunk(id="m2", text="The young king", keywords=("weather",), chunk_group=royals),
            Chunk(id="x", text="Sunny days", keywords=("weather", "sunny")),
        ]
        options = SearchOptions.from_config(config, search_mode="keyword", threshold=0.6)

        response = SearchOrchestrator(config).search("weather sunny", chunks, options)

        assert response.ids == ["x", "m2"]
        assert response.results[1].forced_by_group
        assert response.results[1].forced_group == "royals"
        assert response.results[1].score == pytest.approx(0.5)


class TestDecayScenario:
    """Temporal decay of chat-sourced chunks.

    Rule #4: Focused test class - tests only decay end to end
    """

    def test_older_message_ranks_lower(self):
        config = Config()
        config.decay.enabled = True
        chunks = [
            Chunk(id="old", text="old mention", keywords=("dragon",), source="chat", message_id=0),
            Chunk(id="new", text="new mention", keywords=("dragon",), source="chat", message_id=45),
        ]
        options = SearchOptions.from_config(
            config, search_mode="keyword", threshold=0.0, apply_decay=True
        )

        response = SearchOrchestrator(config).search(
            "dragon", chunks, options, SearchContext(current_message_id=50)
        )

        scores = {r.id: r.score for r in response.results}
        assert response.ids == ["new", "old"]
        assert scores["old"] == pytest.approx(0.5)
        assert scores["new"] == pytest.approx(0.5 ** 0.1)

    def test_scene_aware_age(self):
        assert scene_aware_age(5, 50, [Scene(0, 10), Scene(40, 60)]) == 10

    def test_scene_aware_from_context_file(self, write_json):
        config = Config()
        config.decay.enabled = True
        config.decay.scene_aware = True
        config.decay.half_life = 10
        path = write_json(
            "context.json",
            {"currentMessageId": 50, "scenes": [{"start": 0, "end": 10}, {"start": 40, "end": 60}]},
        )
        chunks = [Chunk(id="early", text="early", keywords=("dragon",), source="chat", message_id=5)]
        options = SearchOptions.from_config(
            config, search_mode="keyword", threshold=0.0, apply_decay=True
        )

        response = SearchOrchestrator(config).search(
            "dragon", chunks, options, load_context(path).context
        )

        assert response.results[0].message_age == 10
        assert response.results[0].score == pytest.approx(0.5)


class TestDualVectorScenario:
    """Summary chunks fused with full chunks by RRF.

    Rule #4: Focused test class - tests only dual-vector fusion end to end
    """

    def test_summary_first(self, config, stub_provider):
        chunks = create_summary_chunks(
            [
                Chunk(
                    id="saga",
                    text="The long saga of the dragon",
                    summary="Dragon saga in brief",
                    summary_vector=True,
                    embedding=(1.0, 0.0),
                ),
            ]
        )
        chunks[1] = replace(chunks[1], embedding=(0.9, 0.1))
        summary_id = chunks[1].id
        matcher = SearchOrchestrator(config, stub_provider).vector_matcher

        result = matcher.dual_vector_search("dragon", chunks, top_k=5)

        assert [r.id for r in result.results] == [summary_id, "saga"]
        assert result.results[0].rrf_score == pytest.approx(1.5 / 61)
        assert result.results[1].rrf_score == pytest.approx(1.0 / 61)


class TestSearchProperties:
    """Properties that hold for any input.

    Rule #4: Focused test class - tests only cross-stage properties
    """

    def test_identical_inputs_identical_output(self, config, vector_chunks):
        provider = Mock()
        provider.source = "mock"
        provider.embed.return_value = [0.6, 0.8]
        orchestrator = SearchOrchestrator(config, provider)
        options = SearchOptions.from_config(config, threshold=0.0)

        first = orchestrator.search("dragon cave", vector_chunks, options)
        second = orchestrator.search("dragon cave", vector_chunks, options)

        assert first.to_dict()["results"] == second.to_dict()["results"]
        provider.embed.assert_called_once_with("dragon cave")

    @pytest.mark.parametrize("score", [0.0, 0.1, 0.35, 0.6, 0.9, 1.0])
    def test_importance_is_monotonic(self, score):
        neutral = apply_importance_weighting(score, 100)

        assert apply_importance_weighting(score, 150) >= neutral
        assert apply_importance_weighting(score, 50) <= neutral

    def test_summary_only_beats_full_only(self):
        summary = ScoredChunk(chunk=Chunk(id="s", text="s", is_summary_chunk=True, parent_id="p"))
        full = ScoredChunk(chunk=Chunk(id="f", text="f"))

        merged = reciprocal_rank_fusion([summary], [full], k=60, weight_a=1.5, weight_b=1.0)

        assert merged[0].id == "s"
        assert merged[0].rrf_score >= merged[1].rrf_score

    def test_threshold_boundary(self, config):
        chunks = [
            Chunk(id="half", text="half", keywords=("dragon",)),
            Chunk(id="miss", text="miss", keywords=("castle",)),
        ]
        at_boundary = SearchOptions.from_config(config, search_mode="keyword", threshold=0.5)
        above = SearchOptions.from_config(config, search_mode="keyword", threshold=0.5 + 1e-9)

        # "dragon hoard": one of two keywords matches -> exactly 0.5
        orchestrator = SearchOrchestrator(config)

        assert orchestrator.search("dragon hoard", chunks, at_boundary).ids == ["half"]
        assert orchestrator.search("dragon hoard", chunks, above).ids == []
