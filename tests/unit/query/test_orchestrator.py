"""
Tests for the search orchestrator.

Test Strategy
-------------
- Keyword, vector and hybrid modes checked with exact scores
- Collaborators are stubs; no network or model is involved
- Input errors fail before any stage runs
- Batch search keeps one slot per query, errors included

Organization
------------
- TestInputValidation: errors raised before the pipeline
- TestKeywordSearch: keyword mode
- TestVectorAndHybridSearch: vector, dual-vector and hybrid modes
- TestConditionFiltering: searchable-chunk stage
- TestAutoSearch: mode detection
- TestBatchSearch: per-query slots, progress and cancellation
- TestEmbeddingCache: cache passthrough
"""

import logging
import threading
from typing import Optional

import pytest

from chunkrank.core.config import Config
from chunkrank.core.exceptions import (
    CollaboratorFailureError,
    EmptyQueryError,
    InvalidSearchModeError,
    NoChunksError,
    NoSearchDataError,
)
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.conditions import ChunkConditions, ConditionRule
from chunkrank.query.orchestrator import SearchOrchestrator, detect_search_mode
from chunkrank.query.options import SearchOptions


# ============================================================================
# Test Helpers
# ============================================================================


def keyword_options(config: Optional[Config] = None, **overrides) -> SearchOptions:
    settings = {"search_mode": "keyword", "threshold": 0.0}
    settings.update(overrides)
    return SearchOptions.from_config(config or Config(), **settings)


def meet_at(barrier: threading.Barrier, func):
    """Wrap func so it only proceeds once every barrier party has arrived."""

    def wrapper(*args, **kwargs):
        barrier.wait()
        return func(*args, **kwargs)

    return wrapper


def speaker_gated(chunk_id: str, speaker: str) -> Chunk:
    conditions = ChunkConditions(
        enabled=True,
        rules=(ConditionRule.from_dict({"type": "speaker", "value": speaker}),),
    )
    return Chunk(id=chunk_id, text=f"text of {chunk_id}", keywords=("dragon",), conditions=conditions)


# ============================================================================
# Test Classes
# ============================================================================


class TestInputValidation:
    """Tests for errors raised before any stage runs.

    Rule #4: Focused test class - tests only input validation
    """

    @pytest.mark.parametrize("query", ["", "   "])
    def test_empty_query(self, config, dragon_chunks, query):
        with pytest.raises(EmptyQueryError):
            SearchOrchestrator(config).search(query, dragon_chunks)

    def test_no_chunks(self, config):
        with pytest.raises(NoChunksError):
            SearchOrchestrator(config).search("dragon", [])

    def test_invalid_mode(self, config, dragon_chunks):
        with pytest.raises(InvalidSearchModeError):
            SearchOrchestrator(config).search(
                "dragon", dragon_chunks, SearchOptions(search_mode="semantic")
            )

    def test_orphan_summary_logged(self, config, caplog):
        chunks = [
            Chunk(id="s", text="summary", keywords=("dragon",), is_summary_chunk=True, parent_id="ghost"),
            Chunk(id="full", text="full text", keywords=("dragon",)),
        ]

        with caplog.at_level(logging.WARNING, logger="chunkrank.query.orchestrator"):
            response = SearchOrchestrator(config).search("dragon", chunks, keyword_options())

        assert "Summary chunks reference missing parents" in caplog.text
        assert "chunk_ids=['s']" in caplog.text
        assert response.stats.original_chunks == 2

    def test_vector_without_provider(self, config, vector_chunks):
        with pytest.raises(CollaboratorFailureError):
            SearchOrchestrator(config).search(
                "dragon", vector_chunks, SearchOptions(search_mode="vector")
            )


class TestKeywordSearch:
    """Tests for keyword mode.

    Rule #4: Focused test class - tests only keyword search
    """

    def test_dragon_query(self, config, dragon_chunks):
        response = SearchOrchestrator(config).search(
            "Tell me about the dragon", dragon_chunks, keyword_options()
        )

        assert response.ids == ["dragon"]
        assert response.results[0].score == pytest.approx(1 / 3)
        assert response.stats.original_chunks == 3
        assert response.stats.scored_chunks == 1
        assert response.stats.final_results == 1
        assert response.timing.mode == "keyword"
        assert "search" in response.timing.stages_ms

    def test_default_threshold_drops_weak_match(self, config, dragon_chunks):
        response = SearchOrchestrator(config).search(
            "Tell me about the dragon",
            dragon_chunks,
            SearchOptions.from_config(config, search_mode="keyword"),
        )

        assert response.results == []
        assert response.stats.scored_chunks == 1

    def test_stop_words_only(self, config, dragon_chunks):
        response = SearchOrchestrator(config).search("the and of", dragon_chunks, keyword_options())

        assert response.results == []

    def test_importance_applied(self, config):
        chunks = [
            Chunk(id="low", text="low", keywords=("dragon",), importance=50),
            Chunk(id="high", text="high", keywords=("dragon",), importance=150),
        ]

        response = SearchOrchestrator(config).search(
            "dragon", chunks, keyword_options(config, threshold=0.6)
        )

        assert response.ids == ["high"]
        assert response.results[0].importance_applied

    def test_min_importance(self, config):
        config.importance.min_importance = 120
        chunks = [
            Chunk(id="low", text="low", keywords=("dragon",), importance=50),
            Chunk(id="high", text="high", keywords=("dragon",), importance=150),
        ]

        response = SearchOrchestrator(config).search("dragon", chunks, keyword_options(config))

        assert response.ids == ["high"]
        assert response.stats.searchable_chunks == 1
        assert response.results[0].importance_applied


class TestVectorAndHybridSearch:
    """Tests for vector, dual-vector and hybrid modes.

    Rule #4: Focused test class - tests only embedding-backed modes
    """

    def test_vector_mode(self, config, stub_provider, vector_chunks):
        response = SearchOrchestrator(config, stub_provider).search(
            "dragon", vector_chunks, SearchOptions.from_config(config, search_mode="vector")
        )

        assert response.ids == ["dragon", "lair"]
        assert response.results[1].score == pytest.approx(0.8)

    def test_hybrid_mode(self, config, stub_provider, vector_chunks):
        response = SearchOrchestrator(config, stub_provider).search("dragon", vector_chunks)

        assert response.ids == ["dragon"]
        assert response.results[0].score == pytest.approx(1.0)
        assert response.results[0].keyword_score == pytest.approx(1.0)
        assert response.results[0].vector_score == pytest.approx(1.0)

    def test_hybrid_weights(self, config, stub_provider, vector_chunks):
        response = SearchOrchestrator(config, stub_provider).search(
            "dragon",
            vector_chunks,
            SearchOptions.from_config(config, threshold=0.0, keyword_weight=1.0, vector_weight=0.0),
        )

        assert response.results[0].id == "dragon"
        assert all(r.score == 0.0 for r in response.results[1:])

    def test_dual_vector(self, config, stub_provider):
        chunks = [
            Chunk(id="full", text="full text", embedding=(1.0, 0.0)),
            Chunk(id="sum", text="summary", embedding=(0.9, 0.1), is_summary_chunk=True, parent_id="x"),
        ]

        response = SearchOrchestrator(config, stub_provider).search(
            "dragon",
            chunks,
            SearchOptions.from_config(config, search_mode="vector", dual_vector=True, threshold=0.0),
        )

        assert set(response.ids) == {"full", "sum"}
        assert all(r.rrf_score is not None for r in response.results)

    def test_hybrid_sub_searches_run_concurrently(self, config, stub_provider, vector_chunks):
        orchestrator = SearchOrchestrator(config, stub_provider)
        barrier = threading.Barrier(2, timeout=5)
        orchestrator._keyword_search = meet_at(barrier, orchestrator._keyword_search)
        orchestrator._vector_search = meet_at(barrier, orchestrator._vector_search)

        response = orchestrator.search("dragon", vector_chunks)

        assert response.ids == ["dragon"]
        assert not barrier.broken

    def test_provider_failure(self, config, failing_provider, vector_chunks):
        with pytest.raises(CollaboratorFailureError):
            SearchOrchestrator(config, failing_provider).search("dragon", vector_chunks)


class TestConditionFiltering:
    """Tests for the condition filter stage.

    Rule #4: Focused test class - tests only searchable-chunk filtering
    """

    def test_gated_chunk_removed(self, config, chat_context):
        chunks = [speaker_gated("alice", "Alice"), speaker_gated("bob", "Bob")]

        response = SearchOrchestrator(config).search(
            "dragon", chunks, keyword_options(), chat_context
        )

        assert response.ids == ["alice"]
        assert response.stats.searchable_chunks == 1

    def test_no_context_skips_conditions(self, config):
        chunks = [speaker_gated("alice", "Alice"), speaker_gated("bob", "Bob")]

        response = SearchOrchestrator(config).search("dragon", chunks, keyword_options())

        assert response.ids == ["alice", "bob"]

    def test_conditions_disabled(self, config, chat_context):
        chunks = [speaker_gated("bob", "Bob")]

        response = SearchOrchestrator(config).search(
            "dragon", chunks, keyword_options(apply_conditions=False), chat_context
        )

        assert response.ids == ["bob"]

    def test_everything_filtered(self, config, chat_context):
        response = SearchOrchestrator(config).search(
            "dragon", [speaker_gated("bob", "Bob")], keyword_options(), chat_context
        )

        assert response.results == []
        assert response.stats.original_chunks == 1
        assert response.stats.searchable_chunks == 0


class TestAutoSearch:
    """Tests for auto_search and detect_search_mode.

    Rule #4: Focused test class - tests only mode detection
    """

    def test_detect_modes(self, dragon_chunks, vector_chunks):
        embedded_only = [Chunk(id="e", text="e", embedding=(1.0,))]

        assert detect_search_mode(dragon_chunks) == "keyword"
        assert detect_search_mode(vector_chunks) == "hybrid"
        assert detect_search_mode(embedded_only) == "vector"

    def test_no_search_data(self, config):
        with pytest.raises(NoSearchDataError):
            SearchOrchestrator(config).auto_search("dragon", [Chunk(id="a", text="plain")])

    def test_keyword_only_chunks(self, config, dragon_chunks):
        response = SearchOrchestrator(config).auto_search(
            "dragon", dragon_chunks, SearchOptions.from_config(config, threshold=0.0)
        )

        assert response.timing.mode == "keyword"
        assert response.ids == ["dragon"]

    def test_hybrid_chunks(self, config, stub_provider, vector_chunks):
        response = SearchOrchestrator(config, stub_provider).auto_search("dragon", vector_chunks)

        assert response.timing.mode == "hybrid"
        assert response.ids == ["dragon"]

    def test_mode_detected_after_conditions(self, config, chat_context):
        gated = Chunk(
            id="gated",
            text="gated",
            embedding=(1.0, 0.0),
            conditions=ChunkConditions(
                enabled=True,
                rules=(ConditionRule.from_dict({"type": "speaker", "value": "Bob"}),),
            ),
        )
        keyword_chunk = Chunk(id="kw", text="kw", keywords=("dragon",))

        response = SearchOrchestrator(config).auto_search(
            "dragon",
            [gated, keyword_chunk],
            SearchOptions.from_config(config, threshold=0.0),
            chat_context,
        )

        assert response.timing.mode == "keyword"
        assert response.ids == ["kw"]

    def test_empty_query(self, config, dragon_chunks):
        with pytest.raises(EmptyQueryError):
            SearchOrchestrator(config).auto_search(" ", dragon_chunks)


class TestBatchSearch:
    """Tests for batch_search.

    Rule #4: Focused test class - tests only batch semantics
    """

    def test_failing_query_keeps_slot(self, config, dragon_chunks):
        progress = []

        responses = SearchOrchestrator(config).batch_search(
            ["dragon", "", "castle"],
            dragon_chunks,
            keyword_options(),
            progress_callback=lambda done, total: progress.append((done, total)),
        )

        assert [r.ids for r in responses] == [["dragon"], [], ["castle"]]
        assert responses[1].error_kind == "EmptyQuery"
        assert not responses[1].ok
        assert progress == [(1, 3), (2, 3), (3, 3)]

    def test_cancellation_fills_remaining_slots(self, config, dragon_chunks):
        cancel = threading.Event()

        responses = SearchOrchestrator(config).batch_search(
            ["dragon", "castle", "forest"],
            dragon_chunks,
            keyword_options(),
            progress_callback=lambda done, total: cancel.set(),
            cancel_event=cancel,
        )

        assert len(responses) == 3
        assert responses[0].ok
        assert [r.error_kind for r in responses[1:]] == ["Cancelled", "Cancelled"]
        assert [r.error_context["query_index"] for r in responses[1:]] == [1, 2]

    def test_empty_batch(self, config, dragon_chunks):
        assert SearchOrchestrator(config).batch_search([], dragon_chunks) == []


class TestEmbeddingCache:
    """Tests for cache passthrough.

    Rule #4: Focused test class - tests only cache stats and clearing
    """

    def test_no_provider(self, config):
        assert SearchOrchestrator(config).get_cache_stats() == {}

    def test_repeated_query_hits_cache(self, config, stub_provider, vector_chunks):
        orchestrator = SearchOrchestrator(config, stub_provider)

        orchestrator.search("dragon", vector_chunks)
        orchestrator.search("dragon", vector_chunks)

        assert stub_provider.calls == ["dragon"]
        assert orchestrator.get_cache_stats()["hits"] == 1

        orchestrator.clear_cache()
        orchestrator.search("dragon", vector_chunks)

        assert len(stub_provider.calls) == 2
