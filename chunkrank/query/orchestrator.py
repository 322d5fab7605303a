"""
Search orchestrator.

Entry point for ranked chunk retrieval. Wires the condition filter, the
keyword and vector matchers, fusion and the feature pipeline into the
public ``search``, ``auto_search`` and ``batch_search`` operations.

Pipeline
--------
    1. condition filter          (before any matcher runs)
    2. keyword / vector / hybrid (hybrid runs both matchers concurrently)
    3-8. feature pipeline        (group boost, importance, decay,
                                  threshold + top-K, required groups,
                                  tier re-rank)

Input validation (empty query, empty chunk set, unsupported mode) fails
before any stage runs. A stage that cannot proceed fails the whole call;
no partial results are returned.
"""

import random
import time
from concurrent.futures import ThreadPoolExecutor
from threading import Event
from typing import Callable, List, Optional, Sequence

from chunkrank.core.config import Config
from chunkrank.core.exceptions import (
    ChunkRankError,
    CollaboratorFailureError,
    EmptyQueryError,
    NoChunksError,
    NoSearchDataError,
    SearchCancelledError,
)
from chunkrank.core.logging import StageLogger, get_logger
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.context import SearchContext
from chunkrank.core.models.results import SearchResponse, SearchStats, SearchTiming
from chunkrank.core.models.scored import ScoredChunk
from chunkrank.features.conditions import ConditionEvaluator
from chunkrank.features.emotions import EmotionDetector
from chunkrank.features.importance import filter_by_min_importance
from chunkrank.features.pipeline import FeaturePipeline
from chunkrank.query.options import SearchOptions
from chunkrank.retrieval.dual_vector import find_orphan_summaries
from chunkrank.retrieval.fusion import weighted_sum_fusion
from chunkrank.retrieval.keywords import extract_keywords, match_keywords
from chunkrank.retrieval.priority import (
    apply_keyword_weights,
    calculate_weighted_keyword_score,
)
from chunkrank.retrieval.providers import EmbeddingProvider, VectorEnrichment
from chunkrank.retrieval.trie import build_keyword_index, search_by_keywords
from chunkrank.retrieval.vector import VectorMatcher

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def detect_search_mode(chunks: Sequence[Chunk]) -> str:
    """
    Pick a search mode from the data available in a chunk set.

    Raises:
        NoSearchDataError: No chunk has keywords or an embedding
    """
    has_embeddings = any(c.has_embedding for c in chunks)
    has_keywords = any(c.has_keywords for c in chunks)
    if has_embeddings and has_keywords:
        return "hybrid"
    if has_keywords:
        return "keyword"
    if has_embeddings:
        return "vector"
    raise NoSearchDataError(
        "Chunks have no embeddings or keywords",
        context={"chunks": len(chunks)},
    )


class SearchOrchestrator:
    """
    Hybrid search over an in-memory chunk set.

    Collaborators are fixed at construction: the embedding provider and
    vector enrichment feed the vector matcher, the emotion detector and the
    random source feed condition evaluation. One orchestrator may serve
    concurrent searches; the only shared state is the query-embedding cache,
    which is lock-guarded.

    Example:
        orchestrator = SearchOrchestrator(config, HashingEmbeddingProvider())
        response = orchestrator.search("Tell me about the dragon", chunks)
        for result in response.results:
            print(result.id, result.score)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        enrichment: Optional[VectorEnrichment] = None,
        emotion_detector: Optional[EmotionDetector] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or Config()
        self.embedding_provider = embedding_provider
        self.enrichment = enrichment
        self.vector_matcher: Optional[VectorMatcher] = None
        if embedding_provider is not None:
            self.vector_matcher = VectorMatcher(
                embedding_provider,
                enrichment=enrichment,
                config=self.config.vector,
                dual_config=self.config.dual_vector,
            )
        self.evaluator = ConditionEvaluator(
            emotion_detector,
            rng or random.Random(self.config.conditions.random_seed),
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def default_options(self, **overrides: object) -> SearchOptions:
        return SearchOptions.from_config(self.config, **overrides)

    def search(
        self,
        query: str,
        chunks: Sequence[Chunk],
        options: Optional[SearchOptions] = None,
        context: Optional[SearchContext] = None,
    ) -> SearchResponse:
        """
        Rank chunks against a query with the given mode and features.

        Args:
            query: Query text
            chunks: Chunk universe for this call
            options: Per-call options (defaults from config)
            context: Ambient state for conditions and decay

        Returns:
            SearchResponse with results, timing and stats

        Raises:
            EmptyQueryError: Query is empty or whitespace
            NoChunksError: Chunk set is empty
            InvalidSearchModeError: Unsupported search mode
            SearchError: Any matcher or collaborator failure
        """
        options = options or self.default_options()
        self._validate_inputs(query, chunks, options)

        start = time.perf_counter()
        stages = StageLogger(options.search_mode)
        logger.info(
            "Search started",
            mode=options.search_mode,
            top_k=options.top_k,
            threshold=options.threshold,
            chunks=len(chunks),
        )

        try:
            searchable = self._filter_searchable(chunks, options, context, stages)
            if not searchable:
                logger.warning("All chunks filtered out before search")
                stages.finish(True, results=0)
                return SearchResponse(
                    timing=SearchTiming(
                        duration_ms=_elapsed_ms(start),
                        mode=options.search_mode,
                        stages_ms=dict(stages.durations),
                    ),
                    stats=SearchStats(original_chunks=len(chunks)),
                )

            stages.start_stage("search")
            scored = self._run_search(query, searchable, options)
            stages.log_progress("Matcher finished", scored=len(scored))

            pipeline = FeaturePipeline(options.pipeline_settings(), stages)
            outcome = pipeline.run(query, scored, searchable, context)
        except ChunkRankError as e:
            stages.finish(False, error=str(e))
            raise

        results = outcome.results
        stages.finish(True, results=len(results))
        average = sum(r.score for r in results) / len(results) if results else 0.0
        return SearchResponse(
            results=results,
            timing=SearchTiming(
                duration_ms=_elapsed_ms(start),
                mode=options.search_mode,
                stages_ms=dict(stages.durations),
            ),
            stats=SearchStats(
                original_chunks=len(chunks),
                searchable_chunks=len(searchable),
                scored_chunks=len(scored),
                final_results=len(results),
                average_score=average,
            ),
        )

    def auto_search(
        self,
        query: str,
        chunks: Sequence[Chunk],
        options: Optional[SearchOptions] = None,
        context: Optional[SearchContext] = None,
    ) -> SearchResponse:
        """
        Search with the mode chosen from the chunk set.

        Conditions are applied first, then the mode is picked from what the
        remaining chunks carry: hybrid when keywords and embeddings both
        exist, otherwise whichever exists.

        Raises:
            NoSearchDataError: No remaining chunk has keywords or embeddings
        """
        options = options or self.default_options()
        if not query or not query.strip():
            raise EmptyQueryError("Query text is empty or whitespace")
        if not chunks:
            raise NoChunksError("No chunks available for search")

        candidates = list(chunks)
        if options.apply_conditions and context is not None:
            candidates = self.evaluator.filter_chunks(candidates, context)
            if len(candidates) < len(chunks):
                logger.debug(
                    "Condition filter removed chunks",
                    removed=len(chunks) - len(candidates),
                )

        mode = detect_search_mode(candidates)
        logger.info("Auto-selected search mode", mode=mode)
        return self.search(
            query,
            candidates,
            options.with_overrides(search_mode=mode, apply_conditions=False),
            context,
        )

    def batch_search(
        self,
        queries: Sequence[str],
        chunks: Sequence[Chunk],
        options: Optional[SearchOptions] = None,
        context: Optional[SearchContext] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[Event] = None,
    ) -> List[SearchResponse]:
        """
        Run ``search`` for each query in order, one response slot per query.

        A failing query fills its slot with the error (kind, message and
        context) and the batch continues. When ``cancel_event`` is set, the
        remaining slots are filled with cancellation errors.
        """
        options = options or self.default_options()
        if cancel_event is not None:
            options = options.with_overrides(cancel_event=cancel_event)

        total = len(queries)
        responses: List[SearchResponse] = []
        logger.info("Batch search started", queries=total)

        for i, query in enumerate(queries):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Batch search cancelled", completed=i, total=total)
                responses.extend(
                    self._error_slot(
                        SearchCancelledError(
                            "Batch search cancelled", context={"query_index": j}
                        ),
                        options,
                    )
                    for j in range(i, total)
                )
                break
            try:
                responses.append(self.search(query, chunks, options, context))
            except ChunkRankError as e:
                logger.error("Batch query failed", index=i, kind=e.kind, error=str(e))
                responses.append(self._error_slot(e, options))
            if progress_callback:
                progress_callback(i + 1, total)

        failed = sum(1 for r in responses if not r.ok)
        logger.info("Batch search complete", queries=total, failed=failed)
        return responses

    def get_cache_stats(self) -> dict:
        if self.vector_matcher is None:
            return {}
        return self.vector_matcher.get_cache_stats()

    def clear_cache(self) -> None:
        if self.vector_matcher is not None:
            self.vector_matcher.clear_cache()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _error_slot(error: ChunkRankError, options: SearchOptions) -> SearchResponse:
        return SearchResponse(
            timing=SearchTiming(mode=options.search_mode),
            error=str(error),
            error_kind=error.kind,
            error_context=dict(error.context),
        )

    @staticmethod
    def _validate_inputs(
        query: str, chunks: Sequence[Chunk], options: SearchOptions
    ) -> None:
        if not query or not query.strip():
            raise EmptyQueryError("Query text is empty or whitespace")
        if not chunks:
            raise NoChunksError("No chunks available for search")
        options.validate()
        orphans = find_orphan_summaries(chunks)
        if orphans:
            logger.warning(
                "Summary chunks reference missing parents",
                count=len(orphans),
                chunk_ids=orphans[:10],
            )

    def _filter_searchable(
        self,
        chunks: Sequence[Chunk],
        options: SearchOptions,
        context: Optional[SearchContext],
        stages: StageLogger,
    ) -> List[Chunk]:
        searchable = list(chunks)
        if options.apply_conditions and context is not None:
            stages.start_stage("conditions")
            searchable = self.evaluator.filter_chunks(searchable, context)
            stages.log_progress("Conditions applied", remaining=len(searchable))
        if options.apply_importance and options.min_importance > 0:
            stages.start_stage("min_importance")
            searchable = filter_by_min_importance(searchable, options.min_importance)
        return searchable

    def _run_search(
        self, query: str, chunks: List[Chunk], options: SearchOptions
    ) -> List[ScoredChunk]:
        mode = options.search_mode
        if mode == "keyword":
            return self._keyword_search(query, chunks, options)
        if mode == "vector":
            return self._vector_search(query, chunks, options)
        return self._hybrid_search(query, chunks, options)

    def _keyword_search(
        self, query: str, chunks: Sequence[Chunk], options: SearchOptions
    ) -> List[ScoredChunk]:
        keyword_config = self.config.keywords
        query_keywords = extract_keywords(
            query,
            min_length=keyword_config.min_length,
            max_length=keyword_config.max_length,
            max_keywords=keyword_config.max_keywords,
        )
        if not query_keywords:
            logger.warning("No keywords extracted from query")
            return []

        index = build_keyword_index(chunks)
        results = search_by_keywords(
            query_keywords,
            index,
            chunks,
            exact_weight=keyword_config.exact_weight,
            prefix_weight=keyword_config.prefix_weight,
        )
        logger.debug(
            "Keyword search complete",
            keywords=len(query_keywords),
            index_keys=len(index),
            results=len(results),
        )

        if options.priority_context is None:
            return results
        return self._rescore_by_priority(results, query_keywords, options)

    def _rescore_by_priority(
        self,
        results: Sequence[ScoredChunk],
        query_keywords: Sequence[str],
        options: SearchOptions,
    ) -> List[ScoredChunk]:
        """Replace trie scores with tier-weighted match scores."""
        keyword_config = self.config.keywords
        rescored: List[ScoredChunk] = []
        for result in results:
            match = match_keywords(
                result.chunk.all_keywords,
                query_keywords,
                match_mode=keyword_config.match_mode,
                fuzzy_threshold=keyword_config.fuzzy_threshold,
            )
            weights = apply_keyword_weights(result.chunk, options.priority_context)
            score = calculate_weighted_keyword_score(match, weights)
            rescored.append(result.evolve(score=score, keyword_score=score))
        return rescored

    def _require_matcher(self) -> VectorMatcher:
        if self.vector_matcher is None:
            raise CollaboratorFailureError(
                "Vector search needs an embedding provider",
                collaborator="embedding_provider",
            )
        return self.vector_matcher

    def _vector_search(
        self, query: str, chunks: Sequence[Chunk], options: SearchOptions
    ) -> List[ScoredChunk]:
        matcher = self._require_matcher()
        if options.dual_vector:
            result = matcher.dual_vector_search(
                query,
                chunks,
                top_k=options.candidate_count,
                threshold=options.threshold,
                algorithm=options.similarity_algorithm,
                collection_id=options.collection_id,
                use_cache=options.use_cache,
                cancel_event=options.cancel_event,
            )
        else:
            result = matcher.search_by_vector(
                query,
                chunks,
                top_k=options.candidate_count,
                threshold=options.threshold,
                search_mode=options.vector_search_mode,
                algorithm=options.similarity_algorithm,
                collection_id=options.collection_id,
                use_cache=options.use_cache,
                cancel_event=options.cancel_event,
            )

        # Fused entries keep the similarity of their first list for scoring
        return [
            r.evolve(score=r.similarity if r.similarity is not None else (r.rrf_score or 0.0))
            for r in result.results
        ]

    def _hybrid_search(
        self, query: str, chunks: Sequence[Chunk], options: SearchOptions
    ) -> List[ScoredChunk]:
        """Run keyword and vector matchers concurrently, then fuse by weighted sum."""
        with ThreadPoolExecutor(max_workers=2) as executor:
            keyword_future = executor.submit(self._keyword_search, query, chunks, options)
            vector_future = executor.submit(self._vector_search, query, chunks, options)
            keyword_results = keyword_future.result()
            vector_results = vector_future.result()

        merged = weighted_sum_fusion(
            keyword_results,
            vector_results,
            keyword_weight=options.keyword_weight,
            vector_weight=options.vector_weight,
        )
        logger.debug(
            "Hybrid merge complete",
            keyword=len(keyword_results),
            vector=len(vector_results),
            merged=len(merged),
        )
        return merged
