"""
Vector matcher.

Ranks chunks by embedding similarity to a query.

Flow of ``search_by_vector``
----------------------------
1. Filter chunks by vector search mode (summary / full / both)
2. Enrich chunks lacking an embedding from the VectorEnrichment source,
   keyed by collection id
3. Validate every embedding; problems are aggregated into one
   InvalidEmbeddingsError listing the first ten offenders
4. Embed the query (LRU cache keyed by text and provider source)
5. Rank with the selected similarity algorithm, threshold, truncate

A stage that cannot proceed fails the call. The matcher never degrades to
keyword-only results on its own; that decision belongs to the caller.

Dual-vector search runs the summary and full-text searches on a two-worker
thread pool and fuses the rankings with weighted RRF.
"""

import math
import numbers
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from threading import Event
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from chunkrank.core.config.search import DualVectorConfig, VectorConfig
from chunkrank.core.exceptions import (
    ChunkRankError,
    CollaboratorFailureError,
    EmptyQueryError,
    EnrichmentUnavailableError,
    InvalidEmbeddingsError,
    MissingCollectionIdError,
    SearchCancelledError,
)
from chunkrank.core.logging import get_logger
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.scored import ScoredChunk
from chunkrank.retrieval.dual_vector import filter_chunks_by_search_mode
from chunkrank.retrieval.embedding_cache import QueryEmbeddingCache
from chunkrank.retrieval.fusion import reciprocal_rank_fusion
from chunkrank.retrieval.providers import EmbeddingProvider, VectorEnrichment
from chunkrank.retrieval.similarity import calculate_similarity_stats, find_top_k

logger = get_logger(__name__)

MAX_REPORTED_ISSUES = 10

ProgressCallback = Callable[[int, int], None]


# ============================================================================
# Embedding validation
# ============================================================================


@dataclass(frozen=True)
class EmbeddingValidation:
    """Outcome of validating a chunk set's embeddings."""

    valid: bool
    total_chunks: int
    invalid_chunks: int
    issues: List[Dict[str, Any]] = field(default_factory=list)


def _embedding_issue(embedding: Any) -> Optional[str]:
    if embedding is None:
        return "Missing embedding"
    if isinstance(embedding, (str, bytes)) or not hasattr(embedding, "__len__"):
        return "Embedding is not a sequence"
    if len(embedding) == 0:
        return "Embedding is empty"
    for value in embedding:
        if value is None or isinstance(value, bool):
            return "Embedding contains invalid values"
        if not isinstance(value, numbers.Real) or math.isnan(value):
            return "Embedding contains invalid values"
    return None


def validate_chunk_embeddings(chunks: Sequence[Chunk]) -> EmbeddingValidation:
    """
    Check that every chunk has a usable embedding.

    An embedding is unusable when it is missing, not a sequence, empty, or
    contains None, NaN or non-numeric values. Only the first ten issues are
    reported; ``invalid_chunks`` counts all of them.
    """
    issues: List[Dict[str, Any]] = []
    invalid = 0
    for index, chunk in enumerate(chunks):
        issue = _embedding_issue(chunk.embedding)
        if issue is None:
            continue
        invalid += 1
        if len(issues) < MAX_REPORTED_ISSUES:
            issues.append({"index": index, "id": chunk.id, "issue": issue})

    return EmbeddingValidation(
        valid=invalid == 0,
        total_chunks=len(chunks),
        invalid_chunks=invalid,
        issues=issues,
    )


def enrich_chunks_with_vectors(
    chunks: Sequence[Chunk],
    enrichment: VectorEnrichment,
    collection_id: str,
    source: str,
) -> Tuple[List[Chunk], int]:
    """
    Fill missing embeddings from the enrichment source.

    Returns:
        (chunks with embeddings filled where available, number filled)

    Raises:
        CollaboratorFailureError: If the enrichment source raises
    """
    try:
        records = enrichment.fetch_vectors(collection_id, source)
    except ChunkRankError:
        raise
    except Exception as e:
        raise CollaboratorFailureError(
            f"Vector enrichment failed for collection '{collection_id}'",
            collaborator="vector_enrichment",
            collaborator_error=e,
        ) from e

    vectors = {record.id: record.vector for record in records}
    enriched: List[Chunk] = []
    filled = 0
    for chunk in chunks:
        if chunk.has_embedding or chunk.id not in vectors:
            enriched.append(chunk)
            continue
        enriched.append(replace(chunk, embedding=tuple(vectors[chunk.id])))
        filled += 1
    return enriched, filled


# ============================================================================
# Results
# ============================================================================


@dataclass
class VectorSearchResult:
    """Ranked chunks plus timing and score distribution of one vector search."""

    results: List[ScoredChunk] = field(default_factory=list)
    duration_ms: float = 0.0
    embedding_ms: float = 0.0
    chunk_count: int = 0
    query_dim: int = 0
    stats: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_kind: Optional[str] = None


# ============================================================================
# Matcher
# ============================================================================


class VectorMatcher:
    """
    Similarity search over chunk embeddings.

    One matcher owns one query-embedding cache; concurrent searches on the
    same matcher share it safely.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        enrichment: Optional[VectorEnrichment] = None,
        config: Optional[VectorConfig] = None,
        dual_config: Optional[DualVectorConfig] = None,
    ) -> None:
        self.embedding_provider = embedding_provider
        self.enrichment = enrichment
        self.config = config or VectorConfig()
        self.dual_config = dual_config or DualVectorConfig()
        self.cache = QueryEmbeddingCache(self.config.cache_capacity)

    @property
    def source(self) -> str:
        """Provider identity used in cache keys and enrichment lookups."""
        return getattr(self.embedding_provider, "source", None) or self.config.source

    def get_query_embedding(
        self,
        query: str,
        use_cache: Optional[bool] = None,
        cancel_event: Optional[Event] = None,
    ) -> Tuple[float, ...]:
        """
        Embed the query, consulting the cache first.

        Raises:
            SearchCancelledError: If ``cancel_event`` is already set
            CollaboratorFailureError: If the provider fails or returns an
                unusable vector
        """
        if cancel_event is not None and cancel_event.is_set():
            raise SearchCancelledError("Search cancelled before embedding the query")

        use_cache = self.config.use_cache if use_cache is None else use_cache
        source = self.source
        if use_cache:
            cached = self.cache.get(query, source)
            if cached is not None:
                logger.debug("Query embedding cache hit", source=source)
                return cached

        try:
            raw = self.embedding_provider.embed(query)
        except ChunkRankError:
            raise
        except Exception as e:
            raise CollaboratorFailureError(
                "Embedding provider failed to embed the query",
                collaborator="embedding_provider",
                collaborator_error=e,
            ) from e

        if _embedding_issue(raw) is not None:
            raise CollaboratorFailureError(
                "Embedding provider returned an unusable query vector",
                collaborator="embedding_provider",
            )

        embedding = tuple(float(v) for v in raw)
        if use_cache:
            self.cache.put(query, source, embedding)
        return embedding

    def _prepare_chunks(
        self, chunks: Sequence[Chunk], collection_id: Optional[str]
    ) -> List[Chunk]:
        """Enrich missing embeddings, then validate the whole set."""
        prepared = list(chunks)
        if any(not c.has_embedding for c in prepared):
            prepared = self._enrich(prepared, collection_id)

        validation = validate_chunk_embeddings(prepared)
        if not validation.valid:
            raise InvalidEmbeddingsError(
                f"{validation.invalid_chunks} of {validation.total_chunks} chunks "
                "have invalid embeddings",
                issues=validation.issues,
                invalid_count=validation.invalid_chunks,
                total_chunks=validation.total_chunks,
            )
        return prepared

    def _enrich(self, chunks: List[Chunk], collection_id: Optional[str]) -> List[Chunk]:
        collection_id = collection_id or chunks[0].collection_id
        if not collection_id:
            raise MissingCollectionIdError(
                "Chunks are missing embeddings and no collection id was given"
            )
        if self.enrichment is None:
            raise EnrichmentUnavailableError(
                "Chunks are missing embeddings and no vector enrichment source "
                "is configured",
                context={"collection_id": collection_id},
            )

        start = time.perf_counter()
        enriched, filled = enrich_chunks_with_vectors(
            chunks, self.enrichment, collection_id, self.source
        )
        if filled == 0:
            raise CollaboratorFailureError(
                f"Vector enrichment returned no vectors for collection '{collection_id}'",
                collaborator="vector_enrichment",
            )
        logger.debug(
            "Enriched chunks with vectors",
            collection_id=collection_id,
            filled=filled,
            chunks=len(chunks),
            duration_ms=f"{(time.perf_counter() - start) * 1000:.2f}",
        )
        return enriched

    def search_by_vector(
        self,
        query: str,
        chunks: Sequence[Chunk],
        top_k: int = 5,
        threshold: float = 0.0,
        search_mode: Optional[str] = None,
        algorithm: str = "cosine",
        collection_id: Optional[str] = None,
        use_cache: Optional[bool] = None,
        cancel_event: Optional[Event] = None,
        query_embedding: Optional[Sequence[float]] = None,
    ) -> VectorSearchResult:
        """
        Rank chunks by similarity to the query.

        Args:
            query: Query text
            chunks: Candidate chunks (embeddings may be missing)
            top_k: Maximum number of results
            threshold: Inclusive lower bound on similarity
            search_mode: summary, full or both (defaults to config)
            algorithm: cosine, jaccard or hamming
            collection_id: Collection for enrichment (defaults to the first
                chunk's collection id)
            use_cache: Override the config's cache setting
            cancel_event: Checked before the embedding provider is called
            query_embedding: Precomputed query vector; skips the provider

        Returns:
            VectorSearchResult; ``results`` carry ``score == similarity``
        """
        if not query or not query.strip():
            raise EmptyQueryError("Query text is empty")

        start = time.perf_counter()
        if not chunks:
            logger.warning("No chunks provided for vector search")
            return VectorSearchResult()

        mode = search_mode or self.config.search_mode
        candidates = filter_chunks_by_search_mode(chunks, mode)
        if not candidates:
            logger.warning("No chunks available after mode filter", mode=mode)
            return VectorSearchResult(duration_ms=(time.perf_counter() - start) * 1000)

        candidates = self._prepare_chunks(candidates, collection_id)

        embedding_start = time.perf_counter()
        if query_embedding is None:
            query_embedding = self.get_query_embedding(query, use_cache, cancel_event)
        embedding_ms = (time.perf_counter() - embedding_start) * 1000

        results = find_top_k(query_embedding, candidates, top_k, threshold, algorithm)
        stats = calculate_similarity_stats(results)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.debug(
            "Vector search complete",
            mode=mode,
            chunks=len(candidates),
            results=len(results),
            algorithm=algorithm,
            duration_ms=f"{duration_ms:.2f}",
        )
        return VectorSearchResult(
            results=results,
            duration_ms=duration_ms,
            embedding_ms=embedding_ms,
            chunk_count=len(candidates),
            query_dim=len(query_embedding),
            stats=stats,
        )

    def dual_vector_search(
        self,
        query: str,
        chunks: Sequence[Chunk],
        top_k: int = 5,
        threshold: float = 0.0,
        algorithm: str = "cosine",
        collection_id: Optional[str] = None,
        use_cache: Optional[bool] = None,
        cancel_event: Optional[Event] = None,
    ) -> VectorSearchResult:
        """
        Search summaries and full text concurrently, then fuse with RRF.

        The summary list contributes ``summary_weight / (k + rank + 1)`` and
        the full list ``full_weight / (k + rank + 1)``. Each fused result
        has ``rrf_score`` and ``score`` set to the fused value. A failure in
        either sub-search fails the call.
        """
        if not query or not query.strip():
            raise EmptyQueryError("Query text is empty")

        start = time.perf_counter()
        summary_chunks = [c for c in chunks if c.is_summary_chunk]
        full_chunks = [c for c in chunks if not c.is_summary_chunk]
        query_embedding = self.get_query_embedding(query, use_cache, cancel_event)

        with ThreadPoolExecutor(max_workers=2) as executor:
            summary_future = executor.submit(
                self.search_by_vector,
                query,
                summary_chunks,
                top_k,
                threshold,
                "summary",
                algorithm,
                collection_id,
                use_cache,
                cancel_event,
                query_embedding,
            )
            full_future = executor.submit(
                self.search_by_vector,
                query,
                full_chunks,
                top_k,
                threshold,
                "full",
                algorithm,
                collection_id,
                use_cache,
                cancel_event,
                query_embedding,
            )
            summary_result = summary_future.result()
            full_result = full_future.result()

        merged = reciprocal_rank_fusion(
            summary_result.results,
            full_result.results,
            k=self.dual_config.rrf_k,
            weight_a=self.dual_config.summary_weight,
            weight_b=self.dual_config.full_weight,
        )[:top_k]

        duration_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "Dual-vector search complete",
            summary=len(summary_result.results),
            full=len(full_result.results),
            merged=len(merged),
        )
        return VectorSearchResult(
            results=merged,
            duration_ms=duration_ms,
            embedding_ms=max(summary_result.embedding_ms, full_result.embedding_ms),
            chunk_count=summary_result.chunk_count + full_result.chunk_count,
            query_dim=len(query_embedding),
            stats={
                "summary_results": len(summary_result.results),
                "full_results": len(full_result.results),
                "merged_results": len(merged),
            },
        )

    def batch_vector_search(
        self,
        queries: Sequence[str],
        chunks: Sequence[Chunk],
        progress_callback: Optional[ProgressCallback] = None,
        **options: Any,
    ) -> List[VectorSearchResult]:
        """
        Run ``search_by_vector`` for each query in order.

        A failing query yields an empty result with ``error`` set; the
        remaining queries still run.
        """
        results: List[VectorSearchResult] = []
        for i, query in enumerate(queries):
            try:
                results.append(self.search_by_vector(query, chunks, **options))
            except ChunkRankError as e:
                logger.error("Batch vector query failed", index=i, error=str(e))
                results.append(VectorSearchResult(error=str(e), error_kind=e.kind))
            if progress_callback:
                progress_callback(i + 1, len(queries))
        return results

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.debug("Query embedding cache cleared")
