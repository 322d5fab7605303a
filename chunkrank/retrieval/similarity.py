"""
Vector similarity algorithms and top-K selection.

Three algorithms share one contract: given two equal-length numeric
vectors, return a similarity where higher means more relevant.

- cosine: dot product over the product of norms (0 when either norm is 0)
- jaccard: |A and B| / |A or B| over the binarized vectors (component > 0)
- hamming: 1 - differing components / dimension, over binarized vectors

Each algorithm has a scalar form for one pair and a batch form that scores
a query against a matrix of chunk embeddings with numpy.
"""

import math
import time
from typing import Any, Callable, Dict, List, Sequence

import numpy as np

from chunkrank.core.exceptions import InvalidEmbeddingsError
from chunkrank.core.logging import get_logger
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.scored import ScoredChunk

logger = get_logger(__name__)

SimilarityFn = Callable[[Sequence[float], Sequence[float]], float]
BatchSimilarityFn = Callable[[np.ndarray, np.ndarray], np.ndarray]


def _as_pair(a: Sequence[float], b: Sequence[float]) -> "tuple[np.ndarray, np.ndarray]":
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise InvalidEmbeddingsError(
            f"Vector dimension mismatch: {va.shape[0]} vs {vb.shape[0]}"
        )
    return va, vb


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0 when either vector has zero norm."""
    va, vb = _as_pair(a, b)
    return float(_batch_cosine(va, vb[np.newaxis, :])[0])


def jaccard_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Jaccard index of the binarized vectors; two empty sets score 1."""
    va, vb = _as_pair(a, b)
    return float(_batch_jaccard(va, vb[np.newaxis, :])[0])


def hamming_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Share of equal components between the binarized vectors."""
    va, vb = _as_pair(a, b)
    return float(_batch_hamming(va, vb[np.newaxis, :])[0])


def _batch_cosine(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    dot_product = matrix @ query
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, dot_product / np.where(norms > 0, norms, 1.0), 0.0)
    return scores


def _batch_jaccard(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    q = query > 0
    m = matrix > 0
    intersection = np.logical_and(m, q).sum(axis=1)
    union = np.logical_or(m, q).sum(axis=1)
    return np.where(union > 0, intersection / np.where(union > 0, union, 1), 1.0)


def _batch_hamming(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    if matrix.shape[1] == 0:
        return np.ones(matrix.shape[0])
    differing = np.not_equal(matrix > 0, query > 0).sum(axis=1)
    return 1.0 - differing / matrix.shape[1]


_SIMILARITY_FUNCTIONS: Dict[str, SimilarityFn] = {
    "cosine": cosine_similarity,
    "jaccard": jaccard_similarity,
    "hamming": hamming_similarity,
}

_BATCH_FUNCTIONS: Dict[str, BatchSimilarityFn] = {
    "cosine": _batch_cosine,
    "jaccard": _batch_jaccard,
    "hamming": _batch_hamming,
}


def get_similarity_fn(algorithm: str) -> SimilarityFn:
    """
    Look up a similarity function by name.

    Raises:
        ValueError: If the algorithm is unknown
    """
    try:
        return _SIMILARITY_FUNCTIONS[algorithm]
    except KeyError:
        raise ValueError(
            f"Unknown similarity algorithm '{algorithm}'. "
            f"Available: {sorted(_SIMILARITY_FUNCTIONS)}"
        ) from None


def _check_dimensions(query: np.ndarray, chunks: Sequence[Chunk]) -> None:
    """Aggregate every chunk whose dimension differs from the query."""
    issues = [
        {
            "index": index,
            "id": chunk.id,
            "issue": f"dimension {len(chunk.embedding or ())} != {query.shape[0]}",
        }
        for index, chunk in enumerate(chunks)
        if len(chunk.embedding or ()) != query.shape[0]
    ]
    if issues:
        raise InvalidEmbeddingsError(
            f"{len(issues)} chunk embeddings do not match the query dimension "
            f"{query.shape[0]}",
            issues=issues,
            invalid_count=len(issues),
            total_chunks=len(chunks),
        )


def find_top_k(
    query_embedding: Sequence[float],
    chunks: Sequence[Chunk],
    k: int = 5,
    threshold: float = 0.0,
    algorithm: str = "cosine",
) -> List[ScoredChunk]:
    """
    Rank chunks by similarity to the query embedding.

    Sorts descending by similarity (stable, so ties keep input order),
    drops similarities below ``threshold`` and truncates to ``k``.

    Args:
        query_embedding: Query vector
        chunks: Chunks with validated embeddings
        k: Maximum number of results
        threshold: Inclusive lower bound on similarity
        algorithm: cosine, jaccard or hamming

    Returns:
        ScoredChunk list with ``score`` and ``similarity`` set

    Raises:
        InvalidEmbeddingsError: If any chunk dimension differs from the query
        ValueError: If the algorithm is unknown
    """
    get_similarity_fn(algorithm)
    if not chunks:
        return []

    start = time.perf_counter()
    query = np.asarray(query_embedding, dtype=float)
    _check_dimensions(query, chunks)

    matrix = np.asarray([chunk.embedding for chunk in chunks], dtype=float)
    scores = _BATCH_FUNCTIONS[algorithm](query, matrix)

    order = sorted(range(len(chunks)), key=lambda i: -scores[i])
    results: List[ScoredChunk] = []
    for i in order:
        similarity = float(scores[i])
        if similarity < threshold:
            continue
        results.append(
            ScoredChunk(chunk=chunks[i], score=similarity, similarity=similarity)
        )
        if len(results) >= k:
            break

    logger.debug(
        "Similarity search",
        algorithm=algorithm,
        chunks=len(chunks),
        results=len(results),
        duration_ms=f"{(time.perf_counter() - start) * 1000:.2f}",
    )
    return results


def calculate_similarity_stats(results: Sequence[ScoredChunk]) -> Dict[str, Any]:
    """Distribution of similarities: count, min, max, mean, median."""
    scores = sorted(
        r.similarity
        for r in results
        if r.similarity is not None and not math.isnan(r.similarity)
    )
    if not scores:
        return {"count": 0, "min": 0.0, "max": 0.0, "mean": 0.0, "median": 0.0}
    return {
        "count": len(scores),
        "min": scores[0],
        "max": scores[-1],
        "mean": sum(scores) / len(scores),
        "median": scores[len(scores) // 2],
    }
