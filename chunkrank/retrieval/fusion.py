"""
Result Fusion: Reciprocal Rank Fusion and Weighted Sum.

Two distinct merge algorithms are used by the engine and are kept separate:

- **RRF (Reciprocal Rank Fusion)**: Position-based fusion used for
  dual-vector search, where both lists carry the same signal (similarity)
  at different granularity (summary vs. full text). Rank ``r`` (0-based)
  contributes ``weight / (k + r + 1)``; contributions are summed per
  chunk id. Defaults: k=60, summary weight 1.5, full weight 1.0.

- **Weighted sum**: Score-based fusion used for hybrid keyword + vector
  search, where the two signals are different in kind:
  ``score = keyword_score * keyword_weight + vector_score * vector_weight``
  over the union of both result sets, a missing side counting as 0.

Both outputs are deduplicated by chunk id (first occurrence wins for
non-score fields) and stable-sorted by descending combined score, so ties
keep their first-occurrence order.
"""

from typing import Dict, List, Sequence, Set

from chunkrank.core.logging import get_logger
from chunkrank.core.models.scored import ScoredChunk

logger = get_logger(__name__)

DEFAULT_RRF_K = 60


def _calculate_rrf_scores(
    list_a: Sequence[ScoredChunk],
    list_b: Sequence[ScoredChunk],
    k: int,
    weight_a: float,
    weight_b: float,
) -> Dict[str, float]:
    """Calculate weighted RRF scores from two ranked lists."""
    rrf_scores: Dict[str, float] = {}

    for rank, result in enumerate(list_a):
        rrf_scores[result.id] = rrf_scores.get(result.id, 0.0) + weight_a / (
            k + rank + 1
        )

    for rank, result in enumerate(list_b):
        rrf_scores[result.id] = rrf_scores.get(result.id, 0.0) + weight_b / (
            k + rank + 1
        )

    return rrf_scores


def _build_result_map(
    list_a: Sequence[ScoredChunk], list_b: Sequence[ScoredChunk]
) -> Dict[str, ScoredChunk]:
    """Map chunk id to its first occurrence across both lists."""
    result_map: Dict[str, ScoredChunk] = {}
    for result in list(list_a) + list(list_b):
        if result.id not in result_map:
            result_map[result.id] = result
    return result_map


def reciprocal_rank_fusion(
    list_a: Sequence[ScoredChunk],
    list_b: Sequence[ScoredChunk],
    k: int = DEFAULT_RRF_K,
    weight_a: float = 1.0,
    weight_b: float = 1.0,
) -> List[ScoredChunk]:
    """Fuse two ranked lists using weighted Reciprocal Rank Fusion.

    Args:
        list_a: First ranked list (e.g. summary results).
        list_b: Second ranked list (e.g. full-text results).
        k: RRF constant. Higher = more uniform weighting.
        weight_a: Weight applied to contributions from list_a.
        weight_b: Weight applied to contributions from list_b.

    Returns:
        Deduplicated list with ``rrf_score`` and ``score`` set to the fused
        score, sorted descending.
    """
    rrf_scores = _calculate_rrf_scores(list_a, list_b, k, weight_a, weight_b)
    result_map = _build_result_map(list_a, list_b)

    merged = [
        result.evolve(rrf_score=rrf_scores[chunk_id], score=rrf_scores[chunk_id])
        for chunk_id, result in result_map.items()
    ]
    # sorted() is stable: equal scores keep first-occurrence order
    merged = sorted(merged, key=lambda r: -r.score)

    logger.debug(
        "RRF merge",
        list_a=len(list_a),
        list_b=len(list_b),
        merged=len(merged),
        k=k,
    )
    return merged


def weighted_sum_fusion(
    keyword_results: Sequence[ScoredChunk],
    vector_results: Sequence[ScoredChunk],
    keyword_weight: float = 0.3,
    vector_weight: float = 0.7,
) -> List[ScoredChunk]:
    """Fuse keyword and vector results by weighted score sum.

    Algorithm:
    1. Keyword results enter first with ``keyword_score = score`` and
       ``vector_score = 0``
    2. Vector results either complete an existing entry or enter with
       ``keyword_score = 0``
    3. For each unique chunk: fused = kw * keyword_weight + vec * vector_weight
    4. Stable sort by fused score, descending

    Weights need not sum to 1.

    Returns:
        Deduplicated, fused list (not truncated).
    """
    merged: Dict[str, ScoredChunk] = {}

    for result in keyword_results:
        if result.id in merged:
            continue
        merged[result.id] = result.evolve(
            keyword_score=result.score,
            vector_score=0.0,
            score=result.score * keyword_weight,
        )

    vector_seen: Set[str] = set()
    for result in vector_results:
        if result.id in vector_seen:
            continue
        vector_seen.add(result.id)
        existing = merged.get(result.id)
        if existing is None:
            merged[result.id] = result.evolve(
                keyword_score=0.0,
                vector_score=result.score,
                score=result.score * vector_weight,
            )
            continue
        merged[result.id] = existing.evolve(
            vector_score=result.score,
            similarity=result.similarity,
            rrf_score=result.rrf_score,
            score=(existing.keyword_score or 0.0) * keyword_weight
            + result.score * vector_weight,
        )

    fused = sorted(merged.values(), key=lambda r: -r.score)
    logger.debug(
        "Weighted merge",
        keyword=len(keyword_results),
        vector=len(vector_results),
        merged=len(fused),
    )
    return fused
