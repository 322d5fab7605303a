"""
Importance weighting.

Chunk importance is a 0-200 percentage, 100 being neutral. Weighting
combines multiplicative scaling with a small additive nudge:

    score' = clamp01(score * importance / 100 + (importance - 100) / 1000)

so importance 150 turns 0.8 into 1.0 (clamped) and importance 50 turns it
into 0.35. Tier ranking sorts results into four importance buckets
(critical >= 175, high >= 125, normal >= 75, low) and concatenates them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, TypeVar, Union

from chunkrank.core.logging import get_logger
from chunkrank.core.models.chunk import DEFAULT_IMPORTANCE, Chunk
from chunkrank.core.models.scored import ScoredChunk

logger = get_logger(__name__)

TIER_CRITICAL = 175
TIER_HIGH = 125
TIER_NORMAL = 75
DISTRIBUTION_BUCKET = 25

T = TypeVar("T", Chunk, ScoredChunk)


def _importance(item: Union[Chunk, ScoredChunk]) -> int:
    chunk = item.chunk if isinstance(item, ScoredChunk) else item
    return chunk.importance


def apply_importance_weighting(score: float, importance: int = DEFAULT_IMPORTANCE) -> float:
    """
    Adjust a score by importance.

    Args:
        score: Original score (0-1)
        importance: Importance percentage (0-200)

    Returns:
        Adjusted score clamped to [0, 1]; unchanged for importance 100
    """
    if importance == DEFAULT_IMPORTANCE:
        return score
    adjusted = score * (importance / 100) + (importance - 100) / 1000
    return max(0.0, min(1.0, adjusted))


def apply_importance_to_results(results: Sequence[ScoredChunk]) -> List[ScoredChunk]:
    """Apply importance weighting to every result, flagging changed entries."""
    weighted: List[ScoredChunk] = []
    for result in results:
        importance = result.chunk.importance
        if importance == DEFAULT_IMPORTANCE:
            weighted.append(result)
            continue
        weighted.append(
            result.evolve(
                score=apply_importance_weighting(result.score, importance),
                original_score=(
                    result.original_score
                    if result.original_score is not None
                    else result.score
                ),
                importance_applied=True,
            )
        )
    return weighted


def get_importance_tier(importance: int) -> str:
    if importance >= TIER_CRITICAL:
        return "critical"
    if importance >= TIER_HIGH:
        return "high"
    if importance >= TIER_NORMAL:
        return "normal"
    return "low"


@dataclass
class PriorityTiers:
    """Items bucketed by importance tier, input order kept in each bucket."""

    critical: List[Any] = field(default_factory=list)
    high: List[Any] = field(default_factory=list)
    normal: List[Any] = field(default_factory=list)
    low: List[Any] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "critical": len(self.critical),
            "high": len(self.high),
            "normal": len(self.normal),
            "low": len(self.low),
        }


def group_chunks_by_priority_tier(items: Sequence[T]) -> PriorityTiers:
    tiers = PriorityTiers()
    for item in items:
        getattr(tiers, get_importance_tier(_importance(item))).append(item)
    return tiers


def _by_score(results: Sequence[ScoredChunk]) -> List[ScoredChunk]:
    return sorted(results, key=lambda r: r.score, reverse=True)


def rank_chunks_by_importance(
    results: Sequence[ScoredChunk], use_tiers: bool = False
) -> List[ScoredChunk]:
    """
    Re-rank results by importance.

    Without tiers this is a stable sort by score. With tiers, results are
    bucketed critical -> high -> normal -> low and each bucket is sorted by
    score descending (stable).
    """
    if not use_tiers:
        return _by_score(results)

    tiers = group_chunks_by_priority_tier(results)
    ranked = (
        _by_score(tiers.critical)
        + _by_score(tiers.high)
        + _by_score(tiers.normal)
        + _by_score(tiers.low)
    )
    logger.debug("Ranked results by priority tier", total=len(ranked), **tiers.counts())
    return ranked


def filter_by_min_importance(items: Sequence[T], min_importance: int = 0) -> List[T]:
    if min_importance == 0:
        return list(items)
    filtered = [item for item in items if _importance(item) >= min_importance]
    logger.debug(
        "Filtered by minimum importance",
        before=len(items),
        after=len(filtered),
        min_importance=min_importance,
    )
    return filtered


def get_importance_stats(items: Sequence[Union[Chunk, ScoredChunk]]) -> Dict[str, Any]:
    """
    Importance distribution of a chunk set.

    Returns:
        Dict with min, max, avg, median (upper median) and distribution,
        a count per 25-wide bucket keyed by the bucket's lower bound
    """
    if not items:
        return {"min": 0, "max": 0, "avg": 0.0, "median": 0, "distribution": {}}

    values = sorted(_importance(item) for item in items)
    distribution: Dict[int, int] = {}
    for value in values:
        bucket = (value // DISTRIBUTION_BUCKET) * DISTRIBUTION_BUCKET
        distribution[bucket] = distribution.get(bucket, 0) + 1

    return {
        "min": values[0],
        "max": values[-1],
        "avg": sum(values) / len(values),
        "median": values[len(values) // 2],
        "distribution": distribution,
    }
