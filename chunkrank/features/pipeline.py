"""
Feature pipeline.

Post-search stages applied in a fixed order:

    3. group boost
    4. importance weighting
    5. temporal decay
    6. threshold + top-K
    7. required-group enforcement
    8. importance tier re-rank

Each stage can be switched off, but the order cannot change: required
groups pick their member from the scores produced by stages 3-5, and the
tier re-rank works on the final, enforced result set.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from chunkrank.core.config.search import DecayConfig
from chunkrank.core.logging import StageLogger, get_logger
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.context import SearchContext
from chunkrank.core.models.scored import ScoredChunk
from chunkrank.features.decay import apply_decay_for_context
from chunkrank.features.groups import (
    DEFAULT_BOOST_MULTIPLIER,
    DEFAULT_MAX_REQUIRED_TO_ADD,
    apply_group_boosts,
    enforce_required_groups,
)
from chunkrank.features.importance import (
    apply_importance_to_results,
    rank_chunks_by_importance,
)

logger = get_logger(__name__)

STAGE_GROUP_BOOST = "group_boost"
STAGE_IMPORTANCE = "importance"
STAGE_DECAY = "decay"
STAGE_SELECT = "threshold_top_k"
STAGE_REQUIRED_GROUPS = "required_groups"
STAGE_TIER_RANK = "tier_rank"


def select_top_k(
    results: Sequence[ScoredChunk], threshold: float, top_k: int
) -> List[ScoredChunk]:
    """
    Keep results scoring at least ``threshold``, best first, at most ``top_k``.

    The threshold is inclusive and the sort is stable, so equal scores keep
    their incoming order.
    """
    kept = [r for r in results if r.score >= threshold]
    kept.sort(key=lambda r: r.score, reverse=True)
    return kept[:top_k]


@dataclass
class PipelineSettings:
    """Switches and parameters of the feature stages."""

    threshold: float = 0.6
    top_k: int = 5
    apply_groups: bool = True
    apply_importance: bool = True
    apply_decay: bool = False
    boost_multiplier: float = DEFAULT_BOOST_MULTIPLIER
    max_required_to_add: int = DEFAULT_MAX_REQUIRED_TO_ADD
    importance_ranking: bool = False
    use_tier_ranking: bool = True
    decay: DecayConfig = field(default_factory=DecayConfig)


@dataclass
class PipelineOutcome:
    """Final results plus the scored list seen by threshold selection."""

    results: List[ScoredChunk]
    scored: List[ScoredChunk]


class FeaturePipeline:
    """
    Applies the post-search feature stages in order.

    Stage timing goes to the StageLogger passed in (the orchestrator's), so
    a search reports one set of stage durations.
    """

    def __init__(
        self, settings: PipelineSettings, stage_logger: Optional[StageLogger] = None
    ) -> None:
        self.settings = settings
        self.stage_logger = stage_logger or StageLogger("pipeline")

    def run(
        self,
        query: str,
        scored: Sequence[ScoredChunk],
        searchable_chunks: Sequence[Chunk],
        context: Optional[SearchContext] = None,
    ) -> PipelineOutcome:
        """
        Run stages 3-8 over the matcher output.

        Args:
            query: Query text (group triggers)
            scored: Matcher output with scores
            searchable_chunks: Chunks that passed the condition filter; the
                universe for group membership and required groups
            context: Search context (decay)

        Returns:
            PipelineOutcome with final results
        """
        settings = self.settings
        stages = self.stage_logger
        current = list(scored)

        if settings.apply_groups:
            stages.start_stage(STAGE_GROUP_BOOST)
            current = apply_group_boosts(
                current, query, settings.boost_multiplier, all_chunks=searchable_chunks
            )
            stages.log_progress("Group boosts applied", count=len(current))

        if settings.apply_importance:
            stages.start_stage(STAGE_IMPORTANCE)
            current = apply_importance_to_results(current)
            stages.log_progress("Importance applied", count=len(current))

        if settings.apply_decay and settings.decay.enabled and context is not None:
            stages.start_stage(STAGE_DECAY)
            current = apply_decay_for_context(current, context, settings.decay)
            stages.log_progress("Temporal decay applied", count=len(current))

        stages.start_stage(STAGE_SELECT)
        pre_selection = current
        results = select_top_k(current, settings.threshold, settings.top_k)
        stages.log_progress(
            "Threshold and top-K applied",
            threshold=settings.threshold,
            top_k=settings.top_k,
            count=len(results),
        )

        if settings.apply_groups:
            stages.start_stage(STAGE_REQUIRED_GROUPS)
            results = enforce_required_groups(
                results,
                searchable_chunks,
                scored=pre_selection,
                max_to_add=settings.max_required_to_add,
            )
            stages.log_progress("Required groups enforced", count=len(results))

        if settings.apply_importance and settings.importance_ranking:
            stages.start_stage(STAGE_TIER_RANK)
            results = rank_chunks_by_importance(results, settings.use_tier_ranking)

        return PipelineOutcome(results=results, scored=pre_selection)
