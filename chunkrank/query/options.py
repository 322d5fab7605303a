"""
Per-call search options.

SearchOptions carries everything one ``search`` call may override. Defaults
come from the loaded Config via ``SearchOptions.from_config``; validation
raises typed errors before any stage runs.
"""

from dataclasses import dataclass, fields, replace
from threading import Event
from typing import Any, Optional

from chunkrank.core.config import Config
from chunkrank.core.config.search import (
    SEARCH_MODES,
    SIMILARITY_ALGORITHMS,
    VECTOR_SEARCH_MODES,
    DecayConfig,
)
from chunkrank.core.exceptions import InvalidSearchModeError, ValidationError
from chunkrank.features.pipeline import PipelineSettings
from chunkrank.retrieval.priority import PriorityContext


@dataclass
class SearchOptions:
    """
    Options for one search call.

    Attributes:
        search_mode: keyword, vector or hybrid
        top_k: Maximum number of ranked results
        threshold: Inclusive lower bound on the final score
        apply_importance: Importance weighting (and tier re-rank if enabled)
        apply_conditions: Condition filter before the search
        apply_groups: Group boost and required-group enforcement
        apply_decay: Temporal decay (also needs decay.enabled)
        keyword_weight: Keyword share of the hybrid score
        vector_weight: Vector share of the hybrid score
        dual_vector: Fuse summary and full-text searches with RRF
        similarity_algorithm: cosine, jaccard or hamming
        vector_search_mode: summary, full or both (single-vector search)
        collection_id: Collection for vector enrichment
        priority_context: Rescore keyword candidates with priority tiers
        use_cache: Query embedding cache override
        cancel_event: Checked before the embedding provider is called
    """

    search_mode: str = "hybrid"
    top_k: int = 5
    threshold: float = 0.6
    apply_importance: bool = True
    apply_conditions: bool = True
    apply_groups: bool = True
    apply_decay: bool = False
    keyword_weight: float = 0.3
    vector_weight: float = 0.7
    dual_vector: bool = False
    similarity_algorithm: str = "cosine"
    vector_search_mode: str = "full"
    collection_id: Optional[str] = None
    priority_context: Optional[PriorityContext] = None
    use_cache: Optional[bool] = None
    cancel_event: Optional[Event] = None

    # Stage parameters, normally filled from Config
    candidate_multiplier: int = 2
    boost_multiplier: float = 1.3
    max_required_to_add: int = 5
    importance_ranking: bool = False
    use_tier_ranking: bool = True
    min_importance: int = 0
    decay: Optional[DecayConfig] = None

    @classmethod
    def from_config(cls, config: Optional[Config] = None, **overrides: Any) -> "SearchOptions":
        """
        Build options from configuration defaults plus explicit overrides.

        Unknown override names raise ValidationError; ``None`` overrides are
        ignored so CLI flags left unset keep the configured value.
        """
        config = config or Config()
        search = config.search
        options = cls(
            search_mode=search.search_mode,
            top_k=search.top_k,
            threshold=search.threshold,
            apply_importance=search.apply_importance,
            apply_conditions=search.apply_conditions,
            apply_groups=search.apply_groups,
            apply_decay=search.apply_decay,
            keyword_weight=search.keyword_weight,
            vector_weight=search.vector_weight,
            dual_vector=search.dual_vector,
            similarity_algorithm=search.similarity_algorithm,
            vector_search_mode=config.vector.search_mode,
            use_cache=config.vector.use_cache,
            candidate_multiplier=config.vector.candidate_multiplier,
            boost_multiplier=config.groups.boost_multiplier,
            max_required_to_add=config.groups.max_required_to_add,
            importance_ranking=config.importance.importance_ranking,
            use_tier_ranking=config.importance.use_tier_ranking,
            min_importance=config.importance.min_importance,
            decay=config.decay,
        )
        return options.with_overrides(**overrides)

    def with_overrides(self, **overrides: Any) -> "SearchOptions":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValidationError(
                f"Unknown search option(s): {', '.join(unknown)}",
                context={"unknown": unknown},
            )
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def validate(self) -> None:
        """
        Check option values.

        Raises:
            InvalidSearchModeError: Unsupported search mode
            ValidationError: Any other out-of-range option
        """
        if self.search_mode not in SEARCH_MODES:
            raise InvalidSearchModeError(
                f"Invalid search mode: {self.search_mode}",
                context={"search_mode": self.search_mode},
            )
        if self.similarity_algorithm not in SIMILARITY_ALGORITHMS:
            raise ValidationError(
                f"Unknown similarity algorithm: {self.similarity_algorithm}",
                context={"similarity_algorithm": self.similarity_algorithm},
            )
        if self.vector_search_mode not in VECTOR_SEARCH_MODES:
            raise ValidationError(
                f"Unknown vector search mode: {self.vector_search_mode}",
                context={"vector_search_mode": self.vector_search_mode},
            )
        if self.top_k <= 0:
            raise ValidationError(
                f"top_k must be positive, got {self.top_k}", context={"top_k": self.top_k}
            )
        for name in ("threshold", "keyword_weight", "vector_weight"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValidationError(
                    f"{name} must be between 0 and 1, got {value}", context={name: value}
                )
        if self.candidate_multiplier < 1:
            raise ValidationError("candidate_multiplier must be >= 1")

    @property
    def candidate_count(self) -> int:
        """Matcher result count before the pipeline narrows to top_k."""
        return self.top_k * self.candidate_multiplier

    def pipeline_settings(self) -> PipelineSettings:
        return PipelineSettings(
            threshold=self.threshold,
            top_k=self.top_k,
            apply_groups=self.apply_groups,
            apply_importance=self.apply_importance,
            apply_decay=self.apply_decay,
            boost_multiplier=self.boost_multiplier,
            max_required_to_add=self.max_required_to_add,
            importance_ranking=self.importance_ranking,
            use_tier_ranking=self.use_tier_ranking,
            decay=self.decay or DecayConfig(),
        )
