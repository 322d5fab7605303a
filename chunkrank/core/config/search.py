"""
Search configuration.

Provides configuration for search mode defaults, keyword extraction and
matching, vector search, dual-vector fusion and the feature pipeline stages
(groups, importance, decay, conditions).
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from chunkrank.core.exceptions import ConfigValidationError

SEARCH_MODES: FrozenSet[str] = frozenset(["keyword", "vector", "hybrid"])
SIMILARITY_ALGORITHMS: FrozenSet[str] = frozenset(["cosine", "jaccard", "hamming"])
VECTOR_SEARCH_MODES: FrozenSet[str] = frozenset(["summary", "full", "both"])
KEYWORD_MATCH_MODES: FrozenSet[str] = frozenset(
    ["exact", "prefix", "substring", "fuzzy"]
)
DECAY_MODES: FrozenSet[str] = frozenset(["exponential", "linear"])


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigValidationError(f"{name} must be between 0 and 1, got {value}")


def _check_choice(name: str, value: str, allowed: FrozenSet[str]) -> None:
    if value not in allowed:
        raise ConfigValidationError(
            f"{name} must be one of {sorted(allowed)}, got: {value}"
        )


@dataclass
class SearchDefaults:
    """Default options for a search call."""

    search_mode: str = "hybrid"  # keyword, vector, hybrid
    top_k: int = 5
    threshold: float = 0.6
    apply_importance: bool = True
    apply_conditions: bool = True
    apply_groups: bool = True
    apply_decay: bool = False
    keyword_weight: float = 0.3
    vector_weight: float = 0.7
    dual_vector: bool = False
    similarity_algorithm: str = "cosine"  # cosine, jaccard, hamming

    def __post_init__(self) -> None:
        _check_choice("search.search_mode", self.search_mode, SEARCH_MODES)
        _check_choice(
            "search.similarity_algorithm",
            self.similarity_algorithm,
            SIMILARITY_ALGORITHMS,
        )
        if self.top_k <= 0:
            raise ConfigValidationError(
                f"search.top_k must be positive, got {self.top_k}"
            )
        _check_unit_interval("search.threshold", self.threshold)
        # Weights need not sum to 1
        _check_unit_interval("search.keyword_weight", self.keyword_weight)
        _check_unit_interval("search.vector_weight", self.vector_weight)


@dataclass
class KeywordConfig:
    """Keyword extraction and trie matching configuration."""

    min_length: int = 3
    max_length: int = 50
    max_keywords: int = 50
    exact_weight: float = 1.0
    prefix_weight: float = 0.8
    match_mode: str = "prefix"  # exact, prefix, substring, fuzzy
    fuzzy_threshold: float = 0.8

    def __post_init__(self) -> None:
        if self.min_length < 1 or self.min_length > self.max_length:
            raise ConfigValidationError(
                "keywords.min_length must be at least 1 and not exceed "
                f"keywords.max_length ({self.min_length} > {self.max_length})"
            )
        if self.max_keywords <= 0:
            raise ConfigValidationError("keywords.max_keywords must be positive")
        _check_choice("keywords.match_mode", self.match_mode, KEYWORD_MATCH_MODES)
        _check_unit_interval("keywords.fuzzy_threshold", self.fuzzy_threshold)


@dataclass
class VectorConfig:
    """Vector matcher configuration."""

    cache_capacity: int = 100
    use_cache: bool = True
    search_mode: str = "full"  # summary, full, both
    candidate_multiplier: int = 2
    source: str = "default"  # provider identity used in cache keys

    def __post_init__(self) -> None:
        if self.cache_capacity <= 0:
            raise ConfigValidationError("vector.cache_capacity must be positive")
        if self.candidate_multiplier < 1:
            raise ConfigValidationError("vector.candidate_multiplier must be >= 1")
        _check_choice("vector.search_mode", self.search_mode, VECTOR_SEARCH_MODES)


@dataclass
class DualVectorConfig:
    """Reciprocal rank fusion settings for summary + full search."""

    rrf_k: int = 60
    summary_weight: float = 1.5
    full_weight: float = 1.0

    def __post_init__(self) -> None:
        if self.rrf_k < 0:
            raise ConfigValidationError("dual_vector.rrf_k must not be negative")
        if self.summary_weight < 0 or self.full_weight < 0:
            raise ConfigValidationError("dual_vector weights must not be negative")


@dataclass
class GroupConfig:
    """Chunk group boost and required-member enforcement."""

    boost_multiplier: float = 1.3
    max_required_to_add: int = 5

    def __post_init__(self) -> None:
        if self.boost_multiplier <= 0:
            raise ConfigValidationError("groups.boost_multiplier must be positive")
        if self.max_required_to_add < 0:
            raise ConfigValidationError(
                "groups.max_required_to_add must not be negative"
            )


@dataclass
class ImportanceConfig:
    """Importance weighting and tier ranking."""

    importance_ranking: bool = False  # re-rank final results by tier
    use_tier_ranking: bool = True
    min_importance: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.min_importance <= 200:
            raise ConfigValidationError(
                f"importance.min_importance must be in [0, 200], got {self.min_importance}"
            )


@dataclass
class DecayConfig:
    """Temporal decay for chat-sourced chunks."""

    enabled: bool = False
    mode: str = "exponential"  # exponential, linear
    half_life: float = 50.0  # messages
    linear_rate: float = 0.01  # per message
    min_relevance: float = 0.3
    scene_aware: bool = False

    def __post_init__(self) -> None:
        _check_choice("decay.mode", self.mode, DECAY_MODES)
        if self.half_life <= 0:
            raise ConfigValidationError("decay.half_life must be positive")
        if not 0 < self.linear_rate <= 1:
            raise ConfigValidationError("decay.linear_rate must be in (0, 1]")
        _check_unit_interval("decay.min_relevance", self.min_relevance)


@dataclass
class ConditionsConfig:
    """Condition evaluation settings."""

    context_window: int = 10  # recent messages considered
    random_seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.context_window <= 0:
            raise ConfigValidationError("conditions.context_window must be positive")
