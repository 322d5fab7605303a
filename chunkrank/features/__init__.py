"""
Feature stages: conditions, groups, importance and temporal decay.

Architecture Position
---------------------
    CLI (outermost)
      └── Query (orchestrator, options)
            └── **Feature Modules** (retrieval, features - you are here)
                  └── Core (innermost)

Stage order (pipeline.py)
-------------------------
    1. condition filter   (conditions.py, emotions.py; before the search)
    3. group boost        (groups.py)
    4. importance         (importance.py)
    5. temporal decay     (decay.py)
    6. threshold + top-K  (pipeline.py)
    7. required groups    (groups.py)
    8. tier re-rank       (importance.py)
"""

from chunkrank.features.conditions import (
    ConditionEvaluator,
    ValidationResult,
    build_search_context,
    evaluate_condition_rule,
    evaluate_conditions,
    filter_chunks_by_conditions,
    get_condition_stats,
    validate_conditions,
)
from chunkrank.features.decay import (
    apply_decay_to_results,
    apply_scene_aware_decay,
    apply_temporal_decay,
    get_decay_stats,
    project_decay_curve,
    validate_decay_settings,
)
from chunkrank.features.emotions import (
    EmotionDetector,
    NullEmotionDetector,
    StaticEmotionDetector,
)
from chunkrank.features.groups import (
    apply_group_boosts,
    build_group_index,
    enforce_required_groups,
    get_group_stats,
    suggest_groups,
    validate_chunk_group,
)
from chunkrank.features.importance import (
    apply_importance_to_results,
    apply_importance_weighting,
    get_importance_stats,
    rank_chunks_by_importance,
)
from chunkrank.features.pipeline import (
    FeaturePipeline,
    PipelineSettings,
    select_top_k,
)

__all__ = [
    "ConditionEvaluator",
    "ValidationResult",
    "build_search_context",
    "evaluate_condition_rule",
    "evaluate_conditions",
    "filter_chunks_by_conditions",
    "get_condition_stats",
    "validate_conditions",
    "apply_decay_to_results",
    "apply_scene_aware_decay",
    "apply_temporal_decay",
    "get_decay_stats",
    "project_decay_curve",
    "validate_decay_settings",
    "EmotionDetector",
    "NullEmotionDetector",
    "StaticEmotionDetector",
    "apply_group_boosts",
    "build_group_index",
    "enforce_required_groups",
    "get_group_stats",
    "suggest_groups",
    "validate_chunk_group",
    "apply_importance_to_results",
    "apply_importance_weighting",
    "get_importance_stats",
    "rank_chunks_by_importance",
    "FeaturePipeline",
    "PipelineSettings",
    "select_top_k",
]
