"""
Temporal decay for chat-sourced chunks.

Older chat messages lose relevance with their age in messages:

- exponential: multiplier = 0.5 ** (age / half_life)
- linear:      multiplier = max(0, 1 - age * linear_rate)

The multiplier never drops below ``min_relevance``. Only chat chunks (source
"chat" with a message id) decay; temporally blind chunks are skipped and
flagged. With scene-aware decay, a chunk from an earlier scene ages from the
start of the current scene instead of from its own message.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

from chunkrank.core.config.search import DECAY_MODES, DecayConfig
from chunkrank.core.logging import get_logger
from chunkrank.core.models.context import Scene, SearchContext, find_scene
from chunkrank.core.models.scored import ScoredChunk
from chunkrank.features.conditions import ValidationResult

logger = get_logger(__name__)

DEFAULT_CURVE_AGES: Tuple[int, ...] = (0, 10, 20, 50, 100, 200)


# =============================================================================
# Score Decay
# =============================================================================


def calculate_decay_multiplier(age: float, settings: DecayConfig) -> float:
    """Decay multiplier for an age in messages, floored at min_relevance."""
    if settings.mode == "linear":
        multiplier = max(0.0, 1.0 - age * settings.linear_rate)
    else:
        multiplier = 0.5 ** (age / settings.half_life)
    return max(multiplier, settings.min_relevance)


def apply_temporal_decay(score: float, message_age: float, settings: DecayConfig) -> float:
    """
    Apply decay to one score.

    Returns the score unchanged when decay is disabled or the age is 0.
    """
    if not settings.enabled or message_age <= 0:
        return score
    return score * calculate_decay_multiplier(message_age, settings)


def _decay_result(
    result: ScoredChunk, age: int, settings: DecayConfig
) -> ScoredChunk:
    age = max(0, age)
    if age == 0:
        return result.evolve(message_age=0)
    multiplier = calculate_decay_multiplier(age, settings)
    return result.evolve(
        score=result.score * multiplier,
        original_score=(
            result.original_score if result.original_score is not None else result.score
        ),
        decay_applied=True,
        decay_multiplier=multiplier,
        message_age=age,
    )


def _decay_all(
    results: Sequence[ScoredChunk],
    settings: DecayConfig,
    age_of: Any,
    label: str,
) -> List[ScoredChunk]:
    decayed: List[ScoredChunk] = []
    blind = 0
    for result in results:
        chunk = result.chunk
        if not chunk.is_chat_chunk:
            decayed.append(result)
        elif chunk.temporally_blind:
            blind += 1
            decayed.append(result.evolve(temporally_blind=True, decay_applied=False))
        else:
            decayed.append(_decay_result(result, age_of(chunk.message_id), settings))

    logger.debug(
        f"Applied {label}",
        affected=sum(1 for r in decayed if r.decay_applied),
        temporally_blind=blind,
    )
    return decayed


def apply_decay_to_results(
    results: Sequence[ScoredChunk],
    current_message_id: int,
    settings: DecayConfig,
) -> List[ScoredChunk]:
    """Decay chat results by their distance from the current message."""
    if not settings.enabled:
        return list(results)
    return _decay_all(
        results,
        settings,
        lambda message_id: current_message_id - message_id,
        "temporal decay",
    )


def scene_aware_age(
    message_id: int, current_message_id: int, scenes: Sequence[Scene]
) -> int:
    """
    Effective age of a message under scene-aware decay.

    When both messages fall in scenes and the scenes differ, the age is the
    distance from the start of the current scene. Otherwise it is the plain
    message distance.
    """
    current_scene = find_scene(current_message_id, scenes)
    chunk_scene = find_scene(message_id, scenes)
    if current_scene is not None and chunk_scene is not None and current_scene != chunk_scene:
        return current_message_id - current_scene.start
    return current_message_id - message_id


def apply_scene_aware_decay(
    results: Sequence[ScoredChunk],
    current_message_id: int,
    scenes: Sequence[Scene],
    settings: DecayConfig,
) -> List[ScoredChunk]:
    if not settings.enabled:
        return list(results)
    return _decay_all(
        results,
        settings,
        lambda message_id: scene_aware_age(message_id, current_message_id, scenes),
        "scene-aware decay",
    )


def apply_decay_for_context(
    results: Sequence[ScoredChunk],
    context: SearchContext,
    settings: DecayConfig,
) -> List[ScoredChunk]:
    """
    Decay results relative to the context's current message.

    Uses scene-aware decay when enabled and the context carries scenes. A
    context without a current message id leaves results unchanged.
    """
    if not settings.enabled or context.current_message_id is None:
        return list(results)
    if settings.scene_aware and context.scenes:
        return apply_scene_aware_decay(
            results, context.current_message_id, context.scenes, settings
        )
    return apply_decay_to_results(results, context.current_message_id, settings)


# =============================================================================
# Validation and Reporting
# =============================================================================


def validate_decay_settings(
    settings: Union[DecayConfig, Mapping[str, Any]]
) -> ValidationResult:
    """
    Check raw decay settings without raising.

    Only enabled settings are checked, matching what decay would use.
    """
    values = asdict(settings) if isinstance(settings, DecayConfig) else dict(settings)
    errors: List[str] = []
    if not values.get("enabled", False):
        return ValidationResult(valid=True)

    mode = values.get("mode", "exponential")
    if mode not in DECAY_MODES:
        errors.append('Decay mode must be "exponential" or "linear"')
    if mode == "exponential" and values.get("half_life", 50) <= 0:
        errors.append("Half-life must be greater than 0")
    if mode == "linear":
        rate = values.get("linear_rate", 0.01)
        if rate <= 0 or rate > 1:
            errors.append("Linear rate must be between 0 and 1")
    min_relevance = values.get("min_relevance", 0.3)
    if min_relevance < 0 or min_relevance > 1:
        errors.append("Minimum relevance must be between 0 and 1")

    return ValidationResult(valid=not errors, errors=errors)


@dataclass(frozen=True)
class DecayPoint:
    age: int
    score: float


def project_decay_curve(
    base_score: float,
    settings: DecayConfig,
    ages: Sequence[int] = DEFAULT_CURVE_AGES,
) -> List[DecayPoint]:
    """Score a chunk would have at each of the given ages."""
    return [DecayPoint(age, apply_temporal_decay(base_score, age, settings)) for age in ages]


def get_decay_stats(results: Sequence[ScoredChunk]) -> Dict[str, float]:
    """
    Impact of decay on a result list.

    Returns:
        affected count, average and maximum score reduction in percent, and
        the average effective age (only when something decayed)
    """
    decayed = [r for r in results if r.decay_applied]
    if not decayed:
        return {"affected": 0, "avg_reduction": 0.0, "max_reduction": 0.0}

    reductions = [(1.0 - (r.decay_multiplier or 1.0)) * 100 for r in decayed]

    return {
        "affected": len(decayed),
        "avg_reduction": sum(reductions) / len(reductions),
        "max_reduction": max(reductions),
        "avg_age": sum(r.message_age or 0 for r in decayed) / len(decayed),
    }
