"""
Keyword priority tiers.

Not every keyword is equally telling: a character's name matters more than
a filler word. Each keyword is assigned one of four tier weights from a
PriorityContext, and the tier weights turn per-keyword match scores into a
weighted average.

Tier resolution order is critical, high, low, normal; the first tier whose
test passes wins.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from chunkrank.core.models.chunk import Chunk
from chunkrank.retrieval.keywords import KeywordMatchResult, extract_entities


class PriorityTier:
    """Tier weights."""

    CRITICAL = 2.0  # character names, critical plot terms
    HIGH = 1.5  # locations, named entities
    NORMAL = 1.0
    LOW = 0.5  # short and filler words


PRIORITY_TIERS: Dict[str, float] = {
    "critical": PriorityTier.CRITICAL,
    "high": PriorityTier.HIGH,
    "normal": PriorityTier.NORMAL,
    "low": PriorityTier.LOW,
}

FILLER_WORDS: FrozenSet[str] = frozenset(
    ["very", "quite", "rather", "somewhat", "just", "really", "pretty", "fairly"]
)

_TAG_PATTERN = re.compile(r"\[([^\]]+)\]")


def extract_tags(text: Optional[str]) -> List[str]:
    """
    Extract bracket tags such as ``[critical:dragon|high:keep]``.

    Tags are split on ``|``, stripped, lowercased and deduplicated in
    first-seen order.
    """
    if not text or not isinstance(text, str):
        return []
    tags: Dict[str, None] = {}
    for content in _TAG_PATTERN.findall(text):
        for tag in content.split("|"):
            tags.setdefault(tag.strip().lower(), None)
    return list(tags)


@dataclass(frozen=True)
class PriorityContext:
    """Everything tier assignment looks at."""

    character_names: List[str] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)
    critical_keywords: List[str] = field(default_factory=list)
    high_priority_keywords: List[str] = field(default_factory=list)
    low_priority_keywords: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


def _lowered(values: Iterable[str]) -> List[str]:
    return [v.lower() for v in values if v]


def build_priority_context(
    character_name: Optional[str] = None,
    aliases: Sequence[str] = (),
    entries: Sequence[Mapping[str, Any]] = (),
    critical: Sequence[str] = (),
    high: Sequence[str] = (),
    low: Sequence[str] = (),
    locations: Sequence[str] = (),
) -> PriorityContext:
    """
    Build a PriorityContext.

    Args:
        character_name: Current character; its name is critical
        aliases: Other names of the character
        entries: External entries whose ``tags`` and ``content`` may carry
            bracket tags
        critical: Explicit critical keywords
        high: Explicit high-priority keywords
        low: Explicit low-priority keywords
        locations: Known place names (high priority)
    """
    names: List[str] = []
    if character_name:
        names.append(character_name)
    names.extend(a for a in aliases if a)

    tags: List[str] = []
    for entry in entries:
        tags.extend(extract_tags(entry.get("tags")))
        tags.extend(extract_tags(entry.get("content")))

    return PriorityContext(
        character_names=names,
        locations=_lowered(locations),
        critical_keywords=_lowered(critical),
        high_priority_keywords=_lowered(high),
        low_priority_keywords=_lowered(low),
        tags=tags,
    )


def is_critical_keyword(keyword: str, context: PriorityContext) -> bool:
    normalized = keyword.lower()
    if normalized in context.critical_keywords:
        return True
    for name in context.character_names:
        lowered = name.lower()
        if normalized in lowered or lowered in normalized:
            return True
    return any(
        tag.startswith("critical:") and normalized in tag for tag in context.tags
    )


def is_high_priority_keyword(keyword: str, context: PriorityContext) -> bool:
    normalized = keyword.lower()
    if normalized in context.high_priority_keywords:
        return True
    if normalized in context.locations:
        return True
    if any(tag.startswith("high:") and normalized in tag for tag in context.tags):
        return True
    # Named entities are typically high priority
    return bool(extract_entities(keyword))


def is_low_priority_keyword(keyword: str, context: PriorityContext) -> bool:
    normalized = keyword.lower()
    if normalized in context.low_priority_keywords:
        return True
    return len(normalized) <= 2 or normalized in FILLER_WORDS


def assign_keyword_priority(keyword: str, context: PriorityContext) -> float:
    """Tier weight for a keyword (0.5, 1.0, 1.5 or 2.0)."""
    if is_critical_keyword(keyword, context):
        return PriorityTier.CRITICAL
    if is_high_priority_keyword(keyword, context):
        return PriorityTier.HIGH
    if is_low_priority_keyword(keyword, context):
        return PriorityTier.LOW
    return PriorityTier.NORMAL


def apply_keyword_weights(chunk: Chunk, context: PriorityContext) -> Dict[str, float]:
    """Map each of the chunk's keywords to its tier weight."""
    return {
        keyword.lower(): assign_keyword_priority(keyword, context)
        for keyword in chunk.all_keywords
    }


def calculate_weighted_keyword_score(
    match_result: Optional[KeywordMatchResult],
    keyword_weights: Optional[Mapping[str, float]] = None,
) -> float:
    """
    Weighted average of match scores: ``min(1, sum(s * w) / sum(w))``.

    Weights are looked up by the matched chunk keyword; unknown keywords
    weigh NORMAL.
    """
    if match_result is None or not match_result.matches:
        return 0.0
    weights = keyword_weights or {}

    weighted_total = 0.0
    weight_total = 0.0
    for match in match_result.matches:
        weight = weights.get(match.chunk_keyword.lower(), PriorityTier.NORMAL)
        weighted_total += match.score * weight
        weight_total += weight

    if weight_total <= 0:
        return 0.0
    return min(1.0, weighted_total / weight_total)
