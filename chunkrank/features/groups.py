"""
Chunk groups.

A chunk group is a named cluster of chunks sharing trigger keywords. Two
pipeline stages use groups:

- Group boost: when any keyword of a group occurs in the query (case
  insensitive substring), every scored member's score is multiplied by the
  boost multiplier (default 1.3).
- Required groups: after threshold and top-K, a group flagged
  ``requires_group_member`` with no member in the results gets its best
  non-disabled member appended, up to ``max_to_add`` groups per call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from chunkrank.core.logging import get_logger
from chunkrank.core.models.chunk import Chunk, ChunkGroup
from chunkrank.core.models.scored import ScoredChunk
from chunkrank.features.conditions import ValidationResult

logger = get_logger(__name__)

DEFAULT_BOOST_MULTIPLIER = 1.3
DEFAULT_MAX_REQUIRED_TO_ADD = 5


@dataclass
class GroupInfo:
    """Aggregated view of one group across a chunk set."""

    name: str
    keywords: List[str] = field(default_factory=list)
    required: bool = False
    chunk_ids: List[str] = field(default_factory=list)


def build_group_index(chunks: Sequence[Chunk]) -> Dict[str, GroupInfo]:
    """
    Index groups by name.

    Keywords are the union over all members (first-seen order); a group is
    required when any member says so; member ids keep input order.
    """
    index: Dict[str, GroupInfo] = {}
    for chunk in chunks:
        group = chunk.chunk_group
        if group is None or not group.name:
            continue
        info = index.setdefault(group.name, GroupInfo(name=group.name))
        for keyword in group.group_keywords:
            if keyword not in info.keywords:
                info.keywords.append(keyword)
        info.required = info.required or group.requires_group_member
        if chunk.id not in info.chunk_ids:
            info.chunk_ids.append(chunk.id)
    return index


def is_group_triggered(keywords: Sequence[str], query: str) -> bool:
    lowered = query.lower()
    return any(keyword and keyword.lower() in lowered for keyword in keywords)


def apply_group_boosts(
    results: Sequence[ScoredChunk],
    query: str,
    boost_multiplier: float = DEFAULT_BOOST_MULTIPLIER,
    all_chunks: Optional[Sequence[Chunk]] = None,
) -> List[ScoredChunk]:
    """
    Boost results belonging to groups triggered by the query.

    Args:
        results: Scored chunks
        query: Query text
        boost_multiplier: Score multiplier for members of triggered groups
        all_chunks: Chunks to build the group index from (defaults to the
            chunks in ``results``)

    Returns:
        New list in the same order; boosted entries have ``group_boosted``
    """
    index = build_group_index(
        all_chunks if all_chunks is not None else [r.chunk for r in results]
    )
    triggered = {
        name for name, info in index.items() if is_group_triggered(info.keywords, query)
    }
    if not triggered:
        return list(results)

    boosted: List[ScoredChunk] = []
    count = 0
    for result in results:
        group = result.chunk.chunk_group
        if group is not None and group.name in triggered:
            boosted.append(
                result.evolve(score=result.score * boost_multiplier, group_boosted=True)
            )
            count += 1
        else:
            boosted.append(result)

    logger.debug(
        "Applied group boosts", groups=len(triggered), boosted=count
    )
    return boosted


def enforce_required_groups(
    results: Sequence[ScoredChunk],
    all_chunks: Sequence[Chunk],
    scored: Sequence[ScoredChunk] = (),
    max_to_add: int = DEFAULT_MAX_REQUIRED_TO_ADD,
) -> List[ScoredChunk]:
    """
    Force-include one member of every required group missing from results.

    The member chosen is the highest-scoring non-disabled one, scores taken
    from ``scored`` (members without a score count as 0, ties keep input
    order). Forced members are appended after the results with
    ``forced_by_group`` set. At most ``max_to_add`` members are added.
    """
    index = build_group_index(all_chunks)
    chunks_by_id = {c.id: c for c in all_chunks}
    scored_by_id: Dict[str, ScoredChunk] = {}
    for entry in scored:
        scored_by_id.setdefault(entry.id, entry)

    present = {r.id for r in results}
    added: List[ScoredChunk] = []

    for name, info in index.items():
        if not info.required or any(cid in present for cid in info.chunk_ids):
            continue
        if len(added) >= max_to_add:
            logger.debug("Required group limit reached", group=name, limit=max_to_add)
            break

        best: Optional[ScoredChunk] = None
        for chunk_id in info.chunk_ids:
            chunk = chunks_by_id[chunk_id]
            if chunk.disabled:
                continue
            candidate = scored_by_id.get(chunk_id) or ScoredChunk(chunk=chunk, score=0.0)
            if best is None or candidate.score > best.score:
                best = candidate

        if best is None:
            continue
        added.append(best.evolve(forced_by_group=True, forced_group=name))
        present.add(best.id)
        logger.debug("Force-included required group member", group=name, id=best.id)

    if added:
        logger.debug("Added required group members", count=len(added))
    return list(results) + added


def get_chunks_by_group(chunks: Sequence[Chunk]) -> Dict[str, List[Chunk]]:
    grouped: Dict[str, List[Chunk]] = {}
    for chunk in chunks:
        if chunk.chunk_group is not None and chunk.chunk_group.name:
            grouped.setdefault(chunk.chunk_group.name, []).append(chunk)
    return grouped


def get_group_stats(chunks: Sequence[Chunk]) -> Dict[str, Any]:
    """Group counts and sizes over a chunk set."""
    index = build_group_index(chunks)
    sizes = {name: len(info.chunk_ids) for name, info in index.items()}
    grouped = sum(sizes.values())
    return {
        "total_groups": len(index),
        "total_grouped_chunks": grouped,
        "ungrouped_chunks": len(chunks) - grouped,
        "required_groups": sum(1 for info in index.values() if info.required),
        "group_sizes": sizes,
        "average_group_size": grouped / len(index) if index else 0.0,
    }


def validate_chunk_group(group: Optional[ChunkGroup]) -> ValidationResult:
    """A named group needs at least one keyword."""
    if group is None or not group.name.strip():
        return ValidationResult(valid=True)
    if not group.group_keywords:
        return ValidationResult(
            valid=False,
            errors=["Group keywords are required when group name is set"],
        )
    return ValidationResult(valid=True)


@dataclass
class GroupSuggestion:
    chunk_ids: List[str]
    suggested_name: str
    keywords: List[str]


def suggest_groups(
    chunks: Sequence[Chunk], similarity_threshold: float = 0.7
) -> List[GroupSuggestion]:
    """
    Suggest groups of chunks with overlapping keywords.

    Two chunks are similar when their shared keywords make up at least
    ``similarity_threshold`` of the larger keyword set. Each chunk lands in
    at most one suggestion; a suggestion lists up to five keywords.
    """
    suggestions: List[GroupSuggestion] = []
    grouped = set()

    for i, chunk in enumerate(chunks):
        if chunk.id in grouped or not chunk.keywords:
            continue
        keywords = set(chunk.keywords)
        similar = []
        for other in chunks[i + 1 :]:
            if other.id in grouped or not other.keywords:
                continue
            other_keywords = set(other.keywords)
            overlap = len(keywords & other_keywords)
            if overlap / max(len(keywords), len(other_keywords)) >= similarity_threshold:
                similar.append(other)

        if not similar:
            continue
        members = [chunk] + similar
        union: Dict[str, None] = {}
        for member in members:
            for keyword in member.keywords:
                union.setdefault(keyword, None)
        suggestions.append(
            GroupSuggestion(
                chunk_ids=[m.id for m in members],
                suggested_name=f"Group {len(suggestions) + 1}",
                keywords=list(union)[:5],
            )
        )
        grouped.update(m.id for m in members)

    logger.debug("Suggested groups", count=len(suggestions))
    return suggestions
