"""
Scored chunk wrapper.

ScoredChunk carries the transient scoring fields of one pipeline run next to
an immutable Chunk. Stages never modify a ScoredChunk in place; they return
updated copies via ``dataclasses.replace`` (see ``ScoredChunk.evolve``).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from chunkrank.core.models.chunk import Chunk


@dataclass(frozen=True)
class ScoredChunk:
    """
    A Chunk plus pipeline-local scoring fields.

    Attributes:
        chunk: The underlying immutable chunk
        score: Current score, updated by each stage
        keyword_score: Keyword matcher score (hybrid and keyword modes)
        vector_score: Vector score after mode mapping (hybrid mode)
        similarity: Raw similarity from the vector matcher
        rrf_score: Reciprocal rank fusion score (dual-vector)
        keyword_matches: Accumulated trie match weight
        original_score: Score before importance or decay was applied
        group_boosted: Group boost was applied
        importance_applied: Importance weighting changed the score
        decay_applied: Temporal decay changed the score
        decay_multiplier: Multiplier used by temporal decay
        message_age: Effective message age used by temporal decay
        temporally_blind: Decay skipped because the chunk is blind
        forced_by_group: Added by required-group enforcement
        forced_group: Name of the group that forced inclusion
    """

    chunk: Chunk
    score: float = 0.0
    keyword_score: Optional[float] = None
    vector_score: Optional[float] = None
    similarity: Optional[float] = None
    rrf_score: Optional[float] = None
    keyword_matches: Optional[float] = None
    original_score: Optional[float] = None
    group_boosted: bool = False
    importance_applied: bool = False
    decay_applied: bool = False
    decay_multiplier: Optional[float] = None
    message_age: Optional[int] = None
    temporally_blind: bool = False
    forced_by_group: bool = False
    forced_group: Optional[str] = None

    @property
    def id(self) -> str:
        return self.chunk.id

    def evolve(self, **changes: Any) -> "ScoredChunk":
        """Return a copy with the given fields changed."""
        return replace(self, **changes)

    def to_dict(self, include_text: bool = True) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        result: Dict[str, Any] = {
            "id": self.id,
            "score": self.score,
            "keyword_score": self.keyword_score,
            "vector_score": self.vector_score,
            "similarity": self.similarity,
            "rrf_score": self.rrf_score,
            "importance": self.chunk.importance,
            "is_summary_chunk": self.chunk.is_summary_chunk,
            "group_boosted": self.group_boosted,
            "importance_applied": self.importance_applied,
            "decay_applied": self.decay_applied,
            "forced_by_group": self.forced_by_group,
        }
        if self.forced_group is not None:
            result["forced_group"] = self.forced_group
        if self.decay_applied:
            result["decay_multiplier"] = self.decay_multiplier
            result["message_age"] = self.message_age
        if self.original_score is not None:
            result["original_score"] = self.original_score
        if include_text:
            result["text"] = self.chunk.text
        return result
