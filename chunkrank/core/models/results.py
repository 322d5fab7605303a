"""
Search result containers returned by the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chunkrank.core.models.scored import ScoredChunk


@dataclass(frozen=True)
class SearchTiming:
    """Wall-clock timing of one search call."""

    duration_ms: float = 0.0
    mode: Optional[str] = None
    stages_ms: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchStats:
    """Counts describing one search call."""

    original_chunks: int = 0
    searchable_chunks: int = 0
    scored_chunks: int = 0
    final_results: int = 0
    average_score: float = 0.0


@dataclass
class SearchResponse:
    """
    Result of search, auto_search, or one batch_search slot.

    ``error`` and ``error_kind`` are only set on failed batch slots; single
    calls raise instead.
    """

    results: List[ScoredChunk] = field(default_factory=list)
    timing: SearchTiming = field(default_factory=SearchTiming)
    stats: SearchStats = field(default_factory=SearchStats)
    error: Optional[str] = None
    error_kind: Optional[str] = None
    error_context: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def ids(self) -> List[str]:
        return [r.id for r in self.results]

    def to_dict(self, include_text: bool = True) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        result: Dict[str, Any] = {
            "results": [r.to_dict(include_text=include_text) for r in self.results],
            "timing": {
                "duration_ms": self.timing.duration_ms,
                "mode": self.timing.mode,
                "stages_ms": dict(self.timing.stages_ms),
            },
            "stats": {
                "original_chunks": self.stats.original_chunks,
                "searchable_chunks": self.stats.searchable_chunks,
                "scored_chunks": self.stats.scored_chunks,
                "final_results": self.stats.final_results,
                "average_score": self.stats.average_score,
            },
        }
        if self.error is not None:
            result["error"] = self.error
            result["error_kind"] = self.error_kind
            result["error_context"] = dict(self.error_context)
        return result
