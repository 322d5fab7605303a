"""
Domain models for chunkrank.

    models/
    ├── chunk.py        # Chunk, ChunkGroup (immutable input)
    ├── conditions.py   # ConditionRule tagged union, ChunkConditions
    ├── context.py      # SearchContext and its parts
    ├── scored.py       # ScoredChunk (pipeline-local scores)
    ├── results.py      # SearchResponse, SearchTiming, SearchStats
    └── records.py      # Pydantic boundary records for files
"""

from chunkrank.core.models.chunk import (
    DEFAULT_IMPORTANCE,
    Chunk,
    ChunkGroup,
    content_hash,
    index_by_id,
)
from chunkrank.core.models.conditions import (
    ChunkConditions,
    ConditionMode,
    ConditionRule,
    ConditionType,
)
from chunkrank.core.models.context import (
    ActiveChunk,
    ActiveEntry,
    Scene,
    SearchContext,
)
from chunkrank.core.models.results import SearchResponse, SearchStats, SearchTiming
from chunkrank.core.models.scored import ScoredChunk

__all__ = [
    "DEFAULT_IMPORTANCE",
    "Chunk",
    "ChunkGroup",
    "content_hash",
    "index_by_id",
    "ChunkConditions",
    "ConditionMode",
    "ConditionRule",
    "ConditionType",
    "ActiveChunk",
    "ActiveEntry",
    "Scene",
    "SearchContext",
    "ScoredChunk",
    "SearchResponse",
    "SearchStats",
    "SearchTiming",
]
