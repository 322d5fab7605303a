"""
Summary chunk helpers for dual-vector search.

A chunk with ``summary`` text and ``summary_vector`` set gets a companion
summary chunk. Dual-vector search embeds and ranks summaries and full text
separately and fuses both rankings (see ``VectorMatcher.dual_vector_search``).
"""

from dataclasses import replace
from typing import Dict, List, Mapping, Sequence, Union

from chunkrank.core.logging import get_logger
from chunkrank.core.models.chunk import Chunk, content_hash
from chunkrank.core.models.scored import ScoredChunk

logger = get_logger(__name__)


def summary_chunk_id(parent_id: str) -> str:
    """Stable id of the summary chunk created for a parent."""
    return content_hash(f"{parent_id}_summary")


def find_orphan_summaries(chunks: Sequence[Chunk]) -> List[str]:
    """Ids of summary chunks whose parent is not in the chunk set."""
    ids = {chunk.id for chunk in chunks}
    return [
        chunk.id
        for chunk in chunks
        if chunk.is_summary_chunk and chunk.parent_id not in ids
    ]


def create_summary_chunks(chunks: Sequence[Chunk]) -> List[Chunk]:
    """
    Append a summary chunk for every chunk that asks for one.

    A summary chunk is created when the chunk has summary text, has
    ``summary_vector`` set and is not itself a summary. The summary chunk
    inherits keywords, importance, conditions and group from its parent,
    is never disabled and never spawns a summary of its own.

    Returns:
        The original chunks followed by the new summary chunks
    """
    summaries: List[Chunk] = []
    for chunk in chunks:
        if not (chunk.summary and chunk.summary_vector) or chunk.is_summary_chunk:
            continue
        summaries.append(
            replace(
                chunk,
                id=summary_chunk_id(chunk.id),
                text=chunk.summary,
                embedding=None,
                is_summary_chunk=True,
                parent_id=chunk.id,
                summary=None,
                summary_vector=False,
                disabled=False,
                topic=f"{chunk.topic} (Summary)" if chunk.topic else "Summary",
                metadata={**chunk.metadata, "is_summary_for": chunk.id},
            )
        )

    logger.debug(
        "Created summary chunks", summaries=len(summaries), chunks=len(chunks)
    )
    return list(chunks) + summaries


def filter_chunks_by_search_mode(chunks: Sequence[Chunk], search_mode: str) -> List[Chunk]:
    """Keep summary chunks ("summary"), full chunks ("full") or all ("both")."""
    if search_mode == "summary":
        return [c for c in chunks if c.is_summary_chunk]
    if search_mode == "full":
        return [c for c in chunks if not c.is_summary_chunk]
    return list(chunks)


def expand_summary_chunks(
    results: Sequence[Union[Chunk, ScoredChunk]],
    all_chunks: Mapping[str, Chunk],
) -> List[Union[Chunk, ScoredChunk]]:
    """
    Insert each summary's parent right after the summary.

    Parents already present (earlier or as their own result) are not
    repeated. Parents missing from ``all_chunks`` are skipped.
    """
    expanded: List[Union[Chunk, ScoredChunk]] = []
    seen: Dict[str, None] = {}

    for item in results:
        chunk = item.chunk if isinstance(item, ScoredChunk) else item
        if chunk.id not in seen:
            expanded.append(item)
            seen[chunk.id] = None

        if chunk.is_summary_chunk and chunk.parent_id:
            parent = all_chunks.get(chunk.parent_id)
            if parent is not None and parent.id not in seen:
                expanded.append(parent)
                seen[parent.id] = None

    return expanded
