"""
Chunk domain model.

A Chunk is the unit of retrievable text. Chunks are supplied by the caller
on every search call and are never mutated by the engine: every pipeline
stage works on ScoredChunk wrappers instead.

Identity
--------
``Chunk.id`` is a content hash of the text (first 16 hex chars of SHA-256),
stable across runs. ``Chunk.create`` computes it; constructing a Chunk
directly lets callers bring their own stable ids.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from chunkrank.core.models.conditions import ChunkConditions

DEFAULT_IMPORTANCE = 100
MIN_IMPORTANCE = 0
MAX_IMPORTANCE = 200


def content_hash(text: str) -> str:
    """Stable content hash used as a chunk id."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def _normalize_keywords(keywords: Iterable[str]) -> Tuple[str, ...]:
    """Lowercase, strip and deduplicate while keeping first-seen order."""
    seen: Dict[str, None] = {}
    for keyword in keywords:
        if not isinstance(keyword, str):
            continue
        normalized = keyword.strip().lower()
        if normalized:
            seen.setdefault(normalized, None)
    return tuple(seen)


@dataclass(frozen=True)
class ChunkGroup:
    """Named cluster of chunks that boost together."""

    name: str
    group_keywords: Tuple[str, ...] = ()
    requires_group_member: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "group_keywords", _normalize_keywords(self.group_keywords)
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ChunkGroup"]:
        if not data or not data.get("name"):
            return None
        return cls(
            name=str(data["name"]),
            group_keywords=tuple(
                data.get("groupKeywords") or data.get("group_keywords") or ()
            ),
            requires_group_member=bool(
                data.get("requiresGroupMember", data.get("requires_group_member", False))
            ),
        )


@dataclass(frozen=True)
class Chunk:
    """
    A unit of retrievable text.

    Attributes:
        id: Stable identifier (content hash of the text)
        text: Non-empty chunk text
        embedding: Optional vector; validated by the vector matcher, not here
        keywords: Lowercase keywords in priority order (earlier = stronger)
        system_keywords: Keywords extracted automatically
        importance: 0-200, 100 is neutral
        disabled: Excluded from required-group force inclusion
        conditions: Optional activation rules
        chunk_group: Optional group membership
        is_summary_chunk: True for summary chunks created from a parent
        parent_id: Parent chunk id for summary chunks
        collection_id: Owning collection, used for vector enrichment
        summary: Summary text used to create a summary chunk
        summary_vector: Whether a summary chunk should be created
        source: Origin of the text ("chat" chunks are subject to decay)
        message_id: Chat message index for chat-sourced chunks
        section: Section label (chunkActive matching)
        topic: Topic label (chunkActive matching)
        temporally_blind: Immune to temporal decay
        metadata: Free-form caller metadata
    """

    id: str
    text: str
    embedding: Optional[Sequence[Any]] = None
    keywords: Tuple[str, ...] = ()
    system_keywords: Tuple[str, ...] = ()
    importance: int = DEFAULT_IMPORTANCE
    disabled: bool = False
    conditions: Optional[ChunkConditions] = None
    chunk_group: Optional[ChunkGroup] = None
    is_summary_chunk: bool = False
    parent_id: Optional[str] = None
    collection_id: Optional[str] = None
    summary: Optional[str] = None
    summary_vector: bool = False
    source: str = "document"
    message_id: Optional[int] = None
    section: Optional[str] = None
    topic: Optional[str] = None
    temporally_blind: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("chunk id is required and cannot be empty")
        if not self.text or not self.text.strip():
            raise ValueError(f"chunk {self.id} has empty text")
        if not MIN_IMPORTANCE <= self.importance <= MAX_IMPORTANCE:
            raise ValueError(
                f"chunk {self.id} importance must be in "
                f"[{MIN_IMPORTANCE}, {MAX_IMPORTANCE}], got {self.importance}"
            )
        if self.is_summary_chunk and not self.parent_id:
            raise ValueError(f"summary chunk {self.id} must reference a parent")
        object.__setattr__(self, "keywords", _normalize_keywords(self.keywords))
        object.__setattr__(
            self, "system_keywords", _normalize_keywords(self.system_keywords)
        )
        if isinstance(self.embedding, list):
            object.__setattr__(self, "embedding", tuple(self.embedding))

    @classmethod
    def create(cls, text: str, **kwargs: Any) -> "Chunk":
        """Create a chunk whose id is the content hash of its text."""
        return cls(id=content_hash(text), text=text, **kwargs)

    @property
    def hash(self) -> str:
        """Alias used by chunkActive rules."""
        return self.id

    @property
    def all_keywords(self) -> Tuple[str, ...]:
        """Keywords followed by system keywords, deduplicated."""
        return _normalize_keywords(self.keywords + self.system_keywords)

    @property
    def has_keywords(self) -> bool:
        return bool(self.keywords or self.system_keywords)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None and len(self.embedding) > 0

    @property
    def is_chat_chunk(self) -> bool:
        return self.source == "chat" and self.message_id is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary (embedding omitted)."""
        result: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "keywords": list(self.keywords),
            "system_keywords": list(self.system_keywords),
            "importance": self.importance,
            "disabled": self.disabled,
            "is_summary_chunk": self.is_summary_chunk,
            "parent_id": self.parent_id,
            "collection_id": self.collection_id,
            "source": self.source,
            "message_id": self.message_id,
            "section": self.section,
            "topic": self.topic,
        }
        if self.chunk_group is not None:
            result["chunk_group"] = {
                "name": self.chunk_group.name,
                "group_keywords": list(self.chunk_group.group_keywords),
                "requires_group_member": self.chunk_group.requires_group_member,
            }
        return result


def index_by_id(chunks: Iterable[Chunk]) -> Dict[str, Chunk]:
    """Map chunk id to chunk; the first occurrence of an id wins."""
    index: Dict[str, Chunk] = {}
    for chunk in chunks:
        index.setdefault(chunk.id, chunk)
    return index
