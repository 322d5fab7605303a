"""
Boundary records for chunk and context files.

Chunk sets and search contexts arrive as JSON or YAML (CLI, callers loading
exported collections). These Pydantic models validate that input once at
the boundary and convert it into the immutable domain types.

Both snake_case and the camelCase keys of exported collections are accepted
(``systemKeywords``, ``chunkGroup``, ``isSummaryChunk``, ...).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chunkrank.core.models.chunk import Chunk, ChunkGroup, content_hash
from chunkrank.core.models.conditions import ChunkConditions
from chunkrank.core.models.context import ActiveChunk, ActiveEntry, Scene, SearchContext

# Fixed upper bounds
MAX_KEYWORDS_PER_CHUNK = 500
MAX_RECENT_MESSAGES = 1000


class ChunkRecord(BaseModel):
    """Validated chunk input."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, alias="hash")
    text: str = Field(..., min_length=1, description="Chunk text")
    embedding: Optional[List[Optional[float]]] = Field(
        default=None, description="Precomputed embedding"
    )
    keywords: List[str] = Field(default_factory=list)
    system_keywords: List[str] = Field(default_factory=list, alias="systemKeywords")
    importance: int = Field(default=100, ge=0, le=200)
    disabled: bool = False
    conditions: Optional[Dict[str, Any]] = None
    chunk_group: Optional[Dict[str, Any]] = Field(default=None, alias="chunkGroup")
    is_summary_chunk: bool = Field(default=False, alias="isSummaryChunk")
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    collection_id: Optional[str] = Field(default=None, alias="collectionId")
    summary: Optional[str] = None
    summary_vector: bool = Field(default=False, alias="summaryVector")
    source: str = "document"
    message_id: Optional[int] = Field(default=None, alias="messageId")
    section: Optional[str] = None
    topic: Optional[str] = None
    temporally_blind: bool = Field(default=False, alias="temporallyBlind")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        """Numeric hashes from exported collections become strings."""
        if v is None:
            return v
        return str(v)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Chunk text cannot be empty")
        return v

    @field_validator("keywords", "system_keywords")
    @classmethod
    def bound_keywords(cls, v: List[str]) -> List[str]:
        if len(v) > MAX_KEYWORDS_PER_CHUNK:
            raise ValueError(f"Too many keywords (max {MAX_KEYWORDS_PER_CHUNK})")
        return v

    def to_chunk(self) -> Chunk:
        """Convert into the immutable domain chunk."""
        return Chunk(
            id=self.id or content_hash(self.text),
            text=self.text,
            embedding=self.embedding,
            keywords=tuple(self.keywords),
            system_keywords=tuple(self.system_keywords),
            importance=self.importance,
            disabled=self.disabled,
            conditions=ChunkConditions.from_dict(self.conditions),
            chunk_group=ChunkGroup.from_dict(self.chunk_group),
            is_summary_chunk=self.is_summary_chunk,
            parent_id=self.parent_id,
            collection_id=self.collection_id,
            summary=self.summary,
            summary_vector=self.summary_vector,
            source=self.source,
            message_id=self.message_id,
            section=self.section,
            topic=self.topic,
            temporally_blind=self.temporally_blind,
            metadata=dict(self.metadata),
        )


class ChatMessageRecord(BaseModel):
    """One chat message, used to derive a SearchContext."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mes: str = Field(default="", alias="text")
    name: Optional[str] = None
    is_user: bool = False
    swipes: List[str] = Field(default_factory=list)


class ContextRecord(BaseModel):
    """Validated search context input.

    Either give the context fields directly or a ``chat`` transcript, from
    which the context is derived.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    recent_messages: List[str] = Field(default_factory=list, alias="recentMessages")
    last_speaker: Optional[str] = Field(default=None, alias="lastSpeaker")
    message_count: int = Field(default=0, ge=0, alias="messageCount")
    active_chunks: List[Dict[str, Any]] = Field(
        default_factory=list, alias="activeChunks"
    )
    message_speakers: List[str] = Field(default_factory=list, alias="messageSpeakers")
    timestamp: Optional[datetime] = None
    generation_type: str = Field(default="normal", alias="generationType")
    swipe_count: int = Field(default=0, ge=0, alias="swipeCount")
    active_entries: List[Dict[str, Any]] = Field(
        default_factory=list, alias="activeLorebookEntries"
    )
    is_group_chat: bool = Field(default=False, alias="isGroupChat")
    current_character: Optional[str] = Field(default=None, alias="currentCharacter")
    current_emotion: Optional[str] = Field(default=None, alias="currentEmotion")
    current_message_id: Optional[int] = Field(default=None, alias="currentMessageId")
    scenes: List[Dict[str, Any]] = Field(default_factory=list)
    chat: List[ChatMessageRecord] = Field(default_factory=list)

    @field_validator("recent_messages")
    @classmethod
    def bound_messages(cls, v: List[str]) -> List[str]:
        if len(v) > MAX_RECENT_MESSAGES:
            raise ValueError(f"Too many recent messages (max {MAX_RECENT_MESSAGES})")
        return v

    def active_chunk_refs(self) -> tuple:
        return tuple(
            ActiveChunk(
                hash=str(c.get("hash", c.get("id", ""))),
                section=c.get("section"),
                topic=c.get("topic"),
            )
            for c in self.active_chunks
        )

    def active_entry_refs(self) -> tuple:
        return tuple(
            ActiveEntry(key=str(e.get("key") or ""), uid=str(e.get("uid") or ""))
            for e in self.active_entries
        )

    def scene_ranges(self) -> tuple:
        return tuple(
            Scene(start=int(s["start"]), end=s.get("end")) for s in self.scenes
        )

    def to_context(self) -> SearchContext:
        """Convert the explicit context fields into a SearchContext."""
        return SearchContext(
            recent_messages=tuple(self.recent_messages),
            last_speaker=self.last_speaker,
            message_count=self.message_count,
            active_chunks=self.active_chunk_refs(),
            message_speakers=tuple(self.message_speakers),
            timestamp=self.timestamp,
            generation_type=self.generation_type,
            swipe_count=self.swipe_count,
            active_entries=self.active_entry_refs(),
            is_group_chat=self.is_group_chat,
            current_character=self.current_character,
            current_message_id=self.current_message_id,
            scenes=self.scene_ranges(),
        )
