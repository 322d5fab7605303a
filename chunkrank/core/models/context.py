"""
Search context supplied by the caller.

SearchContext replaces ambient chat state: everything a condition rule or
the decay stage needs is passed explicitly on every call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence, Tuple


@dataclass(frozen=True)
class ActiveChunk:
    """A chunk currently active in the conversation (for chunkActive rules)."""

    hash: str
    section: Optional[str] = None
    topic: Optional[str] = None


@dataclass(frozen=True)
class ActiveEntry:
    """An active external entry, matched by key substring or uid."""

    key: str = ""
    uid: str = ""


@dataclass(frozen=True)
class Scene:
    """Message range of a scene; ``end`` is None for an open scene."""

    start: int
    end: Optional[int] = None

    def contains(self, message_id: int) -> bool:
        return message_id >= self.start and (self.end is None or message_id <= self.end)


def find_scene(message_id: int, scenes: Sequence[Scene]) -> Optional[Scene]:
    """First scene containing the message, if any."""
    for scene in scenes:
        if scene.contains(message_id):
            return scene
    return None


@dataclass(frozen=True)
class SearchContext:
    """
    Ambient state for condition evaluation and temporal decay.

    Attributes:
        recent_messages: Texts of the most recent messages, oldest first
        last_speaker: Name of the speaker of the last message
        message_count: Total number of messages in the conversation
        active_chunks: Chunks currently active
        message_speakers: Speaker of each recent message
        timestamp: Wall-clock time used by timeOfDay rules
        generation_type: normal, swipe, regenerate, continue or impersonate
        swipe_count: Swipes on the last message
        active_entries: Active external entries
        is_group_chat: Whether the conversation is a group chat
        current_character: Character whose emotion is detected
        current_message_id: Index of the current message (decay age origin)
        scenes: Scene boundaries for scene-aware decay
    """

    recent_messages: Tuple[str, ...] = ()
    last_speaker: Optional[str] = None
    message_count: int = 0
    active_chunks: Tuple[ActiveChunk, ...] = ()
    message_speakers: Tuple[str, ...] = ()
    timestamp: Optional[datetime] = None
    generation_type: str = "normal"
    swipe_count: int = 0
    active_entries: Tuple[ActiveEntry, ...] = ()
    is_group_chat: bool = False
    current_character: Optional[str] = None
    current_message_id: Optional[int] = None
    scenes: Tuple[Scene, ...] = field(default_factory=tuple)

    def scene_for(self, message_id: int) -> Optional[Scene]:
        """First scene containing the message, if any."""
        return find_scene(message_id, self.scenes)
