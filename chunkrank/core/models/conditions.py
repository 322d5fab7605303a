"""
Condition rule models.

A chunk may carry a ChunkConditions set that gates whether it is searchable
for the current SearchContext. Each rule type has its own settings class,
so ``ConditionRule.settings`` is a tagged union keyed by ``ConditionRule.type``.

Rule settings are parsed from plain dicts (camelCase or snake_case keys) with
``ConditionRule.from_dict``; unknown types are kept as UnknownSettings and
evaluate to False.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, Union


class ConditionType(str, Enum):
    """Supported condition rule types."""

    KEYWORD = "keyword"
    SPEAKER = "speaker"
    MESSAGE_COUNT = "messageCount"
    CHUNK_ACTIVE = "chunkActive"
    TIME_OF_DAY = "timeOfDay"
    EMOTION = "emotion"
    CHARACTER_PRESENT = "characterPresent"
    RANDOM_CHANCE = "randomChance"
    GENERATION_TYPE = "generationType"
    SWIPE_COUNT = "swipeCount"
    LOREBOOK_ACTIVE = "lorebookActive"
    IS_GROUP_CHAT = "isGroupChat"


class ConditionMode(str, Enum):
    """How rule results combine."""

    AND = "AND"
    OR = "OR"


def _values(data: Dict[str, Any]) -> Tuple[str, ...]:
    raw = data.get("values")
    if raw is None:
        raw = [data["value"]] if data.get("value") not in (None, "") else []
    if isinstance(raw, str):
        raw = [raw]
    return tuple(str(v) for v in raw)


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


# ============================================================================
# Settings variants
# ============================================================================


@dataclass(frozen=True)
class KeywordSettings:
    """Keyword containment in recent messages."""

    values: Tuple[str, ...] = ()
    match_mode: str = "contains"  # exact, startsWith, endsWith, contains
    case_sensitive: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeywordSettings":
        return cls(
            values=_values(data),
            match_mode=_pick(data, "matchMode", "match_mode", default="contains"),
            case_sensitive=bool(
                _pick(data, "caseSensitive", "case_sensitive", default=False)
            ),
        )


@dataclass(frozen=True)
class SpeakerSettings:
    """Last speaker (any) or all listed speakers in the recent window (all)."""

    values: Tuple[str, ...] = ()
    match_type: str = "any"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpeakerSettings":
        return cls(
            values=_values(data),
            match_type=_pick(data, "matchType", "match_type", default="any"),
        )


@dataclass(frozen=True)
class CountSettings:
    """Comparison used by messageCount and swipeCount rules."""

    count: int = 0
    operator: str = "gte"  # eq, gte, lte, between
    upper_bound: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CountSettings":
        count = _pick(data, "count", default=None)
        if count is None:
            count = data.get("value", 0)
        return cls(
            count=int(count or 0),
            operator=_pick(data, "operator", default="gte"),
            upper_bound=int(_pick(data, "upperBound", "upper_bound", default=0)),
        )


@dataclass(frozen=True)
class ChunkActiveSettings:
    """Another chunk currently active, matched by hash, section or topic."""

    values: Tuple[str, ...] = ()
    match_by: str = "hash"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkActiveSettings":
        return cls(
            values=_values(data),
            match_by=_pick(data, "matchBy", "match_by", default="hash"),
        )


@dataclass(frozen=True)
class TimeOfDaySettings:
    """Inclusive HH:MM window; start after end wraps midnight."""

    start_time: str = "00:00"
    end_time: str = "23:59"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeOfDaySettings":
        return cls(
            start_time=str(_pick(data, "startTime", "start_time", default="00:00")),
            end_time=str(_pick(data, "endTime", "end_time", default="23:59")),
        )


@dataclass(frozen=True)
class EmotionSettings:
    """Target emotions, detected by an emotion detector or keywords."""

    values: Tuple[str, ...] = ()
    detection_method: str = "auto"  # auto, expressions, keywords

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmotionSettings":
        return cls(
            values=_values(data),
            detection_method=_pick(
                data, "detectionMethod", "detection_method", default="auto"
            ),
        )


@dataclass(frozen=True)
class CharacterPresentSettings:
    """Character names that must appear among recent speakers."""

    values: Tuple[str, ...] = ()
    match_type: str = "any"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CharacterPresentSettings":
        return cls(
            values=_values(data),
            match_type=_pick(data, "matchType", "match_type", default="any"),
        )


@dataclass(frozen=True)
class RandomChanceSettings:
    """Probability in percent (0-100)."""

    probability: float = 50.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RandomChanceSettings":
        probability = _pick(data, "probability", "value", default=50)
        return cls(probability=float(probability))


@dataclass(frozen=True)
class GenerationTypeSettings:
    """Generation types (normal, swipe, regenerate, continue, impersonate)."""

    values: Tuple[str, ...] = ("normal",)
    match_type: str = "any"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationTypeSettings":
        return cls(
            values=_values(data) or ("normal",),
            match_type=_pick(data, "matchType", "match_type", default="any"),
        )


@dataclass(frozen=True)
class LorebookActiveSettings:
    """External entries that must be active, by key substring or exact uid."""

    values: Tuple[str, ...] = ()
    match_type: str = "any"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LorebookActiveSettings":
        return cls(
            values=_values(data),
            match_type=_pick(data, "matchType", "match_type", default="any"),
        )


@dataclass(frozen=True)
class GroupChatSettings:
    """Expected group-chat flag."""

    is_group: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupChatSettings":
        value = _pick(data, "isGroup", "is_group", "value", default=True)
        if isinstance(value, str):
            value = value.strip().lower() != "false"
        return cls(is_group=bool(value))


@dataclass(frozen=True)
class UnknownSettings:
    """Settings of an unrecognised rule type, kept verbatim."""

    raw: Tuple[Tuple[str, Any], ...] = ()


RuleSettings = Union[
    KeywordSettings,
    SpeakerSettings,
    CountSettings,
    ChunkActiveSettings,
    TimeOfDaySettings,
    EmotionSettings,
    CharacterPresentSettings,
    RandomChanceSettings,
    GenerationTypeSettings,
    LorebookActiveSettings,
    GroupChatSettings,
    UnknownSettings,
]

SETTINGS_BY_TYPE: Dict[ConditionType, Type[Any]] = {
    ConditionType.KEYWORD: KeywordSettings,
    ConditionType.SPEAKER: SpeakerSettings,
    ConditionType.MESSAGE_COUNT: CountSettings,
    ConditionType.CHUNK_ACTIVE: ChunkActiveSettings,
    ConditionType.TIME_OF_DAY: TimeOfDaySettings,
    ConditionType.EMOTION: EmotionSettings,
    ConditionType.CHARACTER_PRESENT: CharacterPresentSettings,
    ConditionType.RANDOM_CHANCE: RandomChanceSettings,
    ConditionType.GENERATION_TYPE: GenerationTypeSettings,
    ConditionType.SWIPE_COUNT: CountSettings,
    ConditionType.LOREBOOK_ACTIVE: LorebookActiveSettings,
    ConditionType.IS_GROUP_CHAT: GroupChatSettings,
}


# ============================================================================
# Rules
# ============================================================================


@dataclass(frozen=True)
class ConditionRule:
    """
    A single predicate over the search context.

    ``type`` is a ConditionType for known rules, or the raw string for
    unrecognised ones.
    """

    type: Union[ConditionType, str]
    settings: RuleSettings = field(default_factory=UnknownSettings)
    negate: bool = False

    @property
    def type_name(self) -> str:
        return self.type.value if isinstance(self.type, ConditionType) else self.type

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConditionRule":
        """Parse a rule from ``{type, settings, negate}``."""
        raw_type = str(data.get("type", ""))
        settings_data = dict(data.get("settings") or {})
        if "value" in data and "value" not in settings_data:
            settings_data["value"] = data["value"]
        negate = bool(data.get("negate", False))

        try:
            rule_type = ConditionType(raw_type)
        except ValueError:
            return cls(
                type=raw_type,
                settings=UnknownSettings(raw=tuple(sorted(settings_data.items()))),
                negate=negate,
            )

        settings = SETTINGS_BY_TYPE[rule_type].from_dict(settings_data)
        return cls(type=rule_type, settings=settings, negate=negate)


@dataclass(frozen=True)
class ChunkConditions:
    """Rule set attached to a chunk."""

    enabled: bool = False
    mode: ConditionMode = ConditionMode.AND
    rules: Tuple[ConditionRule, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ChunkConditions"]:
        if not data:
            return None
        mode = str(data.get("logic") or data.get("mode") or "AND").upper()
        return cls(
            enabled=bool(data.get("enabled", False)),
            mode=ConditionMode.OR if mode == "OR" else ConditionMode.AND,
            rules=tuple(ConditionRule.from_dict(r) for r in data.get("rules") or []),
        )
