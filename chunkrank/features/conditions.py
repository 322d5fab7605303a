"""
Conditional activation of chunks.

A chunk with enabled conditions is searchable only when its rules hold for
the current SearchContext. Rules combine with AND (all true) or OR (any
true); ``negate`` inverts a single rule before combination. Chunks without
enabled conditions, or with enabled conditions but no rules, always pass.

Rule types
----------
keyword           Keyword in the joined recent messages (exact word,
                  startsWith, endsWith, contains)
speaker           Last speaker is listed (any) or every listed speaker
                  spoke recently (all)
messageCount      Message count eq / gte / lte / between
chunkActive       Another chunk is active, by hash, section or topic
timeOfDay         HH:MM window, inclusive, wrapping midnight
emotion           Injected EmotionDetector, falling back to keywords
characterPresent  Name is a substring of a recent speaker (any / all)
randomChance      Roll on the injected random source against a percentage
generationType    Generation type matches
swipeCount        Swipe count eq / gte / lte / between
lorebookActive    Active entry key contains the value, or uid equals it
isGroupChat       Group-chat flag matches

Unknown rule types evaluate to False.
"""

import random
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from chunkrank.core.logging import get_logger
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.conditions import (
    CharacterPresentSettings,
    ChunkActiveSettings,
    ChunkConditions,
    ConditionMode,
    ConditionRule,
    ConditionType,
    CountSettings,
    EmotionSettings,
    GenerationTypeSettings,
    GroupChatSettings,
    KeywordSettings,
    LorebookActiveSettings,
    RandomChanceSettings,
    SpeakerSettings,
    TimeOfDaySettings,
)
from chunkrank.core.models.context import ActiveChunk, ActiveEntry, SearchContext
from chunkrank.features.emotions import (
    VALID_EMOTIONS,
    EmotionDetector,
    NullEmotionDetector,
    detect_emotions_in_text,
)

logger = get_logger(__name__)

VALID_GENERATION_TYPES = ("normal", "swipe", "regenerate", "continue", "impersonate")

_TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def _compare_count(value: int, settings: CountSettings) -> bool:
    if settings.operator == "eq":
        return value == settings.count
    if settings.operator == "lte":
        return value <= settings.count
    if settings.operator == "between":
        return settings.count <= value <= settings.upper_bound
    # gte and unknown operators
    return value >= settings.count


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


class ConditionEvaluator:
    """
    Evaluates condition rules against a SearchContext.

    The emotion detector and random source are fixed at construction so
    evaluation never reaches for global state.
    """

    def __init__(
        self,
        emotion_detector: Optional[EmotionDetector] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.emotion_detector = emotion_detector or NullEmotionDetector()
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Rule types
    # ------------------------------------------------------------------

    def _keyword(self, settings: KeywordSettings, context: SearchContext) -> bool:
        text = " ".join(context.recent_messages)
        if not settings.case_sensitive:
            text = text.lower()

        for value in settings.values:
            keyword = value if settings.case_sensitive else value.lower()
            if settings.match_mode == "exact":
                flags = 0 if settings.case_sensitive else re.IGNORECASE
                if re.search(rf"\b{re.escape(keyword)}\b", text, flags):
                    return True
            elif settings.match_mode == "startsWith":
                if text.startswith(keyword):
                    return True
            elif settings.match_mode == "endsWith":
                if text.endswith(keyword):
                    return True
            elif keyword in text:
                return True
        return False

    def _speaker(self, settings: SpeakerSettings, context: SearchContext) -> bool:
        if settings.match_type == "all":
            return all(v in context.message_speakers for v in settings.values)
        return context.last_speaker in settings.values

    def _chunk_active(
        self, settings: ChunkActiveSettings, context: SearchContext
    ) -> bool:
        def matches(active: ActiveChunk, target: str) -> bool:
            if settings.match_by == "hash":
                return active.hash == target
            if settings.match_by == "section":
                return active.section == target
            if settings.match_by == "topic":
                return active.topic == target
            return False

        return any(
            matches(active, target)
            for target in settings.values
            for active in context.active_chunks
        )

    def _time_of_day(
        self, settings: TimeOfDaySettings, context: SearchContext
    ) -> bool:
        if context.timestamp is None:
            logger.warning("timeOfDay rule evaluated without a timestamp")
            return False
        try:
            start = _minutes(settings.start_time)
            end = _minutes(settings.end_time)
        except ValueError:
            logger.warning(
                "Invalid timeOfDay format",
                start=settings.start_time,
                end=settings.end_time,
            )
            return False

        current = context.timestamp.hour * 60 + context.timestamp.minute
        if start <= end:
            return start <= current <= end
        # Window crosses midnight
        return current >= start or current <= end

    def _emotion(self, settings: EmotionSettings, context: SearchContext) -> bool:
        if not settings.values:
            logger.warning("Emotion rule has no target emotions")
            return False

        targets = [v.lower() for v in settings.values]
        method = settings.detection_method

        if method != "keywords" and context.current_character:
            try:
                detected = self.emotion_detector.current_emotion(
                    context.current_character
                )
            except Exception as e:
                logger.warning("Emotion detector failed", error=str(e))
                detected = None
            if detected:
                if detected.lower() in targets:
                    return True
                if method == "expressions":
                    return False

        if method == "expressions":
            return False

        found = detect_emotions_in_text(" ".join(context.recent_messages))
        return any(target in found for target in targets)

    def _character_present(
        self, settings: CharacterPresentSettings, context: SearchContext
    ) -> bool:
        speakers = [(s or "").lower() for s in context.message_speakers]

        def present(name: str) -> bool:
            lowered = name.lower()
            return any(lowered in speaker for speaker in speakers)

        if settings.match_type == "all":
            return all(present(v) for v in settings.values)
        return any(present(v) for v in settings.values)

    def _random_chance(
        self, settings: RandomChanceSettings, context: SearchContext
    ) -> bool:
        return self.rng.random() * 100 <= settings.probability

    def _generation_type(
        self, settings: GenerationTypeSettings, context: SearchContext
    ) -> bool:
        current = (context.generation_type or "normal").lower()
        if settings.match_type == "all":
            return all(v.lower() == current for v in settings.values)
        return any(v.lower() == current for v in settings.values)

    def _lorebook_active(
        self, settings: LorebookActiveSettings, context: SearchContext
    ) -> bool:
        def active(target: str) -> bool:
            lowered = target.lower()
            return any(
                lowered in (entry.key or "").lower()
                or (entry.uid or "").lower() == lowered
                for entry in context.active_entries
            )

        if settings.match_type == "all":
            return all(active(v) for v in settings.values)
        return any(active(v) for v in settings.values)

    def _is_group_chat(
        self, settings: GroupChatSettings, context: SearchContext
    ) -> bool:
        return context.is_group_chat == settings.is_group

    # ------------------------------------------------------------------
    # Combination
    # ------------------------------------------------------------------

    def evaluate_rule(self, rule: ConditionRule, context: SearchContext) -> bool:
        """Evaluate one rule, applying ``negate``."""
        settings: Any = rule.settings
        if rule.type == ConditionType.KEYWORD:
            result = self._keyword(settings, context)
        elif rule.type == ConditionType.SPEAKER:
            result = self._speaker(settings, context)
        elif rule.type == ConditionType.MESSAGE_COUNT:
            result = _compare_count(context.message_count, settings)
        elif rule.type == ConditionType.CHUNK_ACTIVE:
            result = self._chunk_active(settings, context)
        elif rule.type == ConditionType.TIME_OF_DAY:
            result = self._time_of_day(settings, context)
        elif rule.type == ConditionType.EMOTION:
            result = self._emotion(settings, context)
        elif rule.type == ConditionType.CHARACTER_PRESENT:
            result = self._character_present(settings, context)
        elif rule.type == ConditionType.RANDOM_CHANCE:
            result = self._random_chance(settings, context)
        elif rule.type == ConditionType.GENERATION_TYPE:
            result = self._generation_type(settings, context)
        elif rule.type == ConditionType.SWIPE_COUNT:
            result = _compare_count(context.swipe_count or 0, settings)
        elif rule.type == ConditionType.LOREBOOK_ACTIVE:
            result = self._lorebook_active(settings, context)
        elif rule.type == ConditionType.IS_GROUP_CHAT:
            result = self._is_group_chat(settings, context)
        else:
            logger.warning("Unknown condition type", type=rule.type_name)
            result = False

        return not result if rule.negate else result

    def evaluate(
        self, conditions: Optional[ChunkConditions], context: SearchContext
    ) -> bool:
        """Evaluate a rule set; absent, disabled or empty sets pass."""
        if conditions is None or not conditions.enabled or not conditions.rules:
            return True
        results = [self.evaluate_rule(rule, context) for rule in conditions.rules]
        if conditions.mode == ConditionMode.OR:
            return any(results)
        return all(results)

    def filter_chunks(
        self, chunks: Sequence[Chunk], context: SearchContext
    ) -> List[Chunk]:
        """Keep chunks whose conditions hold, preserving order."""
        filtered = [c for c in chunks if self.evaluate(c.conditions, context)]
        logger.debug(
            "Filtered chunks by conditions", before=len(chunks), after=len(filtered)
        )
        return filtered


# ============================================================================
# Module-level helpers
# ============================================================================


def evaluate_condition_rule(
    rule: ConditionRule,
    context: SearchContext,
    emotion_detector: Optional[EmotionDetector] = None,
    rng: Optional[random.Random] = None,
) -> bool:
    return ConditionEvaluator(emotion_detector, rng).evaluate_rule(rule, context)


def evaluate_conditions(
    chunk: Chunk,
    context: SearchContext,
    emotion_detector: Optional[EmotionDetector] = None,
    rng: Optional[random.Random] = None,
) -> bool:
    return ConditionEvaluator(emotion_detector, rng).evaluate(chunk.conditions, context)


def filter_chunks_by_conditions(
    chunks: Sequence[Chunk],
    context: SearchContext,
    emotion_detector: Optional[EmotionDetector] = None,
    rng: Optional[random.Random] = None,
) -> List[Chunk]:
    return ConditionEvaluator(emotion_detector, rng).filter_chunks(chunks, context)


def _speaker_of(message: Mapping[str, Any]) -> str:
    if message.get("name"):
        return str(message["name"])
    return "User" if message.get("is_user") else "Character"


def build_search_context(
    chat: Sequence[Mapping[str, Any]],
    context_window: int = 10,
    active_chunks: Sequence[ActiveChunk] = (),
    metadata: Optional[Mapping[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> SearchContext:
    """
    Derive a SearchContext from a chat transcript.

    Each message is a mapping with ``mes``, ``name``, ``is_user`` and
    optionally ``swipes``. ``metadata`` may carry ``generation_type``,
    ``active_entries`` (ActiveEntry or ``{key, uid}``), ``is_group_chat``,
    ``current_character`` and ``current_message_id``.
    """
    metadata = metadata or {}
    window = list(chat[-context_window:]) if context_window > 0 else []
    last = chat[-1] if chat else {}
    swipes = last.get("swipes") or []

    entries = tuple(
        e
        if isinstance(e, ActiveEntry)
        else ActiveEntry(key=str(e.get("key") or ""), uid=str(e.get("uid") or ""))
        for e in metadata.get("active_entries") or ()
    )

    return SearchContext(
        recent_messages=tuple(str(m.get("mes") or "") for m in window),
        last_speaker=_speaker_of(last) if chat else None,
        message_count=len(chat),
        active_chunks=tuple(active_chunks),
        message_speakers=tuple(_speaker_of(m) for m in window),
        timestamp=timestamp or datetime.now(),
        generation_type=str(metadata.get("generation_type") or "normal"),
        swipe_count=len(swipes) - 1 if swipes else 0,
        active_entries=entries,
        is_group_chat=bool(metadata.get("is_group_chat", False)),
        current_character=metadata.get("current_character"),
        current_message_id=metadata.get("current_message_id"),
    )


@dataclass
class ConditionStatusGroups:
    """Chunks partitioned by condition status."""

    no_conditions: List[Chunk] = field(default_factory=list)
    conditions_met: List[Chunk] = field(default_factory=list)
    conditions_not_met: List[Chunk] = field(default_factory=list)


def group_chunks_by_condition_status(
    chunks: Sequence[Chunk],
    context: SearchContext,
    emotion_detector: Optional[EmotionDetector] = None,
    rng: Optional[random.Random] = None,
) -> ConditionStatusGroups:
    evaluator = ConditionEvaluator(emotion_detector, rng)
    groups = ConditionStatusGroups()
    for chunk in chunks:
        if chunk.conditions is None or not chunk.conditions.enabled:
            groups.no_conditions.append(chunk)
        elif evaluator.evaluate(chunk.conditions, context):
            groups.conditions_met.append(chunk)
        else:
            groups.conditions_not_met.append(chunk)
    return groups


# ============================================================================
# Validation and statistics
# ============================================================================


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def validate_condition_rule(rule: ConditionRule) -> ValidationResult:
    """Check a rule's settings for values that can never evaluate sensibly."""
    errors: List[str] = []
    settings: Any = rule.settings

    if not rule.type_name:
        errors.append("Condition type is required")
    elif not isinstance(rule.type, ConditionType):
        errors.append(f"Unknown condition type: {rule.type_name}")
    elif rule.type in (ConditionType.MESSAGE_COUNT, ConditionType.SWIPE_COUNT):
        if settings.count < 0:
            label = "Message" if rule.type == ConditionType.MESSAGE_COUNT else "Swipe"
            errors.append(f"{label} count must be a positive number")
    elif rule.type == ConditionType.CHUNK_ACTIVE:
        if settings.match_by == "hash" and not any(v.strip() for v in settings.values):
            errors.append("Chunk hash cannot be empty")
    elif rule.type == ConditionType.TIME_OF_DAY:
        if not _TIME_PATTERN.match(settings.start_time):
            errors.append("Invalid start time format. Use HH:MM (e.g., 09:00)")
        if not _TIME_PATTERN.match(settings.end_time):
            errors.append("Invalid end time format. Use HH:MM (e.g., 17:00)")
    elif rule.type == ConditionType.EMOTION:
        for emotion in settings.values:
            if emotion and emotion.lower() not in VALID_EMOTIONS:
                errors.append(
                    f'Unknown emotion: "{emotion}". '
                    f"Valid emotions: {', '.join(sorted(VALID_EMOTIONS))}"
                )
    elif rule.type == ConditionType.RANDOM_CHANCE:
        if not 0 <= settings.probability <= 100:
            errors.append("Random chance must be between 0 and 100")
    elif rule.type == ConditionType.CHARACTER_PRESENT:
        if not any(v.strip() for v in settings.values):
            errors.append("Character name cannot be empty")
    elif rule.type == ConditionType.GENERATION_TYPE:
        for generation_type in settings.values:
            if generation_type.lower() not in VALID_GENERATION_TYPES:
                errors.append(
                    f'Invalid generation type: "{generation_type}". '
                    f"Valid types: {', '.join(VALID_GENERATION_TYPES)}"
                )
    elif rule.type == ConditionType.LOREBOOK_ACTIVE:
        if not any(v.strip() for v in settings.values):
            errors.append("Lorebook entry key or UID cannot be empty")

    return ValidationResult(valid=not errors, errors=errors)


def validate_conditions(conditions: Optional[ChunkConditions]) -> ValidationResult:
    """Validate a rule set; enabled sets need at least one rule."""
    if conditions is None or not conditions.enabled:
        return ValidationResult(valid=True)

    errors: List[str] = []
    if not conditions.rules:
        errors.append(
            "At least one condition rule is required when conditions are enabled"
        )
    for index, rule in enumerate(conditions.rules, start=1):
        validation = validate_condition_rule(rule)
        if not validation.valid:
            errors.append(f"Rule {index}: {', '.join(validation.errors)}")
    return ValidationResult(valid=not errors, errors=errors)


def get_condition_stats(chunks: Sequence[Chunk]) -> Dict[str, Any]:
    """Counts of chunks with conditions, by rule type and by mode."""
    by_type: Counter = Counter()
    by_mode = {ConditionMode.AND.value: 0, ConditionMode.OR.value: 0}
    with_conditions = 0
    enabled = 0

    for chunk in chunks:
        conditions = chunk.conditions
        if conditions is None or not conditions.rules:
            continue
        with_conditions += 1
        if not conditions.enabled:
            continue
        enabled += 1
        by_mode[conditions.mode.value] += 1
        by_type.update(rule.type_name for rule in conditions.rules)

    return {
        "total": len(chunks),
        "with_conditions": with_conditions,
        "conditions_enabled": enabled,
        "by_type": dict(by_type),
        "by_mode": by_mode,
    }
