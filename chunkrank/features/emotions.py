"""
Emotion detection for emotion condition rules.

An EmotionDetector reports a character's current emotion label (for
example from an expression classifier). The detector is injected into the
orchestrator at construction time; NullEmotionDetector is the default and
makes every emotion rule fall back to keyword detection over the recent
messages.
"""

from typing import Dict, FrozenSet, Optional, Protocol, Tuple, runtime_checkable

EMOTION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    # Positive
    "joy": ("joy", "happy", "smile", "laugh", "glad", "cheerful", "delighted", "pleased", "joyful", "happiness"),
    "amusement": ("amusement", "amused", "funny", "humorous", "entertaining", "playful"),
    "love": ("love", "adore", "cherish", "affection", "beloved", "loving", "tender"),
    "caring": ("caring", "care", "compassion", "kind", "gentle", "nurturing", "supportive"),
    "admiration": ("admiration", "admire", "respect", "impressed", "awe", "wonderful"),
    "approval": ("approval", "approve", "agree", "accept", "support", "endorse"),
    "excitement": ("excitement", "excited", "thrilled", "energetic", "pumped", "hyped", "enthusiastic"),
    "gratitude": ("gratitude", "grateful", "thankful", "thanks", "appreciate", "appreciation"),
    "optimism": ("optimism", "optimistic", "hopeful", "positive", "confident", "upbeat"),
    "pride": ("pride", "proud", "accomplished", "achievement", "success", "triumphant"),
    "relief": ("relief", "relieved", "ease", "calm", "relaxed", "unburdened"),
    "desire": ("desire", "want", "wish", "crave", "yearn", "longing", "passion"),
    # Negative
    "anger": ("anger", "angry", "mad", "furious", "rage", "hostile", "wrath", "irate"),
    "annoyance": ("annoyance", "annoyed", "irritated", "bothered", "frustrated", "vexed"),
    "disapproval": ("disapproval", "disapprove", "disagree", "reject", "oppose", "condemn"),
    "disgust": ("disgust", "disgusted", "repulsed", "revolted", "nauseated", "repelled"),
    "sadness": ("sadness", "sad", "unhappy", "miserable", "sorrowful", "melancholy", "down"),
    "grief": ("grief", "grieving", "mourn", "loss", "bereavement", "heartbroken"),
    "disappointment": ("disappointment", "disappointed", "letdown", "dissatisfied", "disheartened"),
    "remorse": ("remorse", "regret", "guilty", "ashamed", "sorry", "repentant"),
    "embarrassment": ("embarrassment", "embarrassed", "awkward", "self-conscious", "humiliated", "flustered"),
    "fear": ("fear", "afraid", "scared", "terrified", "frightened", "dread", "alarmed"),
    "nervousness": ("nervousness", "nervous", "anxious", "worried", "uneasy", "jittery", "tense"),
    # Mixed / neutral
    "surprise": ("surprise", "surprised", "shocked", "amazed", "astonished", "startled", "stunned"),
    "curiosity": ("curiosity", "curious", "interested", "intrigued", "inquisitive", "wondering"),
    "confusion": ("confusion", "confused", "puzzled", "perplexed", "bewildered", "uncertain"),
    "realization": ("realization", "realize", "understand", "comprehend", "grasp", "see", "aha"),
    "neutral": (),
}

VALID_EMOTIONS: FrozenSet[str] = frozenset(EMOTION_KEYWORDS)


@runtime_checkable
class EmotionDetector(Protocol):
    """Reports the current emotion label of a character, if known."""

    def current_emotion(self, character: str) -> Optional[str]:
        ...


class NullEmotionDetector:
    """Detector that never knows; emotion rules use keyword detection."""

    def current_emotion(self, character: str) -> Optional[str]:
        return None


class StaticEmotionDetector:
    """Detector backed by a fixed character-to-emotion mapping."""

    def __init__(self, emotions: Optional[Dict[str, str]] = None) -> None:
        self._emotions = dict(emotions or {})

    def set_emotion(self, character: str, emotion: Optional[str]) -> None:
        if emotion is None:
            self._emotions.pop(character, None)
        else:
            self._emotions[character] = emotion

    def current_emotion(self, character: str) -> Optional[str]:
        return self._emotions.get(character)


def detect_emotions_in_text(text: str) -> Tuple[str, ...]:
    """Emotions whose keywords occur in the (lowercased) text."""
    lowered = text.lower()
    return tuple(
        emotion
        for emotion, keywords in EMOTION_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    )
