"""
Keyword extraction and matching.

Keywords give exact-match recall that embeddings cannot guarantee, which
matters most for proper names. This module turns free text into keyword
lists and scores chunk keywords against query keywords; the trie in
``chunkrank.retrieval.trie`` does the indexed lookup.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence

from chunkrank.core.logging import get_logger
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.scored import ScoredChunk

logger = get_logger(__name__)

STOP_WORDS: FrozenSet[str] = frozenset(
    [
        "the",
        "a",
        "an",
        "and",
        "or",
        "but",
        "in",
        "on",
        "at",
        "to",
        "for",
        "of",
        "with",
        "by",
        "from",
        "as",
        "is",
        "was",
        "are",
        "were",
        "be",
        "been",
        "being",
        "have",
        "has",
        "had",
        "do",
        "does",
        "did",
        "will",
        "would",
        "should",
        "could",
        "may",
        "might",
        "must",
        "can",
        "this",
        "that",
        "these",
        "those",
        "i",
        "you",
        "he",
        "she",
        "it",
        "we",
        "they",
        "what",
        "which",
        "who",
        "when",
        "where",
        "why",
        "how",
    ]
)

MATCH_MODE_SCORES: Dict[str, float] = {
    "exact": 1.0,
    "prefix": 0.9,
    "substring": 0.8,
}

POSITION_PENALTY = 0.3

_HTML_TAG = re.compile(r"<[^>]+>")
_HTML_ENTITY = re.compile(r"&[a-zA-Z]+;|&#\d+;")
_MD_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_MD_CODE_FENCE = re.compile(r"```.*?```", re.DOTALL)
_MD_MARKERS = re.compile(r"[*_~`#>]+")
_NON_WORD = re.compile(r"[^\w]")
_WHITESPACE = re.compile(r"\s+")


def is_stop_word(word: str) -> bool:
    return word.lower() in STOP_WORDS


def strip_html(text: str) -> str:
    """Remove HTML tags and entities."""
    return _HTML_ENTITY.sub(" ", _HTML_TAG.sub(" ", text))


def strip_markdown(text: str) -> str:
    """Remove markdown markup, keeping link text."""
    text = _MD_CODE_FENCE.sub(" ", text)
    text = _MD_LINK.sub(r"\1", text)
    return _MD_MARKERS.sub(" ", text)


def extract_keywords(
    text: Optional[str],
    min_length: int = 3,
    max_length: int = 50,
    max_keywords: int = 50,
    lowercase: bool = True,
    remove_markdown: bool = True,
    remove_html: bool = True,
    remove_stop_words: bool = True,
) -> List[str]:
    """
    Extract keywords from text.

    Steps: strip HTML and markdown, normalize whitespace, lowercase, split
    on whitespace, drop punctuation from each token, drop tokens outside
    ``[min_length, max_length]`` and stop words, deduplicate keeping
    first-seen order, cap at ``max_keywords``.

    Args:
        text: Text to extract keywords from
        min_length: Shortest keyword kept
        max_length: Longest keyword kept
        max_keywords: Maximum number of keywords returned

    Returns:
        Keywords in order of first appearance
    """
    if not text or not isinstance(text, str):
        return []

    cleaned = text
    if remove_html:
        cleaned = strip_html(cleaned)
    if remove_markdown:
        cleaned = strip_markdown(cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    if lowercase:
        cleaned = cleaned.lower()

    keywords: Dict[str, None] = {}
    for word in cleaned.split(" "):
        token = _NON_WORD.sub("", word)
        if len(token) < min_length or len(token) > max_length:
            continue
        if remove_stop_words and is_stop_word(token):
            continue
        keywords.setdefault(token, None)

    result = list(keywords)[:max_keywords]
    logger.debug("Extracted keywords", count=len(result), chars=len(text))
    return result


# ============================================================================
# Matching
# ============================================================================


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit insert, delete and substitute costs."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            )
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str) -> float:
    """Edit distance normalized to a 0-1 similarity."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


@dataclass(frozen=True)
class KeywordMatch:
    """Best chunk keyword found for one query keyword."""

    chunk_keyword: str
    query_keyword: str
    score: float


@dataclass(frozen=True)
class KeywordMatchResult:
    """Outcome of matching a chunk's keywords against query keywords."""

    score: float = 0.0
    matches: List[KeywordMatch] = field(default_factory=list)

    @property
    def total_matches(self) -> int:
        return len(self.matches)


def _match_score(
    chunk_keyword: str, query_keyword: str, match_mode: str, fuzzy_threshold: float
) -> float:
    if match_mode == "exact":
        return MATCH_MODE_SCORES["exact"] if chunk_keyword == query_keyword else 0.0
    if match_mode == "prefix":
        return (
            MATCH_MODE_SCORES["prefix"]
            if chunk_keyword.startswith(query_keyword)
            else 0.0
        )
    if match_mode == "substring":
        return MATCH_MODE_SCORES["substring"] if query_keyword in chunk_keyword else 0.0
    if match_mode == "fuzzy":
        similarity = levenshtein_similarity(chunk_keyword, query_keyword)
        return similarity if similarity >= fuzzy_threshold else 0.0
    raise ValueError(f"Unknown keyword match mode: {match_mode}")


def match_keywords(
    chunk_keywords: Sequence[str],
    query_keywords: Sequence[str],
    match_mode: str = "exact",
    case_sensitive: bool = False,
    fuzzy_threshold: float = 0.8,
    position_weight: bool = True,
) -> KeywordMatchResult:
    """
    Match chunk keywords against query keywords.

    Each query keyword takes its best-scoring chunk keyword. With
    ``position_weight`` a match at chunk keyword index ``j`` is scaled by
    ``1 - 0.3 * j / len(chunk_keywords)``, so earlier keywords win ties.
    The result score is the summed best scores over ``len(query_keywords)``.

    Args:
        chunk_keywords: Keywords of one chunk, strongest first
        query_keywords: Keywords extracted from the query
        match_mode: exact, prefix, substring or fuzzy
        case_sensitive: Compare without lowercasing
        fuzzy_threshold: Minimum Levenshtein similarity in fuzzy mode
        position_weight: Apply the positional factor

    Returns:
        KeywordMatchResult with the normalized score and per-keyword matches
    """
    if not chunk_keywords or not query_keywords:
        return KeywordMatchResult()

    chunk_normalized = (
        list(chunk_keywords) if case_sensitive else [k.lower() for k in chunk_keywords]
    )
    query_normalized = (
        list(query_keywords) if case_sensitive else [k.lower() for k in query_keywords]
    )

    matches: List[KeywordMatch] = []
    total = 0.0
    for i, query_keyword in enumerate(query_normalized):
        best: Optional[KeywordMatch] = None
        for j, chunk_keyword in enumerate(chunk_normalized):
            score = _match_score(chunk_keyword, query_keyword, match_mode, fuzzy_threshold)
            if position_weight and score > 0:
                score *= 1.0 - (j / len(chunk_normalized)) * POSITION_PENALTY
            if score > (best.score if best else 0.0):
                best = KeywordMatch(
                    chunk_keyword=chunk_keywords[j],
                    query_keyword=query_keywords[i],
                    score=score,
                )
        if best is not None:
            matches.append(best)
            total += best.score

    return KeywordMatchResult(score=total / len(query_normalized), matches=matches)


# ============================================================================
# Weights and entities
# ============================================================================


def calculate_keyword_weights(chunks: Sequence[Chunk]) -> Dict[str, float]:
    """
    IDF weight per keyword, normalized to 0-1.

    ``weight = log(N / df) / log(N)``; rare keywords approach 1 and a
    keyword present in every chunk gets 0. With a single chunk there is no
    contrast to measure and every weight is 0.
    """
    total_chunks = len(chunks)
    doc_counts: Dict[str, int] = {}
    for chunk in chunks:
        for keyword in set(chunk.all_keywords):
            doc_counts[keyword] = doc_counts.get(keyword, 0) + 1

    if total_chunks <= 1:
        return {keyword: 0.0 for keyword in doc_counts}

    log_total = math.log(total_chunks)
    weights = {
        keyword: min(1.0, math.log(total_chunks / count) / log_total)
        for keyword, count in doc_counts.items()
    }
    logger.debug("Calculated keyword weights", unique=len(weights))
    return weights


def apply_custom_keyword_weights(
    results: Sequence[ScoredChunk], custom_weights: Mapping[str, float]
) -> List[ScoredChunk]:
    """
    Multiply each result's keyword score by the weights of its keywords.

    Results without a keyword score are returned unchanged. The adjusted
    keyword score is clamped to [0, 1].
    """
    if not custom_weights:
        return list(results)

    adjusted: List[ScoredChunk] = []
    for result in results:
        if not result.keyword_score:
            adjusted.append(result)
            continue
        score = result.keyword_score
        for keyword in result.chunk.all_keywords:
            weight = custom_weights.get(keyword.lower())
            if weight is not None:
                score *= weight
        adjusted.append(result.evolve(keyword_score=max(0.0, min(1.0, score))))
    return adjusted


def _is_capitalized(word: str) -> bool:
    return word[:1].isupper()


def extract_entities(text: Optional[str]) -> List[str]:
    """
    Heuristic named-entity candidates.

    A capitalized word of three or more characters that is not a stop word
    is a candidate; when the next word is also capitalized the two form a
    single entity ("Red Keep").
    """
    if not text or not isinstance(text, str):
        return []

    words = [_NON_WORD.sub("", w) for w in text.split()]
    entities: List[str] = []
    i = 0
    while i < len(words):
        word = words[i]
        if len(word) >= 3 and _is_capitalized(word) and not is_stop_word(word):
            if i + 1 < len(words) and _is_capitalized(words[i + 1]):
                entities.append(f"{word} {words[i + 1]}")
                i += 2
                continue
            entities.append(word)
        i += 1
    return entities
