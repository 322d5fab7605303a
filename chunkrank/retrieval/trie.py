"""
Keyword index backed by a prefix tree.

Maps each normalized keyword to the ids of the chunks that carry it. Exact
lookup walks one node per character; prefix lookup collects every longer
key below the query's node. The trie is built per search call from the
chunk set passed in, so it never outlives the chunks it describes.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from chunkrank.core.logging import get_logger
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.scored import ScoredChunk

logger = get_logger(__name__)

EXACT_MATCH_WEIGHT = 1.0
PREFIX_MATCH_WEIGHT = 0.8


@dataclass
class TrieNode:
    """One character position in the trie."""

    children: Dict[str, "TrieNode"] = field(default_factory=dict)
    chunk_ids: List[str] = field(default_factory=list)
    terminal: bool = False


class KeywordTrie:
    """
    Prefix tree from keyword to chunk ids.

    Chunk ids under a key keep insertion order and are never duplicated.
    """

    def __init__(self) -> None:
        self._root = TrieNode()
        self._size = 0

    def __len__(self) -> int:
        """Number of distinct keys."""
        return self._size

    def insert(self, keyword: str, chunk_id: str) -> None:
        """Associate a chunk id with a keyword."""
        if not keyword:
            return
        node = self._root
        for char in keyword:
            node = node.children.setdefault(char, TrieNode())
        if not node.terminal:
            node.terminal = True
            self._size += 1
        if chunk_id not in node.chunk_ids:
            node.chunk_ids.append(chunk_id)

    def _find_node(self, prefix: str) -> Optional[TrieNode]:
        node = self._root
        for char in prefix:
            node = node.children.get(char)
            if node is None:
                return None
        return node

    def search(self, keyword: str) -> List[str]:
        """Chunk ids stored under exactly this key (empty if absent)."""
        node = self._find_node(keyword)
        if node is None or not node.terminal:
            return []
        return list(node.chunk_ids)

    def starts_with(self, prefix: str) -> Dict[str, List[str]]:
        """
        All keys strictly longer than ``prefix`` that begin with it.

        The exact key is excluded; it is reported by ``search``.

        Returns:
            Mapping of key to chunk ids, keys in lexicographic order
        """
        node = self._find_node(prefix)
        if node is None:
            return {}
        found: Dict[str, List[str]] = {}
        for key, child in self._walk(node, prefix):
            if key != prefix:
                found[key] = list(child.chunk_ids)
        return found

    def _walk(self, node: TrieNode, prefix: str) -> Iterator[Tuple[str, TrieNode]]:
        # Iterative DFS; keyword length is bounded but chunk sets are not
        stack = [(prefix, node)]
        while stack:
            key, current = stack.pop()
            if current.terminal:
                yield key, current
            for char in sorted(current.children, reverse=True):
                stack.append((key + char, current.children[char]))

    def keys(self) -> List[str]:
        """All stored keys in lexicographic order."""
        return [key for key, _ in self._walk(self._root, "")]


def build_keyword_index(chunks: Sequence[Chunk]) -> KeywordTrie:
    """
    Build a keyword trie over the given chunks.

    Each chunk contributes its keywords and system keywords, lowercased.

    Args:
        chunks: Chunk set for this search call

    Returns:
        Populated KeywordTrie
    """
    trie = KeywordTrie()
    total_keywords = 0

    for chunk in chunks:
        for keyword in chunk.all_keywords:
            trie.insert(keyword.lower(), chunk.id)
            total_keywords += 1

    logger.debug(
        "Built keyword index",
        keywords=total_keywords,
        unique=len(trie),
        chunks=len(chunks),
    )
    return trie


def search_by_keywords(
    query_keywords: Sequence[str],
    index: KeywordTrie,
    chunks: Sequence[Chunk],
    exact_weight: float = EXACT_MATCH_WEIGHT,
    prefix_weight: float = PREFIX_MATCH_WEIGHT,
) -> List[ScoredChunk]:
    """
    Score chunks by keyword overlap with the query.

    For every query keyword, an exact key adds ``exact_weight`` to each
    chunk under it and every longer key sharing the prefix adds
    ``prefix_weight``. A chunk's score is
    ``min(1.0, accumulated / len(query_keywords))``.

    Args:
        query_keywords: Keywords extracted from the query
        index: Trie built from ``chunks``
        chunks: Chunk set the index was built from
        exact_weight: Weight of an exact key match
        prefix_weight: Weight of each prefix key match

    Returns:
        Matching chunks in input order, ``score`` and ``keyword_score`` set
    """
    if not query_keywords:
        logger.warning("Keyword search called with no query keywords")
        return []

    accumulated: Dict[str, float] = {}
    for keyword in query_keywords:
        normalized = keyword.lower()
        for chunk_id in index.search(normalized):
            accumulated[chunk_id] = accumulated.get(chunk_id, 0.0) + exact_weight
        for chunk_ids in index.starts_with(normalized).values():
            for chunk_id in chunk_ids:
                accumulated[chunk_id] = accumulated.get(chunk_id, 0.0) + prefix_weight

    results: List[ScoredChunk] = []
    seen = set()
    for chunk in chunks:
        weight = accumulated.get(chunk.id)
        if weight is None or chunk.id in seen:
            continue
        seen.add(chunk.id)
        score = min(1.0, weight / len(query_keywords))
        results.append(
            ScoredChunk(
                chunk=chunk,
                score=score,
                keyword_score=score,
                keyword_matches=weight,
            )
        )

    logger.debug(
        "Keyword search", query_keywords=len(query_keywords), matches=len(results)
    )
    return results
