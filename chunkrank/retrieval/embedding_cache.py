"""
Query embedding cache for chunkrank.

Bounded LRU cache of query embeddings keyed by the exact query text and the
embedding provider's source, so the same text embedded by two providers
never collides. The cache is shared across concurrent search calls on one
orchestrator, so every read and write happens under a lock.

Two threads missing on the same key may both compute the embedding; the
second insert simply refreshes the entry.
"""

from collections import OrderedDict
from threading import Lock
from typing import Any, Dict, Optional, Tuple

from chunkrank.core.logging import get_logger

logger = get_logger(__name__)

CacheKey = Tuple[str, str]


class QueryEmbeddingCache:
    """
    LRU cache for query embeddings.

    Features:
    - Thread-safe operations
    - LRU eviction when full
    - Keyed on exact text (no normalisation, no fuzzy matching)
    - Cache statistics
    """

    def __init__(self, capacity: int = 100) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._cache: "OrderedDict[CacheKey, Tuple[float, ...]]" = OrderedDict()
        self._lock = Lock()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
        }

    def get(self, text: str, source: str) -> Optional[Tuple[float, ...]]:
        """
        Get the cached embedding for a query.

        Args:
            text: Exact query text.
            source: Embedding provider identity.

        Returns:
            Cached embedding or None on a miss.
        """
        key = (text, source)
        with self._lock:
            embedding = self._cache.get(key)
            if embedding is None:
                self._stats["misses"] += 1
                return None

            self._cache.move_to_end(key)
            self._stats["hits"] += 1
            return embedding

    def put(self, text: str, source: str, embedding: Any) -> None:
        """Cache an embedding, evicting the least recently used entry if full."""
        key = (text, source)
        value = tuple(float(v) for v in embedding)

        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            self._cache[key] = value

            while len(self._cache) > self.capacity:
                evicted, _ = self._cache.popitem(last=False)
                self._stats["evictions"] += 1
                logger.debug("Evicted query embedding", source=evicted[1])

    def clear(self) -> None:
        """Remove all entries. Statistics are kept."""
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total = self._stats["hits"] + self._stats["misses"]
            hit_rate = self._stats["hits"] / total if total > 0 else 0.0

            return {
                "entries": len(self._cache),
                "capacity": self.capacity,
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "evictions": self._stats["evictions"],
                "hit_rate": f"{hit_rate:.2%}",
            }
