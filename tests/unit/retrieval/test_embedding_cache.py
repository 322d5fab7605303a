"""
Tests for the query embedding cache.

Test Strategy
-------------
- Keys are (exact text, provider source)
- Least recently used entries are evicted first
- Statistics count hits, misses and evictions

Organization
------------
- TestQueryEmbeddingCache: get/put/evict/stats
- TestConcurrentAccess: shared use from several threads
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from chunkrank.retrieval.embedding_cache import QueryEmbeddingCache


# ============================================================================
# Test Classes
# ============================================================================


class TestQueryEmbeddingCache:
    """Tests for QueryEmbeddingCache.

    Rule #4: Focused test class - tests only cache semantics
    """

    def test_hit_after_put(self):
        cache = QueryEmbeddingCache(capacity=2)
        cache.put("dragon", "stub", [1, 0])

        assert cache.get("dragon", "stub") == (1.0, 0.0)
        assert cache.get_stats()["hits"] == 1

    def test_keyed_by_source(self):
        cache = QueryEmbeddingCache()
        cache.put("dragon", "model-a", [1, 0])

        assert cache.get("dragon", "model-b") is None
        assert ("dragon", "model-a") in cache

    def test_exact_text_only(self):
        cache = QueryEmbeddingCache()
        cache.put("dragon", "stub", [1, 0])

        assert cache.get("Dragon", "stub") is None
        assert cache.get("dragon ", "stub") is None

    def test_lru_eviction(self):
        cache = QueryEmbeddingCache(capacity=2)
        cache.put("a", "s", [1])
        cache.put("b", "s", [2])
        cache.get("a", "s")
        cache.put("c", "s", [3])

        assert cache.get("b", "s") is None
        assert cache.get("a", "s") == (1.0,)
        assert len(cache) == 2
        assert cache.get_stats()["evictions"] == 1

    def test_clear_keeps_stats(self):
        cache = QueryEmbeddingCache()
        cache.put("a", "s", [1])
        cache.get("a", "s")

        cache.clear()

        assert len(cache) == 0
        assert cache.get_stats()["hits"] == 1

    def test_stats_hit_rate(self):
        cache = QueryEmbeddingCache()
        cache.put("a", "s", [1])
        cache.get("a", "s")
        cache.get("b", "s")

        stats = cache.get_stats()

        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.00%"
        assert stats["capacity"] == 100

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            QueryEmbeddingCache(capacity=0)


class TestConcurrentAccess:
    """Tests for concurrent cache use.

    Rule #4: Focused test class - tests only thread safety
    """

    def test_parallel_puts_respect_capacity(self):
        cache = QueryEmbeddingCache(capacity=10)

        def work(i: int) -> None:
            cache.put(f"q{i}", "s", [float(i)])
            cache.get(f"q{i}", "s")

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(work, range(100)))

        assert len(cache) == 10
        stats = cache.get_stats()
        assert stats["evictions"] == 90
        assert stats["hits"] + stats["misses"] == 100
