"""
Retrieval: keyword and vector matching, and result fusion.

Architecture Position
---------------------
    CLI (outermost)
      └── Query (orchestrator, options)
            └── **Feature Modules** (retrieval - you are here, features)
                  └── Core (innermost)

Matchers
--------
**Keyword index (trie.py, keywords.py, priority.py)**
    A trie from keyword to chunk ids. Exact keys weigh 1.0, longer keys
    sharing the query keyword as prefix weigh 0.8; the sum is normalized by
    the number of query keywords. Priority tiers (critical 2.0, high 1.5,
    normal 1.0, low 0.5) re-weight matches when a PriorityContext is given.

**Vector matcher (vector.py, similarity.py)**
    Query embeddings come from an injected EmbeddingProvider through a
    lock-guarded LRU cache. Chunk embeddings missing from the input are
    fetched from a VectorEnrichment source. Cosine, Jaccard and Hamming
    similarity share one ranking contract.

Fusion (fusion.py)
------------------
    - Dual-vector (summary + full text): weighted Reciprocal Rank Fusion,
      k=60, summary weight 1.5, full weight 1.0
    - Hybrid (keyword + vector): weighted score sum, 0.3 / 0.7

The two algorithms are deliberately distinct: rank fusion for one signal at
two granularities, score fusion for two different signals.
"""

from chunkrank.retrieval.dual_vector import (
    create_summary_chunks,
    expand_summary_chunks,
    filter_chunks_by_search_mode,
)
from chunkrank.retrieval.embedding_cache import QueryEmbeddingCache
from chunkrank.retrieval.fusion import reciprocal_rank_fusion, weighted_sum_fusion
from chunkrank.retrieval.keywords import (
    STOP_WORDS,
    KeywordMatchResult,
    extract_entities,
    extract_keywords,
    match_keywords,
)
from chunkrank.retrieval.priority import (
    PRIORITY_TIERS,
    PriorityContext,
    assign_keyword_priority,
    build_priority_context,
    calculate_weighted_keyword_score,
)
from chunkrank.retrieval.providers import (
    EmbeddingProvider,
    HashingEmbeddingProvider,
    InMemoryVectorStore,
    VectorEnrichment,
    VectorRecord,
)
from chunkrank.retrieval.similarity import (
    calculate_similarity_stats,
    find_top_k,
    get_similarity_fn,
)
from chunkrank.retrieval.trie import KeywordTrie, build_keyword_index, search_by_keywords
from chunkrank.retrieval.vector import (
    EmbeddingValidation,
    VectorMatcher,
    VectorSearchResult,
    validate_chunk_embeddings,
)

__all__ = [
    "create_summary_chunks",
    "expand_summary_chunks",
    "filter_chunks_by_search_mode",
    "QueryEmbeddingCache",
    "reciprocal_rank_fusion",
    "weighted_sum_fusion",
    "STOP_WORDS",
    "KeywordMatchResult",
    "extract_entities",
    "extract_keywords",
    "match_keywords",
    "PRIORITY_TIERS",
    "PriorityContext",
    "assign_keyword_priority",
    "build_priority_context",
    "calculate_weighted_keyword_score",
    "EmbeddingProvider",
    "HashingEmbeddingProvider",
    "InMemoryVectorStore",
    "VectorEnrichment",
    "VectorRecord",
    "calculate_similarity_stats",
    "find_top_k",
    "get_similarity_fn",
    "KeywordTrie",
    "build_keyword_index",
    "search_by_keywords",
    "EmbeddingValidation",
    "VectorMatcher",
    "VectorSearchResult",
    "validate_chunk_embeddings",
]
