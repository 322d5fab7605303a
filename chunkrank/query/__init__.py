"""
Query layer: search options and the search orchestrator.

Architecture Position
---------------------
    CLI (outermost)
      └── **Query** (orchestrator, options - you are here)
            └── Feature Modules (retrieval, features)
                  └── Core (innermost)

Usage Example
-------------
    from chunkrank.query import SearchOrchestrator, SearchOptions

    orchestrator = SearchOrchestrator(config, embedding_provider)
    response = orchestrator.search(
        "Tell me about the dragon",
        chunks,
        SearchOptions(search_mode="keyword", threshold=0.0),
    )
"""

from chunkrank.query.options import SearchOptions
from chunkrank.query.orchestrator import SearchOrchestrator, detect_search_mode

__all__ = ["SearchOptions", "SearchOrchestrator", "detect_search_mode"]
