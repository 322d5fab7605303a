"""chunkrank - Hybrid search orchestration and scoring for RAG chunks.

Combines keyword trie matching with vector similarity and re-weights the
results through an ordered feature pipeline (conditions, group boosts,
importance, temporal decay, required groups, tier ranking).
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
