"""
Collaborator contracts for the vector path.

The engine never produces embeddings or stores vectors itself. Callers
inject an EmbeddingProvider (query embeddings) and optionally a
VectorEnrichment source (stored chunk vectors, keyed by collection id).

Retries and backoff belong to the provider implementation; the engine calls
each collaborator once per need and surfaces any failure unchanged.

Two offline implementations ship with the package:

- HashingEmbeddingProvider: deterministic feature hashing with numpy, used
  by the CLI to embed chunks and queries without a model. Not semantic.
- InMemoryVectorStore: vectors held in a dict, for callers that load
  exported collections and for tests.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from chunkrank.core.logging import get_logger

logger = get_logger(__name__)

_TOKEN = re.compile(r"\w+")


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Produces embeddings for text.

    ``source`` identifies the provider (and model) and is part of the query
    cache key, so two providers never share cached vectors.
    """

    source: str

    def embed(self, text: str) -> Sequence[float]:
        """Embed one text."""
        ...

    def embed_batch(self, texts: Sequence[str]) -> List[Sequence[float]]:
        """Embed several texts, one vector per text in order."""
        ...


@dataclass(frozen=True)
class VectorRecord:
    """A stored vector for one chunk."""

    id: str
    vector: Sequence[float]


@runtime_checkable
class VectorEnrichment(Protocol):
    """Fetches stored chunk vectors for a collection."""

    def fetch_vectors(self, collection_id: str, source: str) -> List[VectorRecord]:
        """All vectors of the collection embedded by ``source``."""
        ...


class HashingEmbeddingProvider:
    """
    Deterministic bag-of-words embedding via feature hashing.

    Each lowercase token is hashed (SHA-256) to a dimension and a sign; the
    summed vector is L2-normalized. Texts sharing tokens get positive cosine
    similarity, identical texts get 1.0.
    """

    def __init__(self, dimensions: int = 256, source: str = "hashing") -> None:
        if dimensions <= 0:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self.dimensions = dimensions
        self.source = f"{source}-{dimensions}"

    def _bucket(self, token: str) -> "tuple[int, float]":
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        index = int.from_bytes(digest[:4], "big") % self.dimensions
        sign = 1.0 if digest[4] & 1 else -1.0
        return index, sign

    def embed(self, text: str) -> List[float]:
        vector = np.zeros(self.dimensions, dtype=float)
        for token in _TOKEN.findall(text.lower()):
            index, sign = self._bucket(token)
            vector[index] += sign
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]


class InMemoryVectorStore:
    """Vectors keyed by collection id, then by embedding source."""

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Sequence[float]]]] = {}

    def add(
        self,
        collection_id: str,
        vectors: Mapping[str, Sequence[float]],
        source: str = "default",
    ) -> None:
        """Store (or replace) vectors for chunk ids."""
        store = self._collections.setdefault(collection_id, {}).setdefault(source, {})
        store.update(vectors)

    def fetch_vectors(self, collection_id: str, source: str) -> List[VectorRecord]:
        vectors: Optional[Dict[str, Sequence[float]]] = self._collections.get(
            collection_id, {}
        ).get(source)
        if not vectors:
            logger.debug(
                "No stored vectors", collection_id=collection_id, source=source
            )
            return []
        return [VectorRecord(id=chunk_id, vector=v) for chunk_id, v in vectors.items()]
