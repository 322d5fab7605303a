"""
Shared pytest fixtures and configuration for chunkrank tests.

This file is automatically discovered by pytest and provides fixtures
that can be used across all test files.

Fixture Organization
--------------------
- **temp_dir**: Temporary directory for file operations
- **config**: Default configuration
- **stub_provider**: Deterministic embedding provider with call tracking
- **dragon_chunks**: Small keyword-only chunk set
- **vector_chunks**: Chunk set with two-dimensional embeddings
- **chat_context**: SearchContext for condition and decay tests
- **write_json**: Helper writing JSON fixture files
"""

import json
import random
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence

import pytest

from chunkrank.core.config import Config
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.context import SearchContext


# ============================================================================
# Collaborator Doubles
# ============================================================================


class StubEmbeddingProvider:
    """Embedding provider returning fixed vectors per text.

    Unknown texts get ``default``. Every call to ``embed`` is recorded so
    tests can assert on cache behaviour.
    """

    def __init__(
        self,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        default: Sequence[float] = (1.0, 0.0),
        source: str = "stub",
    ) -> None:
        self.vectors = dict(vectors or {})
        self.default = tuple(default)
        self.source = source
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return list(self.vectors.get(text, self.default))

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]


class FailingEmbeddingProvider:
    """Embedding provider that always raises."""

    source = "failing"

    def embed(self, text: str) -> List[float]:
        raise RuntimeError("rate limited")

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        raise RuntimeError("rate limited")


class FixedRandom(random.Random):
    """Random source returning one fixed value."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


# ============================================================================
# Path and Directory Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory (cleaned up after test)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_json(temp_dir: Path) -> Callable[[str, Any], Path]:
    """Write data as JSON into temp_dir and return the path.

    Example:
        def test_load(write_json):
            path = write_json("chunks.json", [{"text": "dragon"}])
    """

    def _write(name: str, data: Any) -> Path:
        path = temp_dir / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config() -> Config:
    """Default configuration with a seeded random source."""
    config = Config()
    config.conditions.random_seed = 42
    return config


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def stub_provider() -> StubEmbeddingProvider:
    """Provider embedding every query as (1, 0)."""
    return StubEmbeddingProvider()


@pytest.fixture
def stub_provider_factory() -> Callable[..., StubEmbeddingProvider]:
    return StubEmbeddingProvider


@pytest.fixture
def failing_provider() -> FailingEmbeddingProvider:
    return FailingEmbeddingProvider()


@pytest.fixture
def fixed_random() -> Callable[[float], random.Random]:
    return FixedRandom


# ============================================================================
# Chunk Fixtures
# ============================================================================


@pytest.fixture
def dragon_chunks() -> List[Chunk]:
    """Three keyword-only chunks, one about a dragon."""
    return [
        Chunk(id="dragon", text="The dragon sleeps under the mountain", keywords=("dragon",)),
        Chunk(id="castle", text="The castle walls are tall", keywords=("castle",)),
        Chunk(id="forest", text="The forest is quiet at night", keywords=("forest",)),
    ]


@pytest.fixture
def vector_chunks() -> List[Chunk]:
    """Chunks with keywords and two-dimensional embeddings."""
    return [
        Chunk(
            id="dragon",
            text="The dragon sleeps under the mountain",
            keywords=("dragon",),
            embedding=(1.0, 0.0),
        ),
        Chunk(
            id="castle",
            text="The castle walls are tall",
            keywords=("castle",),
            embedding=(0.0, 1.0),
        ),
        Chunk(
            id="lair",
            text="A cave littered with bones",
            keywords=("cave",),
            embedding=(0.8, 0.6),
        ),
    ]


@pytest.fixture
def chat_context() -> SearchContext:
    """A two-speaker conversation at 23:30."""
    return SearchContext(
        recent_messages=("Where is the dragon?", "The dragon roars in the cave"),
        last_speaker="Alice",
        message_count=12,
        message_speakers=("Bob", "Alice"),
        timestamp=datetime(2024, 5, 1, 23, 30),
        current_character="Alice",
        current_message_id=50,
    )
