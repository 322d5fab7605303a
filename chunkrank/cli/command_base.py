"""Base class for CLI commands.

Commands load configuration and input files, build the orchestrator with
its collaborators, and turn errors into rendered panels plus an exit code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional

from rich.console import Console

from chunkrank.cli.console import ErrorRenderer, get_console
from chunkrank.cli.loaders import LoadedContext, load_chunks, load_context
from chunkrank.core.config import Config, load_config
from chunkrank.core.models.chunk import Chunk
from chunkrank.features.emotions import StaticEmotionDetector
from chunkrank.query.orchestrator import SearchOrchestrator
from chunkrank.retrieval.providers import EmbeddingProvider


class ChunkRankCommand(ABC):
    """Abstract base class for chunkrank CLI commands.

    Subclasses implement ``execute`` and return an exit code.

    Example:
        class MyCommand(ChunkRankCommand):
            def execute(self, chunks_file: Path) -> int:
                chunks = self.load_chunks(chunks_file)
                self.print_info(f"{len(chunks)} chunks")
                return 0
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or get_console()

    @abstractmethod
    def execute(self, *args: Any, **kwargs: Any) -> int:
        """Execute the command; returns the exit code (0 = success)."""

    # === Inputs ===

    def load_config(self, config_path: Optional[Path] = None) -> Config:
        return load_config(config_path)

    def load_chunks(self, path: Path) -> List[Chunk]:
        return load_chunks(path)

    def load_context(
        self, path: Optional[Path], config: Config
    ) -> Optional[LoadedContext]:
        if path is None:
            return None
        return load_context(path, config.conditions.context_window)

    def build_orchestrator(
        self,
        config: Config,
        loaded_context: Optional[LoadedContext] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
    ) -> SearchOrchestrator:
        """Orchestrator with an emotion detector fed by the context file."""
        detector = None
        if loaded_context is not None and loaded_context.current_emotion:
            character = loaded_context.context.current_character or ""
            detector = StaticEmotionDetector({character: loaded_context.current_emotion})

        return SearchOrchestrator(
            config,
            embedding_provider=embedding_provider,
            emotion_detector=detector,
        )

    # === Output Methods ===

    def print_success(self, message: str) -> None:
        self.console.print(f"[green][OK][/green] {message}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow][WARN][/yellow] {message}")

    def print_info(self, message: str) -> None:
        self.console.print(f"[cyan][INFO][/cyan] {message}")

    # === Error Handling ===

    def handle_error(self, error: Exception, context: str = "") -> int:
        """Render the error panel and return exit code 1."""
        ErrorRenderer.render(error, context)
        return 1
