"""Search commands - rank chunks from a file against queries.

Provides ``search`` (explicit mode), ``auto`` (mode picked from the chunk
set) and ``batch`` (one query per line, errors kept per query).
"""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.progress import Progress
from rich.table import Table

from chunkrank.cli.command_base import ChunkRankCommand
from chunkrank.cli.console import tip
from chunkrank.cli.loaders import load_queries
from chunkrank.core.exceptions import ChunkRankError
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.results import SearchResponse
from chunkrank.query.options import SearchOptions
from chunkrank.retrieval.providers import HashingEmbeddingProvider

DEFAULT_DIMENSIONS = 256
PREVIEW_CHARS = 80


def embed_missing(chunks: Sequence[Chunk], dimensions: Optional[int] = None) -> tuple:
    """
    Fill missing chunk embeddings with the offline hashing provider.

    The dimension follows the first embedded chunk so query and chunk
    vectors match.

    Returns:
        (chunks, provider)
    """
    if dimensions is None:
        dimensions = next(
            (len(c.embedding) for c in chunks if c.has_embedding), DEFAULT_DIMENSIONS
        )
    provider = HashingEmbeddingProvider(dimensions=dimensions)
    missing = [c for c in chunks if not c.has_embedding]
    if not missing:
        return list(chunks), provider

    vectors = iter(provider.embed_batch([c.text for c in missing]))
    filled = [
        c if c.has_embedding else replace(c, embedding=tuple(next(vectors)))
        for c in chunks
    ]
    return filled, provider


def render_response(
    command: ChunkRankCommand, query: str, response: SearchResponse, show_text: bool = True
) -> None:
    """Print a ranked result table with timing and stats."""
    console = command.console
    if not response.results:
        command.print_warning(f"No results for: {query}")
        tip("Lower --threshold or check the chunk keywords and embeddings")
        return

    table = Table(title=f"Results for: {query}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Keyword", justify="right")
    table.add_column("Vector", justify="right")
    table.add_column("Flags")
    if show_text:
        table.add_column("Text")

    for rank, result in enumerate(response.results, start=1):
        flags = []
        if result.group_boosted:
            flags.append("boosted")
        if result.importance_applied:
            flags.append(f"imp={result.chunk.importance}")
        if result.decay_applied:
            flags.append(f"decay={result.decay_multiplier:.2f}")
        if result.forced_by_group:
            flags.append(f"forced:{result.forced_group}")
        row = [
            str(rank),
            result.id,
            f"{result.score:.4f}",
            "-" if result.keyword_score is None else f"{result.keyword_score:.3f}",
            "-" if result.vector_score is None else f"{result.vector_score:.3f}",
            ", ".join(flags),
        ]
        if show_text:
            text = result.chunk.text.replace("\n", " ")
            row.append(text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else ""))
        table.add_row(*row)

    console.print(table)
    stats = response.stats
    console.print(
        f"[dim]{stats.final_results} results from {stats.searchable_chunks} "
        f"searchable / {stats.original_chunks} chunks, mode={response.timing.mode}, "
        f"{response.timing.duration_ms:.1f} ms[/dim]"
    )


class SearchCommand(ChunkRankCommand):
    """Rank a chunk file against one query."""

    def execute(
        self,
        query: str,
        chunks_file: Path,
        context_file: Optional[Path] = None,
        config_file: Optional[Path] = None,
        auto: bool = False,
        json_output: bool = False,
        embed: bool = False,
        **overrides: object,
    ) -> int:
        try:
            config = self.load_config(config_file)
            chunks = self.load_chunks(chunks_file)
            loaded = self.load_context(context_file, config)

            provider = None
            if embed:
                chunks, provider = embed_missing(chunks)
            orchestrator = self.build_orchestrator(config, loaded, provider)

            options = SearchOptions.from_config(config, **overrides)
            context = loaded.context if loaded else None
            if auto:
                response = orchestrator.auto_search(query, chunks, options, context)
            else:
                response = orchestrator.search(query, chunks, options, context)
        except ChunkRankError as e:
            return self.handle_error(e, f"While searching {chunks_file.name}")

        if json_output:
            typer.echo(json.dumps(response.to_dict(), indent=2))
        else:
            render_response(self, query, response)
        return 0


class BatchCommand(ChunkRankCommand):
    """Run every query of a file against a chunk file."""

    def execute(
        self,
        queries_file: Path,
        chunks_file: Path,
        context_file: Optional[Path] = None,
        config_file: Optional[Path] = None,
        json_output: bool = False,
        embed: bool = False,
        **overrides: object,
    ) -> int:
        try:
            config = self.load_config(config_file)
            queries = load_queries(queries_file)
            chunks = self.load_chunks(chunks_file)
            loaded = self.load_context(context_file, config)

            provider = None
            if embed:
                chunks, provider = embed_missing(chunks)
            orchestrator = self.build_orchestrator(config, loaded, provider)
            options = SearchOptions.from_config(config, **overrides)
            context = loaded.context if loaded else None

            with Progress(console=self.console, transient=True) as progress:
                task = progress.add_task("Searching", total=len(queries))
                responses = orchestrator.batch_search(
                    queries,
                    chunks,
                    options,
                    context,
                    progress_callback=lambda done, total: progress.update(
                        task, completed=done
                    ),
                )
        except ChunkRankError as e:
            return self.handle_error(e, f"While running {queries_file.name}")

        if json_output:
            typer.echo(
                json.dumps(
                    [
                        {"query": q, **r.to_dict(include_text=False)}
                        for q, r in zip(queries, responses)
                    ],
                    indent=2,
                )
            )
        else:
            self._render_summary(queries, responses)

        failed = sum(1 for r in responses if not r.ok)
        return 1 if failed and failed == len(responses) else 0

    def _render_summary(
        self, queries: List[str], responses: List[SearchResponse]
    ) -> None:
        table = Table(title="Batch search")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Query")
        table.add_column("Results", justify="right")
        table.add_column("Top score", justify="right", style="green")
        table.add_column("Error", style="red")
        for i, (query, response) in enumerate(zip(queries, responses), start=1):
            top = f"{response.results[0].score:.4f}" if response.results else "-"
            error = f"{response.error_kind}: {response.error}" if response.error else ""
            table.add_row(str(i), query, str(len(response.results)), top, error)
        self.console.print(table)


# Typer command wrappers


def _overrides(
    mode: Optional[str],
    top_k: Optional[int],
    threshold: Optional[float],
    dual_vector: Optional[bool],
    similarity: Optional[str],
) -> dict:
    return {
        "search_mode": mode,
        "top_k": top_k,
        "threshold": threshold,
        "dual_vector": dual_vector,
        "similarity_algorithm": similarity,
    }


CHUNKS_OPTION = typer.Option(..., "--chunks", "-c", help="Chunk file (JSON or YAML)")
CONTEXT_OPTION = typer.Option(None, "--context", help="Search context file (JSON or YAML)")
CONFIG_OPTION = typer.Option(None, "--config", help="Configuration file (YAML)")
TOP_K_OPTION = typer.Option(None, "--top-k", "-k", help="Maximum number of results")
THRESHOLD_OPTION = typer.Option(None, "--threshold", "-t", help="Minimum score (0-1)")
DUAL_OPTION = typer.Option(
    None, "--dual-vector/--no-dual-vector", help="Fuse summary and full-text search"
)
SIMILARITY_OPTION = typer.Option(
    None, "--similarity", help="Similarity: cosine, jaccard or hamming"
)
EMBED_OPTION = typer.Option(
    False, "--embed", help="Embed query and unembedded chunks with the offline hashing provider"
)
JSON_OPTION = typer.Option(False, "--json", help="Print results as JSON")


def search_command(
    query: str = typer.Argument(..., help="Query text"),
    chunks: Path = CHUNKS_OPTION,
    context: Optional[Path] = CONTEXT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m", help="Search mode: keyword, vector or hybrid"
    ),
    top_k: Optional[int] = TOP_K_OPTION,
    threshold: Optional[float] = THRESHOLD_OPTION,
    dual_vector: Optional[bool] = DUAL_OPTION,
    similarity: Optional[str] = SIMILARITY_OPTION,
    embed: bool = EMBED_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Rank chunks against a query.

    Examples:
        # Keyword search
        chunkrank search "Tell me about the dragon" --chunks chunks.json --mode keyword

        # Hybrid search with offline embeddings and a chat context
        chunkrank search "dragon lair" -c chunks.json --context chat.json --embed
    """
    exit_code = SearchCommand().execute(
        query,
        chunks,
        context_file=context,
        config_file=config,
        json_output=json_output,
        embed=embed,
        **_overrides(mode, top_k, threshold, dual_vector, similarity),
    )
    if exit_code != 0:
        raise typer.Exit(code=exit_code)


def auto_command(
    query: str = typer.Argument(..., help="Query text"),
    chunks: Path = CHUNKS_OPTION,
    context: Optional[Path] = CONTEXT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    top_k: Optional[int] = TOP_K_OPTION,
    threshold: Optional[float] = THRESHOLD_OPTION,
    dual_vector: Optional[bool] = DUAL_OPTION,
    similarity: Optional[str] = SIMILARITY_OPTION,
    embed: bool = EMBED_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Rank chunks with the search mode picked from the chunk set.

    Hybrid when chunks carry keywords and embeddings, otherwise whichever
    of the two they carry.
    """
    exit_code = SearchCommand().execute(
        query,
        chunks,
        context_file=context,
        config_file=config,
        auto=True,
        json_output=json_output,
        embed=embed,
        **_overrides(None, top_k, threshold, dual_vector, similarity),
    )
    if exit_code != 0:
        raise typer.Exit(code=exit_code)


def batch_command(
    queries: Path = typer.Argument(..., help="Queries file (one per line, or JSON/YAML list)"),
    chunks: Path = CHUNKS_OPTION,
    context: Optional[Path] = CONTEXT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    mode: Optional[str] = typer.Option(
        None, "--mode", "-m", help="Search mode: keyword, vector or hybrid"
    ),
    top_k: Optional[int] = TOP_K_OPTION,
    threshold: Optional[float] = THRESHOLD_OPTION,
    dual_vector: Optional[bool] = DUAL_OPTION,
    similarity: Optional[str] = SIMILARITY_OPTION,
    embed: bool = EMBED_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Run many queries; a failing query is reported without stopping the batch.

    Examples:
        chunkrank batch queries.txt --chunks chunks.json --mode keyword --json
    """
    exit_code = BatchCommand().execute(
        queries,
        chunks,
        context_file=context,
        config_file=config,
        json_output=json_output,
        embed=embed,
        **_overrides(mode, top_k, threshold, dual_vector, similarity),
    )
    if exit_code != 0:
        raise typer.Exit(code=exit_code)
