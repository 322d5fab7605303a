"""Inspection commands - statistics, validation and decay projection.

These commands never search; they report on a chunk file or on decay
settings so problems surface before a search fails.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import typer
from rich.table import Table

from chunkrank.cli.command_base import ChunkRankCommand
from chunkrank.core.config.search import DecayConfig
from chunkrank.core.exceptions import ChunkRankError
from chunkrank.core.models.chunk import Chunk
from chunkrank.features.conditions import get_condition_stats, validate_conditions
from chunkrank.features.decay import project_decay_curve
from chunkrank.features.groups import get_group_stats, validate_chunk_group
from chunkrank.features.importance import get_importance_stats
from chunkrank.retrieval.dual_vector import find_orphan_summaries
from chunkrank.retrieval.vector import validate_chunk_embeddings


def collect_chunk_stats(chunks: List[Chunk]) -> Dict[str, Any]:
    """Counts plus importance, group and condition statistics."""
    return {
        "chunks": len(chunks),
        "with_keywords": sum(1 for c in chunks if c.has_keywords),
        "with_embeddings": sum(1 for c in chunks if c.has_embedding),
        "summary_chunks": sum(1 for c in chunks if c.is_summary_chunk),
        "chat_chunks": sum(1 for c in chunks if c.is_chat_chunk),
        "disabled": sum(1 for c in chunks if c.disabled),
        "importance": get_importance_stats(chunks),
        "groups": get_group_stats(chunks),
        "conditions": get_condition_stats(chunks),
    }


def collect_chunk_problems(chunks: List[Chunk]) -> List[Dict[str, str]]:
    """
    Problems that would make a search fail or behave unexpectedly.

    Embeddings are checked only when some chunk carries one; a keyword-only
    chunk set is valid.
    """
    problems: List[Dict[str, str]] = []

    if any(c.embedding is not None for c in chunks):
        embedded = [c for c in chunks if c.embedding is not None]
        validation = validate_chunk_embeddings(embedded)
        for issue in validation.issues:
            problems.append({"id": issue["id"], "area": "embedding", "problem": issue["issue"]})
        missing = len(chunks) - len(embedded)
        if missing:
            problems.append(
                {
                    "id": "-",
                    "area": "embedding",
                    "problem": f"{missing} chunks have no embedding (vector search needs enrichment)",
                }
            )

    for chunk in chunks:
        for error in validate_conditions(chunk.conditions).errors:
            problems.append({"id": chunk.id, "area": "conditions", "problem": error})
        for error in validate_chunk_group(chunk.chunk_group).errors:
            problems.append({"id": chunk.id, "area": "group", "problem": error})
    by_id = {c.id: c for c in chunks}
    for orphan_id in find_orphan_summaries(chunks):
        problems.append(
            {
                "id": orphan_id,
                "area": "summary",
                "problem": f"Parent {by_id[orphan_id].parent_id} is not in the chunk set",
            }
        )
    return problems


class StatsCommand(ChunkRankCommand):
    """Show chunk set statistics."""

    def execute(self, chunks_file: Path, json_output: bool = False) -> int:
        try:
            chunks = self.load_chunks(chunks_file)
        except ChunkRankError as e:
            return self.handle_error(e, f"While loading {chunks_file.name}")

        stats = collect_chunk_stats(chunks)
        if json_output:
            typer.echo(json.dumps(stats, indent=2))
            return 0

        overview = Table(title=f"Chunk set: {chunks_file.name}")
        overview.add_column("Metric")
        overview.add_column("Value", justify="right")
        for key in ("chunks", "with_keywords", "with_embeddings", "summary_chunks", "chat_chunks", "disabled"):
            overview.add_row(key.replace("_", " "), str(stats[key]))
        importance = stats["importance"]
        overview.add_row("importance min/avg/max", f"{importance['min']} / {importance['avg']:.1f} / {importance['max']}")
        groups = stats["groups"]
        overview.add_row("groups (required)", f"{groups['total_groups']} ({groups['required_groups']})")
        conditions = stats["conditions"]
        overview.add_row("conditions enabled", str(conditions["conditions_enabled"]))
        self.console.print(overview)

        if importance["distribution"]:
            buckets = Table(title="Importance distribution")
            buckets.add_column("Bucket", justify="right")
            buckets.add_column("Chunks", justify="right")
            for bucket, count in sorted(importance["distribution"].items()):
                buckets.add_row(f"{bucket}-{bucket + 24}", str(count))
            self.console.print(buckets)
        return 0


class ValidateCommand(ChunkRankCommand):
    """Validate embeddings, conditions, groups and summary parents."""

    def execute(self, chunks_file: Path, json_output: bool = False) -> int:
        try:
            chunks = self.load_chunks(chunks_file)
        except ChunkRankError as e:
            return self.handle_error(e, f"While loading {chunks_file.name}")

        problems = collect_chunk_problems(chunks)
        if json_output:
            typer.echo(json.dumps({"valid": not problems, "problems": problems}, indent=2))
        elif not problems:
            self.print_success(f"{len(chunks)} chunks valid")
        else:
            table = Table(title=f"{len(problems)} problems")
            table.add_column("Chunk", style="cyan")
            table.add_column("Area")
            table.add_column("Problem", style="red")
            for problem in problems:
                table.add_row(problem["id"], problem["area"], problem["problem"])
            self.console.print(table)
        return 1 if problems else 0


class DecayCurveCommand(ChunkRankCommand):
    """Project a score across message ages."""

    def execute(
        self,
        score: float,
        mode: str = "exponential",
        half_life: float = 50.0,
        linear_rate: float = 0.01,
        min_relevance: float = 0.3,
        json_output: bool = False,
    ) -> int:
        try:
            settings = DecayConfig(
                enabled=True,
                mode=mode,
                half_life=half_life,
                linear_rate=linear_rate,
                min_relevance=min_relevance,
            )
        except ChunkRankError as e:
            return self.handle_error(e, "While reading decay settings")

        curve = project_decay_curve(score, settings)
        if json_output:
            typer.echo(json.dumps([{"age": p.age, "score": p.score} for p in curve], indent=2))
            return 0

        table = Table(title=f"{mode} decay of {score}")
        table.add_column("Age (messages)", justify="right")
        table.add_column("Score", justify="right", style="green")
        for point in curve:
            table.add_row(str(point.age), f"{point.score:.4f}")
        self.console.print(table)
        return 0


# Typer command wrappers


def _exit(code: int) -> None:
    if code != 0:
        raise typer.Exit(code=code)


def stats_command(
    chunks: Path = typer.Option(..., "--chunks", "-c", help="Chunk file (JSON or YAML)"),
    json_output: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Show importance, group and condition statistics for a chunk file."""
    _exit(StatsCommand().execute(chunks, json_output))


def validate_command(
    chunks: Path = typer.Option(..., "--chunks", "-c", help="Chunk file (JSON or YAML)"),
    json_output: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Validate embeddings, condition rules, groups and summary parents.

    Exits with code 1 when any problem is found.
    """
    _exit(ValidateCommand().execute(chunks, json_output))


def decay_curve_command(
    score: float = typer.Argument(..., help="Base score"),
    mode: str = typer.Option("exponential", "--mode", help="exponential or linear"),
    half_life: float = typer.Option(50.0, "--half-life", help="Messages until half relevance"),
    linear_rate: float = typer.Option(0.01, "--linear-rate", help="Linear decay per message"),
    min_relevance: float = typer.Option(0.3, "--min-relevance", help="Multiplier floor"),
    json_output: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Show how a score decays at ages 0, 10, 20, 50, 100 and 200 messages.

    Examples:
        chunkrank decay-curve 0.9 --mode linear --linear-rate 0.005
    """
    _exit(
        DecayCurveCommand().execute(
            score, mode, half_life, linear_rate, min_relevance, json_output
        )
    )
