"""CLI commands package.

Each command is a class extending ChunkRankCommand plus a typer wrapper
function registered in main.py.

Commands:
- search: Rank chunks against a query
- auto: Search with the mode picked from the chunk set
- batch: Run a file of queries
- stats: Importance, group and condition statistics
- validate: Check embeddings, conditions, groups and summary parents
- decay-curve: Project a score across message ages
"""

from __future__ import annotations

from chunkrank.cli.commands.inspect import (
    decay_curve_command,
    stats_command,
    validate_command,
)
from chunkrank.cli.commands.search import (
    auto_command,
    batch_command,
    search_command,
)

__all__ = [
    "search_command",
    "auto_command",
    "batch_command",
    "stats_command",
    "validate_command",
    "decay_curve_command",
]
