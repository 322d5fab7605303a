"""chunkrank CLI - Main application entry point.

Registers the search and inspection commands and the global options
(--version, --verbose, --log-level).
"""

from __future__ import annotations

import typer

from chunkrank.cli.commands import (
    auto_command,
    batch_command,
    decay_curve_command,
    search_command,
    stats_command,
    validate_command,
)
from chunkrank.cli.console import set_verbose_mode
from chunkrank.core.logging import configure_logging

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Create main Typer application
app = typer.Typer(
    name="chunkrank",
    help="Hybrid keyword and vector search with feature re-weighting for RAG chunks",
    add_completion=False,
    pretty_exceptions_enable=False,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from chunkrank import __version__

        typer.echo(f"chunkrank version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Debug logging and tracebacks in error panels"
    ),
    log_level: str = typer.Option(
        "WARNING", "--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL"
    ),
) -> None:
    """chunkrank - rank RAG chunks by keywords, vectors and chunk metadata."""
    level = "DEBUG" if verbose else log_level.upper()
    if level not in LOG_LEVELS:
        raise typer.BadParameter(
            f"must be one of {', '.join(LOG_LEVELS)}", param_hint="--log-level"
        )
    configure_logging(level=level)
    set_verbose_mode(verbose)

    # If no command provided, show help
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


app.command("search", rich_help_panel="Search")(search_command)
app.command("auto", rich_help_panel="Search")(auto_command)
app.command("batch", rich_help_panel="Search")(batch_command)
app.command("stats", rich_help_panel="Inspect")(stats_command)
app.command("validate", rich_help_panel="Inspect")(validate_command)
app.command("decay-curve", rich_help_panel="Inspect")(decay_curve_command)


def cli_main() -> None:
    """Entry point for console_scripts."""
    app()


if __name__ == "__main__":
    cli_main()
