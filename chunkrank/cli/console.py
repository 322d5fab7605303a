"""Console output helpers.

Provides consistent formatting for CLI output messages, including the
ErrorRenderer that turns chunkrank errors into "Why" / "How to fix" panels.
"""

from __future__ import annotations

import traceback
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from chunkrank.core.exceptions import ChunkRankError, get_root_cause

# Shared console instance
_console: Console | None = None

# Verbose mode flag (set by CLI --verbose flag)
_verbose_mode: bool = False


def get_console() -> Console:
    """Get shared console instance (lazy-loaded)."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_verbose_mode(enabled: bool) -> None:
    """Enable or disable tracebacks in error panels."""
    global _verbose_mode
    _verbose_mode = enabled


def is_verbose_mode() -> bool:
    return _verbose_mode


def tip(message: str) -> None:
    """Display a dim tip line.

    Example:
        tip("Use --threshold 0 to see every scored chunk")
        # Output: "  Tip: Use --threshold 0 to see every scored chunk"
    """
    get_console().print(f"  [dim]Tip: {message}[/dim]")


# ============================================================================
# ErrorRenderer - Helpful Error Messages
# ============================================================================


class ErrorRenderer:
    """Renders errors as panels with "Why" and "How to fix" sections.

    Example
    -------
        try:
            orchestrator.search(query, chunks)
        except ChunkRankError as e:
            ErrorRenderer.render(e)
            raise typer.Exit(1)

        # Outputs:
        # +------------------------------+
        # |  Error: CR-SRCH-001          |
        # +------------------------------+
        # | Query text is empty          |
        # |                              |
        # | Why it happened:             |
        # |   A search needs query text  |
        # |                              |
        # | How to fix:                  |
        # |   - Pass a non-empty query   |
        # +------------------------------+
    """

    @staticmethod
    def render(
        exc: BaseException,
        context: str = "",
        show_traceback: Optional[bool] = None,
    ) -> None:
        """Render an exception as a helpful error panel.

        Args:
            exc: Exception to render
            context: Optional context message (e.g., "While loading chunks.json")
            show_traceback: Override for verbose mode (None = use global setting)
        """
        console = get_console()

        if isinstance(exc, ChunkRankError):
            error_code = exc.error_code
            why = exc.why_it_happened
            how_to_fix = list(exc.how_to_fix)
        else:
            error_code = "CR-ERR-999"
            why = "An unexpected error occurred"
            how_to_fix = ["Run with --verbose to see the traceback"]

        root_cause = get_root_cause(exc)
        root_message = str(root_cause) if root_cause is not exc else None

        content = ErrorRenderer._build_error_content(
            message=str(exc),
            context=context,
            why=why,
            how_to_fix=how_to_fix,
            root_message=root_message,
        )
        console.print(
            Panel(
                content,
                title=f"[bold red]Error: {error_code}[/bold red]",
                border_style="red",
                padding=(1, 2),
            )
        )

        should_show_traceback = (
            show_traceback if show_traceback is not None else is_verbose_mode()
        )
        if should_show_traceback:
            ErrorRenderer._render_traceback(exc)

    @staticmethod
    def _build_error_content(
        message: str,
        context: str,
        why: str,
        how_to_fix: List[str],
        root_message: Optional[str],
    ) -> Text:
        text = Text()

        if context:
            text.append(f"{context}\n", style="dim")
            text.append("\n")

        text.append(message, style="bold red")
        text.append("\n\n")

        if root_message and root_message != message:
            text.append("Root cause: ", style="bold yellow")
            text.append(root_message, style="yellow")
            text.append("\n\n")

        text.append("Why it happened:\n", style="bold cyan")
        text.append(f"  {why}\n", style="cyan")
        text.append("\n")

        text.append("How to fix:\n", style="bold green")
        for fix in how_to_fix:
            text.append(f"  - {fix}\n", style="green")

        return text

    @staticmethod
    def _render_traceback(exc: BaseException) -> None:
        console = get_console()
        console.print()
        console.print("[dim]--- Traceback (--verbose mode) ---[/dim]")
        tb_text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        console.print(f"[dim]{tb_text}[/dim]")

    @staticmethod
    def render_warning(message: str, suggestion: str = "") -> None:
        """Render a non-fatal warning panel."""
        content = Text()
        content.append(message, style="bold yellow")
        if suggestion:
            content.append("\n\n")
            content.append("Suggestion: ", style="bold")
            content.append(suggestion, style="dim")

        get_console().print(
            Panel(
                content,
                title="[bold yellow]Warning[/bold yellow]",
                border_style="yellow",
                padding=(0, 2),
            )
        )
