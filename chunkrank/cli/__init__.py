"""chunkrank CLI - rank chunk files from the command line.

Main entry point is in main.py which registers all commands.

Usage:
    python -m chunkrank          # Run CLI
    chunkrank --help
"""


def __getattr__(name: str):
    """Lazy import to avoid RuntimeWarning when running as module."""
    if name == "app":
        from chunkrank.cli.main import app

        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["app"]
