"""
Structured Logging for chunkrank.

This module provides the logging infrastructure used across the engine:
context binding, a stage-aware logger for the search pipeline, and
consistent formatting for every module.

Architecture Context
--------------------
Logging is a Core layer service. All modules import get_logger() from here
rather than using Python's logging directly:

    # Good - uses chunkrank's structured logging
    from chunkrank.core.logging import get_logger
    logger = get_logger(__name__)

    # Avoid - bypasses our structure
    import logging
    logger = logging.getLogger(__name__)

Logger Types
------------
**StructuredLogger**
    Base logger with context binding support. Key-value pairs attached with
    bind() appear in all subsequent log messages:

        logger = get_logger(__name__)
        logger.bind(query_id="q-1")
        logger.info("Search started")  # includes query_id

**StageLogger**
    Tracks the ordered stages of one search call (conditions, search,
    group_boost, importance, decay, select, required_groups, tier_rank)
    with timing and result counts:

        stages = StageLogger("hybrid")
        stages.start_stage("group_boost")
        stages.log_progress("Boosted chunks", count=3)
        stages.finish(success=True, results=5)

Design Decisions
----------------
1. **Context binding**: Avoids repeating the same ids in every call.
2. **Stage-aware logging**: Pipeline stages are first-class concepts.
3. **Lazy initialization**: Loggers configured on first use, not import.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file_path: Optional[Path] = None
    console: bool = True


class StructuredLogger:
    """
    Structured logger with context support.

    Provides consistent logging across the engine with
    support for structured fields and context tracking.
    """

    def __init__(self, name: str, config: Optional[LogConfig] = None) -> None:
        self.logger = logging.getLogger(name)
        self.config = config or _ConfigHolder.get_config()
        self._context: Dict[str, Any] = {}
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Configure the logger."""
        level = getattr(logging, self.config.level.upper(), logging.INFO)
        self.logger.setLevel(level)

        # Remove existing handlers
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            self.config.format,
            datefmt=self.config.date_format,
        )

        if self.config.console:
            from rich.console import Console
            from rich.logging import RichHandler

            # stderr keeps --json output on stdout parseable
            console_handler = RichHandler(
                console=Console(stderr=True),
                show_time=True,
                show_path=False,
                markup=False,
                rich_tracebacks=True,
            )
            console_handler.setLevel(level)
            # RichHandler has its own formatting
            self.logger.addHandler(console_handler)

        if self.config.file_path:
            self.config.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.file_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def reconfigure(self, config: LogConfig) -> None:
        """Apply a new configuration to this logger."""
        self.config = config
        self._setup_logger()

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        """Attach fields that appear on every subsequent record."""
        self._context.update(kwargs)
        return self

    def unbind(self, *keys: str) -> "StructuredLogger":
        """Remove previously bound fields."""
        for key in keys:
            self._context.pop(key, None)
        return self

    def _format_message(self, message: str, **kwargs: Any) -> str:
        """Format message with context and extra fields."""
        fields = {**self._context, **kwargs}
        if fields:
            field_str = " | ".join(f"{k}={v}" for k, v in fields.items())
            return f"{message} | {field_str}"
        return message

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message, **kwargs))


# Module-level logger factory
_loggers: Dict[str, StructuredLogger] = {}


def get_logger(name: str, config: Optional[LogConfig] = None) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (typically __name__).
        config: Optional logging configuration.

    Returns:
        Configured StructuredLogger instance.
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, config)
    return _loggers[name]


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Configure global logging settings.

    Loggers already handed out are reconfigured in place so module-level
    ``logger`` objects pick up the new level and handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional file path for log output.
        console: Whether to log to console.
    """
    config = LogConfig(
        level=level,
        file_path=log_file,
        console=console,
    )
    _ConfigHolder.set_config(config)

    for structured in _loggers.values():
        structured.reconfigure(config)


class _ConfigHolder:
    """Holds default logging configuration."""

    _config: LogConfig = LogConfig(level="WARNING")

    @classmethod
    def get_config(cls) -> LogConfig:
        """Get the default config."""
        return cls._config

    @classmethod
    def set_config(cls, config: LogConfig) -> None:
        """Set the default config."""
        cls._config = config


class StageLogger:
    """
    Specialized logger for search pipeline stages.

    Tracks stage boundaries and provides timing information.
    """

    def __init__(self, search_mode: str) -> None:
        self.search_mode = search_mode
        self.logger = get_logger("chunkrank.pipeline")
        self._stage_start: Optional[float] = None
        self._current_stage: Optional[str] = None
        self.durations: Dict[str, float] = {}

    def start_stage(self, stage: str) -> None:
        """Mark the start of a pipeline stage."""
        self._finish_current_stage()
        self._current_stage = stage
        self._stage_start = time.perf_counter()
        self.logger.debug("Starting stage", mode=self.search_mode, stage=stage)

    def _finish_current_stage(self) -> None:
        """Record completion of the current stage if any."""
        if self._current_stage and self._stage_start is not None:
            duration_ms = (time.perf_counter() - self._stage_start) * 1000
            self.durations[self._current_stage] = duration_ms
            self.logger.debug(
                "Completed stage",
                mode=self.search_mode,
                stage=self._current_stage,
                duration_ms=f"{duration_ms:.2f}",
            )
        self._current_stage = None
        self._stage_start = None

    def finish(
        self, success: bool, results: int = 0, error: Optional[str] = None
    ) -> None:
        """Mark pipeline completion."""
        self._finish_current_stage()
        if success:
            self.logger.info(
                "Search completed", mode=self.search_mode, results=results
            )
        else:
            self.logger.error("Search failed", mode=self.search_mode, error=error)

    def log_progress(self, message: str, **kwargs: Any) -> None:
        """Log progress within a stage."""
        self.logger.debug(
            message,
            mode=self.search_mode,
            stage=self._current_stage,
            **kwargs,
        )

