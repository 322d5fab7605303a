"""
Tests for structured logging.

Test Strategy
-------------
- Structured fields are rendered as key=value pairs
- configure_logging reconfigures loggers already handed out
- StageLogger records a duration for every finished stage

Organization
------------
- TestStructuredLogger: message formatting and binding
- TestConfigureLogging: global reconfiguration
- TestStageLogger: stage timing
"""

import logging

import pytest

from chunkrank.core.logging import (
    LogConfig,
    StageLogger,
    StructuredLogger,
    configure_logging,
    get_logger,
)


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    configure_logging("WARNING")


# ============================================================================
# Test Classes
# ============================================================================


class TestStructuredLogger:
    """Tests for StructuredLogger.

    Rule #4: Focused test class - tests only message formatting
    """

    def test_fields_appended(self):
        logger = StructuredLogger("chunkrank.test.fields", LogConfig(console=False))

        message = logger._format_message("Loaded chunks", count=3, file="a.json")

        assert message == "Loaded chunks | count=3 | file=a.json"

    def test_bound_fields_prefix_call_fields(self):
        logger = StructuredLogger("chunkrank.test.bind", LogConfig(console=False))
        logger.bind(query_index=2)

        assert logger._format_message("Query failed", kind="EmptyQuery") == (
            "Query failed | query_index=2 | kind=EmptyQuery"
        )

        logger.unbind("query_index")
        assert logger._format_message("Query failed") == "Query failed"

    def test_records_reach_python_logging(self, caplog):
        logger = StructuredLogger("chunkrank.test.caplog", LogConfig(level="INFO", console=False))

        with caplog.at_level(logging.INFO, logger="chunkrank.test.caplog"):
            logger.info("Search completed", results=4)

        assert "Search completed | results=4" in caplog.text

    def test_get_logger_is_cached(self):
        assert get_logger("chunkrank.test.cached") is get_logger("chunkrank.test.cached")


class TestConfigureLogging:
    """Tests for configure_logging.

    Rule #4: Focused test class - tests only global configuration
    """

    def test_existing_loggers_pick_up_level(self):
        logger = get_logger("chunkrank.test.level")

        configure_logging("DEBUG", console=False)

        assert logger.logger.level == logging.DEBUG
        assert logger.config.level == "DEBUG"

    def test_file_handler(self, temp_dir):
        log_file = temp_dir / "logs" / "chunkrank.log"
        logger = get_logger("chunkrank.test.file")

        configure_logging("INFO", log_file=log_file, console=False)
        logger.info("written", stage="fusion")
        for handler in logger.logger.handlers:
            handler.flush()

        assert "written | stage=fusion" in log_file.read_text(encoding="utf-8")
        for handler in list(logger.logger.handlers):
            handler.close()
        logger.logger.handlers.clear()


class TestStageLogger:
    """Tests for StageLogger.

    Rule #4: Focused test class - tests only stage timing
    """

    def test_durations_recorded_per_stage(self):
        stages = StageLogger("hybrid")

        stages.start_stage("keyword")
        stages.start_stage("vector")
        stages.finish(success=True, results=2)

        assert set(stages.durations) == {"keyword", "vector"}
        assert all(duration >= 0 for duration in stages.durations.values())

    def test_finish_without_stage(self):
        stages = StageLogger("keyword")

        stages.finish(success=False, error="boom")

        assert stages.durations == {}
