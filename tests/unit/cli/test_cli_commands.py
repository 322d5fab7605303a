"""
Tests for the chunkrank CLI.

Test Strategy
-------------
- Commands run through Typer's CliRunner against temporary files
- JSON output is parsed from stdout; log output stays on stderr
- Errors render a panel with the error code and exit with code 1

Organization
------------
- TestGlobalOptions: --version, --log-level and help
- TestSearchCommand: search and auto
- TestBatchCommand: batch exit codes and JSON
- TestInspectCommands: stats, validate and decay-curve
"""

import json

import pytest
from typer.testing import CliRunner

from chunkrank.cli.console import set_verbose_mode
from chunkrank.cli.main import app
from chunkrank.core.logging import configure_logging

runner = CliRunner()


# ============================================================================
# Test Helpers
# ============================================================================


DRAGON_CHUNKS = [
    {"hash": "dragon", "text": "The dragon sleeps under the mountain", "keywords": ["dragon"]},
    {"hash": "castle", "text": "The castle walls are tall", "keywords": ["castle"]},
    {"hash": "forest", "text": "The forest is quiet at night", "keywords": ["forest"]},
]


@pytest.fixture(autouse=True)
def reset_cli_state():
    yield
    configure_logging("WARNING")
    set_verbose_mode(False)


@pytest.fixture
def chunks_file(write_json):
    return write_json("chunks.json", DRAGON_CHUNKS)


def invoke(*args: str):
    return runner.invoke(app, ["--log-level", "CRITICAL", *args])


# ============================================================================
# Test Classes
# ============================================================================


class TestGlobalOptions:
    """Tests for global CLI options.

    Rule #4: Focused test class - tests only the app callback
    """

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "chunkrank version" in result.stdout

    def test_no_command_shows_help(self):
        result = runner.invoke(app, [])

        assert result.exit_code == 0
        assert "search" in result.stdout

    def test_bad_log_level(self, chunks_file):
        result = runner.invoke(app, ["--log-level", "LOUD", "stats", "--chunks", str(chunks_file)])

        assert result.exit_code != 0


class TestSearchCommand:
    """Tests for the search and auto commands.

    Rule #4: Focused test class - tests only single-query commands
    """

    def test_keyword_search_json(self, chunks_file):
        result = invoke(
            "search", "Tell me about the dragon",
            "--chunks", str(chunks_file), "--mode", "keyword", "--threshold", "0", "--json",
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [r["id"] for r in data["results"]] == ["dragon"]
        assert data["results"][0]["score"] == pytest.approx(1 / 3)
        assert data["timing"]["mode"] == "keyword"

    def test_table_output(self, chunks_file):
        result = invoke(
            "search", "dragon", "--chunks", str(chunks_file), "--mode", "keyword",
        )

        assert result.exit_code == 0
        assert "dragon" in result.stdout

    def test_empty_query(self, chunks_file):
        result = invoke("search", "", "--chunks", str(chunks_file), "--mode", "keyword")

        assert result.exit_code == 1
        assert "CR-SRCH-001" in result.output

    def test_missing_chunk_file(self, temp_dir):
        result = invoke("search", "dragon", "--chunks", str(temp_dir / "missing.json"))

        assert result.exit_code == 1
        assert "CR-VAL-000" in result.output

    def test_vector_without_embed(self, chunks_file):
        result = invoke("search", "dragon", "--chunks", str(chunks_file), "--mode", "vector")

        assert result.exit_code == 1
        assert "CR-SRCH-008" in result.output

    def test_hybrid_with_embed(self, chunks_file):
        result = invoke(
            "search", "dragon", "--chunks", str(chunks_file), "--embed", "--threshold", "0", "--json",
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["results"][0]["id"] == "dragon"
        assert data["timing"]["mode"] == "hybrid"

    def test_auto(self, chunks_file):
        result = invoke("auto", "dragon", "--chunks", str(chunks_file), "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["timing"]["mode"] == "keyword"
        assert [r["id"] for r in data["results"]] == ["dragon"]

    def test_context_filters_chunks(self, write_json):
        chunks = write_json(
            "gated.json",
            [
                {
                    "hash": "gated",
                    "text": "Only when Bob speaks",
                    "keywords": ["dragon"],
                    "conditions": {
                        "enabled": True,
                        "rules": [{"type": "speaker", "value": "Bob"}],
                    },
                },
                {"hash": "open", "text": "Always", "keywords": ["dragon"]},
            ],
        )
        context = write_json("context.json", {"lastSpeaker": "Alice", "messageCount": 3})

        result = invoke(
            "search", "dragon", "--chunks", str(chunks), "--context", str(context),
            "--mode", "keyword", "--json",
        )

        assert result.exit_code == 0
        assert [r["id"] for r in json.loads(result.stdout)["results"]] == ["open"]


class TestBatchCommand:
    """Tests for the batch command.

    Rule #4: Focused test class - tests only batch runs
    """

    def test_json_slots(self, chunks_file, write_json):
        queries = write_json("queries.json", ["dragon", "", "castle"])

        result = invoke(
            "batch", str(queries), "--chunks", str(chunks_file), "--mode", "keyword", "--json",
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [d["query"] for d in data] == ["dragon", "", "castle"]
        assert data[1]["error_kind"] == "EmptyQuery"
        assert [r["id"] for r in data[2]["results"]] == ["castle"]

    def test_all_failed_exits_one(self, chunks_file, write_json):
        queries = write_json("queries.json", ["", "  "])

        result = invoke("batch", str(queries), "--chunks", str(chunks_file), "--mode", "keyword")

        assert result.exit_code == 1


class TestInspectCommands:
    """Tests for stats, validate and decay-curve.

    Rule #4: Focused test class - tests only inspection commands
    """

    def test_stats_json(self, chunks_file):
        result = invoke("stats", "--chunks", str(chunks_file), "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["chunks"] == 3
        assert data["with_keywords"] == 3
        assert data["importance"]["avg"] == 100

    def test_stats_table(self, chunks_file):
        result = invoke("stats", "--chunks", str(chunks_file))

        assert result.exit_code == 0
        assert "chunks" in result.stdout

    def test_validate_ok(self, chunks_file):
        result = invoke("validate", "--chunks", str(chunks_file), "--json")

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"valid": True, "problems": []}

    def test_validate_problems(self, write_json):
        chunks = write_json(
            "bad.json",
            [
                {"hash": "a", "text": "a", "embedding": [1.0, 0.0]},
                {"hash": "b", "text": "b", "chunkGroup": {"name": "royals"}},
                {"hash": "c", "text": "c", "isSummaryChunk": True, "parentId": "gone"},
            ],
        )

        result = invoke("validate", "--chunks", str(chunks), "--json")

        assert result.exit_code == 1
        areas = [p["area"] for p in json.loads(result.stdout)["problems"]]
        assert areas == ["embedding", "group", "summary"]

    def test_decay_curve_json(self):
        result = invoke("decay-curve", "0.9", "--json")

        assert result.exit_code == 0
        points = json.loads(result.stdout)
        assert len(points) == 6
        assert points[3] == {"age": 50, "score": pytest.approx(0.45)}

    def test_decay_curve_invalid_settings(self):
        result = invoke("decay-curve", "0.9", "--mode", "cubic")

        assert result.exit_code == 1
        assert "CR-VAL-001" in result.output
