"""
Tests for CLI file loaders.

Test Strategy
-------------
- JSON and YAML files load into domain types
- Invalid records fail with the file and record index in the message
- Context files accept explicit fields or a chat transcript

Organization
------------
- TestLoadChunks: chunk files
- TestLoadContext: context files
- TestLoadQueries: query files
"""

import pytest

from chunkrank.cli.loaders import load_chunks, load_context, load_queries
from chunkrank.core.exceptions import ValidationError
from chunkrank.core.models.chunk import content_hash


# ============================================================================
# Test Classes
# ============================================================================


class TestLoadChunks:
    """Tests for load_chunks.

    Rule #4: Focused test class - tests only chunk loading
    """

    def test_json_list(self, write_json):
        path = write_json(
            "chunks.json",
            [
                {"hash": 123, "text": "The dragon", "keywords": ["Dragon"], "importance": 150},
                {
                    "text": "The king",
                    "chunkGroup": {"name": "royals", "groupKeywords": ["king"]},
                    "isSummaryChunk": True,
                    "parentId": "123",
                },
            ],
        )

        chunks = load_chunks(path)

        assert chunks[0].id == "123"
        assert chunks[0].keywords == ("dragon",)
        assert chunks[0].importance == 150
        assert chunks[1].id == content_hash("The king")
        assert chunks[1].chunk_group.name == "royals"
        assert chunks[1].is_summary_chunk

    def test_collection_mapping(self, write_json):
        path = write_json("collection.json", {"chunks": [{"text": "a"}]})

        assert len(load_chunks(path)) == 1

    def test_yaml(self, temp_dir):
        path = temp_dir / "chunks.yaml"
        path.write_text("- text: The dragon\n  keywords: [dragon]\n", encoding="utf-8")

        assert load_chunks(path)[0].keywords == ("dragon",)

    def test_invalid_record_index(self, write_json):
        path = write_json("chunks.json", [{"text": "ok"}, {"text": "   "}])

        with pytest.raises(ValidationError, match="Invalid chunk #1"):
            load_chunks(path)

    def test_importance_out_of_range(self, write_json):
        path = write_json("chunks.json", [{"text": "ok", "importance": 300}])

        with pytest.raises(ValidationError, match="Invalid chunk #0"):
            load_chunks(path)

    def test_missing_file(self, temp_dir):
        with pytest.raises(ValidationError, match="File not found"):
            load_chunks(temp_dir / "missing.json")

    def test_not_a_list(self, write_json):
        with pytest.raises(ValidationError, match="list of chunks"):
            load_chunks(write_json("chunks.json", "dragon"))

    def test_unparseable(self, temp_dir):
        path = temp_dir / "chunks.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ValidationError, match="Cannot parse"):
            load_chunks(path)


class TestLoadContext:
    """Tests for load_context.

    Rule #4: Focused test class - tests only context loading
    """

    def test_explicit_fields(self, write_json):
        path = write_json(
            "context.json",
            {
                "recentMessages": ["Where is the dragon?"],
                "lastSpeaker": "Alice",
                "messageCount": 12,
                "currentMessageId": 50,
                "currentEmotion": "joy",
                "currentCharacter": "Alice",
                "scenes": [{"start": 0, "end": 10}, {"start": 40}],
            },
        )

        loaded = load_context(path)

        assert loaded.context.recent_messages == ("Where is the dragon?",)
        assert loaded.context.last_speaker == "Alice"
        assert loaded.context.current_message_id == 50
        assert loaded.context.scenes[1].end is None
        assert loaded.current_emotion == "joy"

    def test_chat_transcript(self, write_json):
        chat = [{"mes": f"message {i}", "name": "Bob" if i % 2 else "Alice"} for i in range(5)]
        chat[-1]["swipes"] = ["a", "b", "c"]
        path = write_json("context.json", {"chat": chat, "currentMessageId": 4})

        loaded = load_context(path, context_window=2)

        assert loaded.context.recent_messages == ("message 3", "message 4")
        assert loaded.context.message_speakers == ("Bob", "Alice")
        assert loaded.context.last_speaker == "Alice"
        assert loaded.context.message_count == 5
        assert loaded.context.swipe_count == 2
        assert loaded.context.current_message_id == 4

    def test_invalid_context(self, write_json):
        with pytest.raises(ValidationError, match="Invalid context"):
            load_context(write_json("context.json", {"messageCount": -1}))


class TestLoadQueries:
    """Tests for load_queries.

    Rule #4: Focused test class - tests only query loading
    """

    def test_text_lines(self, temp_dir):
        path = temp_dir / "queries.txt"
        path.write_text("dragon\n\n  castle  \n", encoding="utf-8")

        assert load_queries(path) == ["dragon", "castle"]

    def test_json_list(self, write_json):
        assert load_queries(write_json("queries.json", ["dragon", "castle"])) == ["dragon", "castle"]

    def test_json_must_be_list(self, write_json):
        with pytest.raises(ValidationError):
            load_queries(write_json("queries.json", {"q": "dragon"}))

    def test_missing_text_file(self, temp_dir):
        with pytest.raises(ValidationError, match="File not found"):
            load_queries(temp_dir / "queries.txt")
