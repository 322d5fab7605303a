"""Chunk, context and query file loading for CLI commands.

Files are JSON (``.json``) or YAML (anything else). Records are validated
with the Pydantic boundary models and converted to domain types; invalid
input raises ValidationError naming the file and record index.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, List, Optional

import yaml

from chunkrank.core.exceptions import ValidationError
from chunkrank.core.logging import get_logger
from chunkrank.core.models.chunk import Chunk
from chunkrank.core.models.context import SearchContext
from chunkrank.core.models.records import ChunkRecord, ContextRecord
from chunkrank.features.conditions import build_search_context

logger = get_logger(__name__)

# Fixed upper bounds
MAX_CHUNKS_PER_FILE = 100_000
MAX_QUERIES_PER_FILE = 10_000


def read_data_file(path: Path) -> Any:
    """Parse a JSON or YAML file."""
    if not path.exists():
        raise ValidationError(
            f"File not found: {path}",
            how_to_fix=["Check the path", "Verify the file exists"],
            context={"file": str(path)},
        )
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValidationError(
            f"Cannot parse {path.name}: {e}", context={"file": str(path)}
        ) from e


def load_chunks(path: Path) -> List[Chunk]:
    """
    Load a chunk set.

    The file holds a list of chunk records, or a mapping with a ``chunks``
    list (as exported collections do).
    """
    data = read_data_file(path)
    if isinstance(data, dict):
        data = data.get("chunks", [])
    if not isinstance(data, list):
        raise ValidationError(
            f"{path.name} must contain a list of chunks", context={"file": str(path)}
        )
    if len(data) > MAX_CHUNKS_PER_FILE:
        raise ValidationError(
            f"{path.name} holds {len(data)} chunks (max {MAX_CHUNKS_PER_FILE})",
            context={"file": str(path)},
        )

    chunks: List[Chunk] = []
    for index, item in enumerate(data):
        try:
            chunks.append(ChunkRecord.model_validate(item).to_chunk())
        except ValueError as e:
            raise ValidationError(
                f"Invalid chunk #{index} in {path.name}: {e}",
                context={"file": str(path), "index": index},
            ) from e

    logger.debug("Loaded chunks", file=path.name, count=len(chunks))
    return chunks


@dataclass
class LoadedContext:
    """Search context plus the detector input carried by the context file."""

    context: SearchContext
    current_emotion: Optional[str] = None


def load_context(path: Path, context_window: int = 10) -> LoadedContext:
    """
    Load a search context.

    A ``chat`` transcript, when present, is turned into the context the way
    a live conversation would be; explicit fields supply the rest.
    """
    data = read_data_file(path) or {}
    try:
        record = ContextRecord.model_validate(data)
    except ValueError as e:
        raise ValidationError(
            f"Invalid context in {path.name}: {e}", context={"file": str(path)}
        ) from e

    if record.chat:
        context = build_search_context(
            [m.model_dump() for m in record.chat],
            context_window=context_window,
            active_chunks=record.active_chunk_refs(),
            metadata={
                "generation_type": record.generation_type,
                "active_entries": record.active_entry_refs(),
                "is_group_chat": record.is_group_chat,
                "current_character": record.current_character,
                "current_message_id": record.current_message_id,
            },
            timestamp=record.timestamp,
        )
        context = replace(context, scenes=record.scene_ranges())
    else:
        context = record.to_context()

    return LoadedContext(context=context, current_emotion=record.current_emotion)


def load_queries(path: Path) -> List[str]:
    """Queries from a JSON/YAML list, or one query per non-blank text line."""
    if path.suffix.lower() in (".json", ".yaml", ".yml"):
        data = read_data_file(path)
        if not isinstance(data, list):
            raise ValidationError(
                f"{path.name} must contain a list of queries",
                context={"file": str(path)},
            )
        queries = [str(q) for q in data]
    else:
        if not path.exists():
            raise ValidationError(f"File not found: {path}", context={"file": str(path)})
        lines = path.read_text(encoding="utf-8").splitlines()
        queries = [line.strip() for line in lines if line.strip()]

    if len(queries) > MAX_QUERIES_PER_FILE:
        raise ValidationError(
            f"{path.name} holds {len(queries)} queries (max {MAX_QUERIES_PER_FILE})",
            context={"file": str(path)},
        )
    return queries
