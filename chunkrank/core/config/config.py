"""
Main configuration class for chunkrank.

This module provides the Config dataclass that aggregates all sub-configs
and handles initialization, validation and YAML parsing.

Architecture Context
--------------------
Configuration sits at the Core layer and is consumed by the orchestrator,
the matchers and the CLI. The Config object is typically created once and
passed to SearchOrchestrator, which derives per-call SearchOptions from it.

    User's config.yaml
           ↓
    load_config() → Config object
           ↓
    SearchOrchestrator(config) → SearchOptions.from_config(config)

Configuration Hierarchy
-----------------------
    Config
    ├── SearchDefaults     # Mode, top_k, threshold, stage toggles, weights
    ├── KeywordConfig      # Extraction bounds, trie match weights
    ├── VectorConfig       # Query cache, summary/full mode, provider source
    ├── DualVectorConfig   # RRF k and per-list weights
    ├── GroupConfig        # Boost multiplier, required-member cap
    ├── ImportanceConfig   # Tier ranking
    ├── DecayConfig        # Exponential/linear decay, scene awareness
    └── ConditionsConfig   # Context window, random seed

Environment Variables
---------------------
Values use ${VAR_NAME} or ${VAR_NAME:default} syntax:

    search:
      top_k: ${CHUNKRANK_DEFAULT_TOP_K:5}

Key Design Decisions
--------------------
1. **Dataclasses over dicts**: Type safety and IDE autocompletion.
2. **Defaults for everything**: Zero-config operation is possible.
3. **Validation in __post_init__**: Catch config errors early at load time.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from chunkrank.core.config.search import (
    ConditionsConfig,
    DecayConfig,
    DualVectorConfig,
    GroupConfig,
    ImportanceConfig,
    KeywordConfig,
    SearchDefaults,
    VectorConfig,
)
from chunkrank.core.exceptions import ConfigValidationError


@dataclass
class Config:
    """Main chunkrank configuration."""

    search: SearchDefaults = field(default_factory=SearchDefaults)
    keywords: KeywordConfig = field(default_factory=KeywordConfig)
    vector: VectorConfig = field(default_factory=VectorConfig)
    dual_vector: DualVectorConfig = field(default_factory=DualVectorConfig)
    groups: GroupConfig = field(default_factory=GroupConfig)
    importance: ImportanceConfig = field(default_factory=ImportanceConfig)
    decay: DecayConfig = field(default_factory=DecayConfig)
    conditions: ConditionsConfig = field(default_factory=ConditionsConfig)

    # Runtime paths (set after loading)
    _base_path: Path = field(default_factory=Path.cwd, repr=False)

    def __post_init__(self) -> None:
        """Validate nested config types."""
        assert isinstance(self.search, SearchDefaults), "search must be SearchDefaults"
        assert isinstance(
            self.keywords, KeywordConfig
        ), "keywords must be KeywordConfig"
        assert isinstance(self.vector, VectorConfig), "vector must be VectorConfig"
        assert isinstance(self.decay, DecayConfig), "decay must be DecayConfig"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        result: Dict[str, Any] = {}
        for key, value in asdict(self).items():
            if key.startswith("_"):
                continue
            result[key] = value
        return result

    @staticmethod
    def _filter_fields(cls_type: Any, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Filter dict to only keys that match dataclass fields, handling None."""
        if not data:
            return {}
        if not isinstance(data, dict):
            raise ConfigValidationError(
                f"Section for {cls_type.__name__} must be a mapping, got {type(data).__name__}"
            )
        valid_keys = {f.name for f in fields(cls_type)}
        return {k: v for k, v in data.items() if k in valid_keys}

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_path: Optional[Path] = None
    ) -> "Config":
        """Create Config from dictionary. Unknown keys are ignored."""
        # Import here to avoid circular dependency
        from chunkrank.core.config_loaders import expand_env_vars

        if not isinstance(data, dict):
            raise ConfigValidationError(
                f"Configuration root must be a mapping, got {type(data).__name__}"
            )
        data = expand_env_vars(data)

        try:
            config = cls(
                search=SearchDefaults(
                    **cls._filter_fields(SearchDefaults, data.get("search"))
                ),
                keywords=KeywordConfig(
                    **cls._filter_fields(KeywordConfig, data.get("keywords"))
                ),
                vector=VectorConfig(
                    **cls._filter_fields(VectorConfig, data.get("vector"))
                ),
                dual_vector=DualVectorConfig(
                    **cls._filter_fields(DualVectorConfig, data.get("dual_vector"))
                ),
                groups=GroupConfig(
                    **cls._filter_fields(GroupConfig, data.get("groups"))
                ),
                importance=ImportanceConfig(
                    **cls._filter_fields(ImportanceConfig, data.get("importance"))
                ),
                decay=DecayConfig(**cls._filter_fields(DecayConfig, data.get("decay"))),
                conditions=ConditionsConfig(
                    **cls._filter_fields(ConditionsConfig, data.get("conditions"))
                ),
            )
        except TypeError as e:
            # Wrong value types for a dataclass field (e.g. "abc" < 0)
            raise ConfigValidationError(f"Invalid configuration value: {e}") from e

        if base_path:
            config._base_path = base_path

        return config
