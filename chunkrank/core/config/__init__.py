"""
Configuration Management for chunkrank.

This module provides the engine's configuration system using a hierarchy
of dataclasses that map to YAML configuration files. It supports environment
variable expansion and CHUNKRANK_* overrides.

Public API
----------
All configuration classes and loading functions are re-exported here:

    from chunkrank.core.config import Config, load_config
    from chunkrank.core.config import DecayConfig, VectorConfig

Architecture
------------
    config/
    ├── search.py        # SearchDefaults and per-stage configs
    └── config.py        # Main Config class

Usage Example
-------------
    # Load from default location (./config.yaml or ./chunkrank.yaml)
    config = load_config()

    top_k = config.search.top_k
    half_life = config.decay.half_life
"""

# Main Config class
from chunkrank.core.config.config import Config

# Search configs
from chunkrank.core.config.search import (
    DECAY_MODES,
    KEYWORD_MATCH_MODES,
    SEARCH_MODES,
    SIMILARITY_ALGORITHMS,
    VECTOR_SEARCH_MODES,
    ConditionsConfig,
    DecayConfig,
    DualVectorConfig,
    GroupConfig,
    ImportanceConfig,
    KeywordConfig,
    SearchDefaults,
    VectorConfig,
)

# Loading functions
from chunkrank.core.config_loaders import expand_env_vars, load_config, save_config

__all__ = [
    "Config",
    "SearchDefaults",
    "KeywordConfig",
    "VectorConfig",
    "DualVectorConfig",
    "GroupConfig",
    "ImportanceConfig",
    "DecayConfig",
    "ConditionsConfig",
    "SEARCH_MODES",
    "SIMILARITY_ALGORITHMS",
    "VECTOR_SEARCH_MODES",
    "KEYWORD_MATCH_MODES",
    "DECAY_MODES",
    "expand_env_vars",
    "load_config",
    "save_config",
]
