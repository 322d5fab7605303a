"""
Configuration Loading and Management Functions.

Handles loading, saving, and applying environment overrides to chunkrank
configuration.

Configuration precedence: 1. Env vars, 2. YAML file, 3. Defaults

Environment Variables
---------------------
    CHUNKRANK_SEARCH_MODE      keyword | vector | hybrid
    CHUNKRANK_TOP_K            1..1000
    CHUNKRANK_THRESHOLD        0.0..1.0
    CHUNKRANK_SIMILARITY       cosine | jaccard | hamming
    CHUNKRANK_CACHE_CAPACITY   1..100000

Values are parsed with bounded getters: numbers are clamped into range and
strings are checked against a whitelist, so a bad value falls back to the
file or default setting instead of failing at search time.
"""

import os
import re
from pathlib import Path
from typing import Any, FrozenSet, Optional, TYPE_CHECKING

import yaml

from chunkrank.core.config.search import SEARCH_MODES, SIMILARITY_ALGORITHMS
from chunkrank.core.exceptions import ConfigValidationError
from chunkrank.core.logging import get_logger

if TYPE_CHECKING:
    from chunkrank.core.config import Config

logger = get_logger(__name__)

CONFIG_FILENAMES = ("config.yaml", "chunkrank.yaml")


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values.

    Handles nested structures including:
    - Strings with ${VAR_NAME} or ${VAR_NAME:default} syntax
    - Nested dictionaries
    - Nested lists (including lists of dicts, lists of lists)

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with all environment variables expanded
    """
    if isinstance(value, str):
        # Match ${VAR_NAME} or ${VAR_NAME:default} pattern
        pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

        def replace_env_var(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    # Return primitives (int, float, bool, None) unchanged
    return value


# ============================================================================
# Bounded environment getters
# ============================================================================


def get_env_int(
    name: str,
    default: Optional[int] = None,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
) -> Optional[int]:
    """
    Get integer from environment variable with bounds validation.

    Example:
        >>> # With CHUNKRANK_TOP_K=99999
        >>> get_env_int("CHUNKRANK_TOP_K", min_value=1, max_value=1000)
        1000  # Clamped to max
    """
    value = os.environ.get(name)
    if value is None:
        return default

    try:
        int_value = int(value)
    except ValueError:
        logger.warning(
            "Invalid integer environment value, using default",
            name=name,
            value=value,
            default=default,
        )
        return default

    if min_value is not None and int_value < min_value:
        return min_value
    if max_value is not None and int_value > max_value:
        return max_value

    return int_value


def get_env_float(
    name: str,
    default: Optional[float] = None,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> Optional[float]:
    """Get float from environment variable with bounds validation."""
    value = os.environ.get(name)
    if value is None:
        return default

    try:
        float_value = float(value)
    except ValueError:
        logger.warning(
            "Invalid float environment value, using default",
            name=name,
            value=value,
            default=default,
        )
        return default

    if float_value != float_value:  # NaN check
        return default

    if min_value is not None and float_value < min_value:
        return min_value
    if max_value is not None and float_value > max_value:
        return max_value

    return float_value


def get_env_whitelist(
    name: str,
    allowed: FrozenSet[str],
    default: Optional[str] = None,
) -> Optional[str]:
    """
    Get string from environment variable with whitelist validation.

    Comparison is case-insensitive; the canonical allowed value is returned.
    """
    value = os.environ.get(name)
    if value is None:
        return default

    normalized = value.strip().lower()
    for allowed_value in allowed:
        if normalized == allowed_value.lower():
            return allowed_value

    logger.warning("Environment value not allowed, ignoring", name=name, value=value)
    return default


# ============================================================================
# Overrides
# ============================================================================


def _apply_env_overrides(config: "Config") -> "Config":
    """
    Apply environment variable overrides to configuration.

    Environment variables take precedence over config file values.
    """
    _apply_search_overrides(config)
    _apply_vector_overrides(config)
    return config


def _apply_search_overrides(config: "Config") -> None:
    """Apply search mode, top_k, threshold and similarity overrides."""
    mode = get_env_whitelist("CHUNKRANK_SEARCH_MODE", SEARCH_MODES)
    if mode:
        config.search.search_mode = mode

    top_k = get_env_int("CHUNKRANK_TOP_K", min_value=1, max_value=1000)
    if top_k is not None:
        config.search.top_k = top_k

    threshold = get_env_float("CHUNKRANK_THRESHOLD", min_value=0.0, max_value=1.0)
    if threshold is not None:
        config.search.threshold = threshold

    similarity = get_env_whitelist("CHUNKRANK_SIMILARITY", SIMILARITY_ALGORITHMS)
    if similarity:
        config.search.similarity_algorithm = similarity


def _apply_vector_overrides(config: "Config") -> None:
    """Apply query-embedding cache overrides."""
    capacity = get_env_int("CHUNKRANK_CACHE_CAPACITY", min_value=1, max_value=100000)
    if capacity is not None:
        config.vector.cache_capacity = capacity


# ============================================================================
# Load / save
# ============================================================================


def load_config(
    config_path: Optional[Path] = None, base_path: Optional[Path] = None
) -> "Config":
    """
    Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config file. Defaults to config.yaml or
            chunkrank.yaml in base_path.
        base_path: Base path for the project. Defaults to current directory.

    Returns:
        Config object with all settings.

    Raises:
        ConfigValidationError: If the file exists but cannot be parsed or
            holds invalid values.
    """
    # Lazy import to avoid circular dependency
    from chunkrank.core.config import Config

    base_path = base_path or Path.cwd()

    if config_path is None:
        for filename in CONFIG_FILENAMES:
            candidate = base_path / filename
            if candidate.exists():
                config_path = candidate
                break
        else:
            return _create_default_config(base_path)
    if not config_path.exists():
        logger.debug("Config file not found, using defaults", path=str(config_path))
        return _create_default_config(base_path)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(
            f"Could not parse config file {config_path}: {e}"
        ) from e

    config = Config.from_dict(data, base_path)
    logger.debug("Loaded configuration", path=str(config_path))
    return _apply_env_overrides(config)


def _create_default_config(base_path: Path) -> "Config":
    """Create default configuration with environment overrides."""
    # Lazy import to avoid circular dependency
    from chunkrank.core.config import Config

    config = Config()
    config._base_path = base_path
    return _apply_env_overrides(config)


def save_config(config: "Config", config_path: Optional[Path] = None) -> None:
    """Save configuration to YAML file."""
    if config_path is None:
        config_path = config._base_path / "config.yaml"

    config_dict = config.to_dict()

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
