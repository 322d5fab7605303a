"""
Tests for configuration loading and validation.

Test Strategy
-------------
- Invalid values are rejected in __post_init__ with ConfigValidationError
- YAML files override defaults; unknown keys are ignored
- CHUNKRANK_* environment variables override file values, bounded

Organization
------------
- TestSectionValidation: per-section __post_init__ checks
- TestConfigFromDict: dictionary parsing
- TestLoadConfig: YAML loading and environment overrides
- TestEnvGetters: bounded environment getters
"""

from pathlib import Path

import pytest
import yaml

from chunkrank.core.config import (
    Config,
    DecayConfig,
    KeywordConfig,
    SearchDefaults,
    VectorConfig,
    expand_env_vars,
    load_config,
    save_config,
)
from chunkrank.core.config_loaders import get_env_float, get_env_int, get_env_whitelist
from chunkrank.core.exceptions import ConfigValidationError

ENV_NAMES = (
    "CHUNKRANK_SEARCH_MODE",
    "CHUNKRANK_TOP_K",
    "CHUNKRANK_THRESHOLD",
    "CHUNKRANK_SIMILARITY",
    "CHUNKRANK_CACHE_CAPACITY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Test Helpers
# ============================================================================


def write_yaml(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


# ============================================================================
# Test Classes
# ============================================================================


class TestSectionValidation:
    """Tests for per-section validation.

    Rule #4: Focused test class - tests only __post_init__ checks
    """

    def test_defaults_are_valid(self):
        config = Config()

        assert config.search.search_mode == "hybrid"
        assert config.search.top_k == 5
        assert config.search.threshold == 0.6
        assert config.dual_vector.rrf_k == 60
        assert config.decay.enabled is False

    def test_unknown_search_mode_rejected(self):
        with pytest.raises(ConfigValidationError, match="search_mode"):
            SearchDefaults(search_mode="fuzzy")

    def test_threshold_outside_unit_interval_rejected(self):
        with pytest.raises(ConfigValidationError, match="threshold"):
            SearchDefaults(threshold=1.5)

    def test_non_positive_top_k_rejected(self):
        with pytest.raises(ConfigValidationError, match="top_k"):
            SearchDefaults(top_k=0)

    def test_weights_need_not_sum_to_one(self):
        defaults = SearchDefaults(keyword_weight=0.9, vector_weight=0.9)

        assert defaults.keyword_weight + defaults.vector_weight == pytest.approx(1.8)

    def test_min_length_above_max_length_rejected(self):
        with pytest.raises(ConfigValidationError):
            KeywordConfig(min_length=10, max_length=5)

    def test_vector_search_mode_checked(self):
        with pytest.raises(ConfigValidationError, match="vector.search_mode"):
            VectorConfig(search_mode="partial")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"mode": "step"},
            {"half_life": 0},
            {"linear_rate": 0},
            {"linear_rate": 1.5},
            {"min_relevance": -0.1},
        ],
    )
    def test_invalid_decay_settings_rejected(self, kwargs):
        with pytest.raises(ConfigValidationError):
            DecayConfig(**kwargs)

    def test_error_code(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            SearchDefaults(top_k=-1)

        assert exc_info.value.error_code == "CR-VAL-001"


class TestConfigFromDict:
    """Tests for Config.from_dict.

    Rule #4: Focused test class - tests only dictionary parsing
    """

    def test_sections_are_parsed(self):
        config = Config.from_dict(
            {"search": {"top_k": 10, "search_mode": "keyword"}, "decay": {"enabled": True}}
        )

        assert config.search.top_k == 10
        assert config.search.search_mode == "keyword"
        assert config.decay.enabled is True
        assert config.vector.cache_capacity == 100

    def test_unknown_keys_ignored(self):
        config = Config.from_dict({"search": {"top_k": 3, "colour": "blue"}, "extra": {}})

        assert config.search.top_k == 3

    def test_non_mapping_section_rejected(self):
        with pytest.raises(ConfigValidationError, match="mapping"):
            Config.from_dict({"search": ["top_k", 3]})

    def test_non_mapping_root_rejected(self):
        with pytest.raises(ConfigValidationError):
            Config.from_dict(["search"])

    def test_wrong_value_type_rejected(self):
        with pytest.raises(ConfigValidationError):
            Config.from_dict({"search": {"top_k": "many"}})

    def test_to_dict_skips_private_fields(self):
        data = Config().to_dict()

        assert "_base_path" not in data
        assert data["dual_vector"]["summary_weight"] == 1.5


class TestLoadConfig:
    """Tests for load_config.

    Rule #4: Focused test class - tests only YAML loading
    """

    def test_missing_file_gives_defaults(self, temp_dir):
        config = load_config(temp_dir / "nope.yaml")

        assert config.search.top_k == 5

    def test_default_filename_discovered(self, temp_dir):
        write_yaml(temp_dir / "chunkrank.yaml", {"search": {"top_k": 7}})

        config = load_config(base_path=temp_dir)

        assert config.search.top_k == 7

    def test_invalid_yaml_rejected(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text("search: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigValidationError, match="parse"):
            load_config(path)

    def test_env_overrides_file(self, temp_dir, monkeypatch):
        path = write_yaml(temp_dir / "config.yaml", {"search": {"top_k": 7}})
        monkeypatch.setenv("CHUNKRANK_TOP_K", "12")
        monkeypatch.setenv("CHUNKRANK_SEARCH_MODE", "KEYWORD")

        config = load_config(path)

        assert config.search.top_k == 12
        assert config.search.search_mode == "keyword"

    def test_env_values_are_clamped(self, temp_dir, monkeypatch):
        monkeypatch.setenv("CHUNKRANK_TOP_K", "99999")
        monkeypatch.setenv("CHUNKRANK_THRESHOLD", "3")

        config = load_config(temp_dir / "nope.yaml")

        assert config.search.top_k == 1000
        assert config.search.threshold == 1.0

    def test_save_then_load(self, temp_dir):
        config = Config()
        config.search.top_k = 9
        path = temp_dir / "saved.yaml"

        save_config(config, path)

        assert load_config(path).search.top_k == 9


class TestEnvGetters:
    """Tests for the bounded environment getters.

    Rule #4: Focused test class - tests only environment parsing
    """

    def test_expand_env_vars_with_default(self, monkeypatch):
        monkeypatch.delenv("CHUNKRANK_TEST_SOURCE", raising=False)

        data = expand_env_vars({"vector": {"source": "${CHUNKRANK_TEST_SOURCE:local}"}})

        assert data == {"vector": {"source": "local"}}

    def test_expand_env_vars_in_lists(self, monkeypatch):
        monkeypatch.setenv("CHUNKRANK_TEST_SOURCE", "remote")

        assert expand_env_vars(["${CHUNKRANK_TEST_SOURCE}", 3]) == ["remote", 3]

    def test_invalid_int_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("CHUNKRANK_TOP_K", "lots")

        assert get_env_int("CHUNKRANK_TOP_K", default=4) == 4

    def test_nan_float_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("CHUNKRANK_THRESHOLD", "nan")

        assert get_env_float("CHUNKRANK_THRESHOLD", default=0.5) == 0.5

    def test_whitelist_rejects_unknown(self, monkeypatch):
        monkeypatch.setenv("CHUNKRANK_SIMILARITY", "euclidean")

        assert get_env_whitelist("CHUNKRANK_SIMILARITY", frozenset(["cosine"])) is None
