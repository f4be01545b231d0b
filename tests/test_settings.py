"""
test_settings.py — Unit tests for configuration loading.

Tests cover:
    - Built-in defaults when no config file is given
    - Partial YAML overrides and type coercion
    - ConfigError for unknown keys, bad values and malformed YAML
    - Range checks on numeric settings
    - The shipped config.yaml matches the built-in defaults
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from cab_report.errors import ConfigError
from cab_report.settings import DEFAULT_SETTINGS, load_settings, settings_from_dict

REPO_ROOT = Path(__file__).parent.parent


def _write(tmp_path: Path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_none_gives_defaults(self):
        assert load_settings(None) is DEFAULT_SETTINGS

    def test_shipped_config_matches_defaults(self):
        assert load_settings(str(REPO_ROOT / "config.yaml")) == DEFAULT_SETTINGS

    def test_partial_override(self, tmp_path):
        path = _write(tmp_path, "render:\n  persona_limit: 2\ncells:\n  lead_bold: false\n")
        settings = load_settings(path)
        assert settings.render.persona_limit == 2
        assert settings.render.fallback_preview_chars == 5000
        assert settings.cells.lead_bold is False
        assert settings.parser == DEFAULT_SETTINGS.parser

    def test_brand_hash_stripped(self, tmp_path):
        settings = load_settings(_write(tmp_path, "brand:\n  navy: '#000000'\n"))
        assert settings.brand.navy == "000000"

    def test_numeric_coercion(self, tmp_path):
        settings = load_settings(_write(tmp_path, "telemetry:\n  timeout: 3\n"))
        assert settings.telemetry.timeout == 3.0
        assert isinstance(settings.telemetry.timeout, float)

    def test_empty_file_gives_defaults(self, tmp_path):
        assert load_settings(_write(tmp_path, "")) == DEFAULT_SETTINGS

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))

    def test_malformed_yaml_raises(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(_write(tmp_path, "render: [unclosed\n"))


class TestSettingsFromDict:
    """Tests for validation of parsed config."""

    def test_unknown_key_raises(self):
        with pytest.raises(ConfigError, match="persona_limt"):
            settings_from_dict({"render": {"persona_limt": 3}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigError):
            settings_from_dict({"render": [1, 2]})

    def test_bad_value_raises(self):
        with pytest.raises(ConfigError):
            settings_from_dict({"parser": {"max_depth": "deep"}})

    def test_unknown_section_ignored(self):
        assert settings_from_dict({"scheduler": {"x": 1}}) == DEFAULT_SETTINGS

    def test_root_must_be_mapping(self):
        with pytest.raises(ConfigError):
            settings_from_dict(["not", "a", "mapping"])


class TestBounds:
    """Numeric settings outside their usable range are rejected."""

    @pytest.mark.parametrize("section, key, value", [
        ("sanitizer", "max_chars", -1),
        ("sanitizer", "max_chars", 0),
        ("parser", "max_depth", 0),
        ("parser", "split_min_sentences", 0),
        ("parser", "split_min_chars", -5),
        ("parser", "split_group_size", 0),
        ("cells", "over_bold_ratio", 1.5),
        ("cells", "over_bold_ratio", -0.1),
        ("cells", "over_bold_ratio", "nan"),
        ("cells", "lead_bold_max_chars", 0),
        ("cells", "lead_bold_min_words", 0),
        ("render", "fallback_preview_chars", -1),
        ("render", "persona_limit", -2),
        ("telemetry", "timeout", 0),
        ("telemetry", "max_attempts", 0),
    ])
    def test_out_of_range_raises(self, section, key, value):
        with pytest.raises(ConfigError, match=f"{section}.{key}"):
            settings_from_dict({section: {key: value}})

    def test_out_of_range_in_yaml_file(self, tmp_path):
        with pytest.raises(ConfigError, match="sanitizer.max_chars"):
            load_settings(_write(tmp_path, "sanitizer:\n  max_chars: -1\n"))

    @pytest.mark.parametrize("section, key, value", [
        ("sanitizer", "max_chars", 1),
        ("parser", "split_min_chars", 0),
        ("cells", "over_bold_ratio", 0.0),
        ("cells", "over_bold_ratio", 1.0),
        ("render", "persona_limit", 0),
        ("render", "fallback_preview_chars", 0),
    ])
    def test_edges_accepted(self, section, key, value):
        settings = settings_from_dict({section: {key: value}})
        assert getattr(getattr(settings, section), key) == value
