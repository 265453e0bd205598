"""Unit tests for TOML configuration loader."""

import tomllib
from pathlib import Path

import pytest

from steward.config.loader import (
    deep_merge,
    get_config_dir,
    get_environment,
    load_config,
    load_toml,
)


class TestDeepMerge:
    """Tests for deep_merge function."""

    def test_merge_nested_dicts(self) -> None:
        """Nested dictionaries are merged recursively."""
        base = {"orchestration": {"lock": {"backend": "inmemory"}, "enabled": True}}
        override = {"orchestration": {"lock": {"backend": "redis"}}}
        result = deep_merge(base, override)
        assert result == {"orchestration": {"lock": {"backend": "redis"}, "enabled": True}}

    def test_override_replaces_non_dict(self) -> None:
        """Non-dict values in override replace base values."""
        result = deep_merge({"a": {"x": 1}}, {"a": "replaced"})
        assert result == {"a": "replaced"}

    def test_base_unmodified(self) -> None:
        """Original base dictionary is not modified."""
        base = {"a": 1}
        deep_merge(base, {"b": 2})
        assert base == {"a": 1}


class TestLoadToml:
    """Tests for load_toml function."""

    def test_load_valid_toml(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "test.toml"
        toml_file.write_text('[section]\nkey = "value"\nnumber = 42')

        assert load_toml(toml_file) == {"section": {"key": "value", "number": 42}}

    def test_load_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_toml(tmp_path / "nonexistent.toml")

    def test_load_invalid_toml_raises(self, tmp_path: Path) -> None:
        invalid_file = tmp_path / "invalid.toml"
        invalid_file.write_text("invalid = [unclosed")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_toml(invalid_file)


class TestGetEnvironment:
    """Tests for get_environment function."""

    def test_returns_env_var_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STEWARD_ENV", "production")
        assert get_environment() == "production"

    def test_defaults_to_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("STEWARD_ENV", raising=False)
        assert get_environment() == "development"


class TestGetConfigDir:
    """Tests for get_config_dir function."""

    def test_uses_env_var_when_set(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_dir = tmp_path / "custom_config"
        config_dir.mkdir()
        monkeypatch.setenv("STEWARD_CONFIG_DIR", str(config_dir))

        assert get_config_dir() == config_dir

    def test_raises_for_missing_env_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("STEWARD_CONFIG_DIR", str(tmp_path / "missing"))

        with pytest.raises(FileNotFoundError):
            get_config_dir()


class TestLoadConfig:
    """Tests for load_config function."""

    def test_environment_file_overrides_default(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Environment TOML is merged over default.toml."""
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "default.toml").write_text(
            "[orchestration]\nevaluation_timeout_seconds = 30.0\nmax_commit_attempts = 3"
        )
        (config_dir / "staging.toml").write_text(
            "[orchestration]\nevaluation_timeout_seconds = 5.0"
        )
        monkeypatch.setenv("STEWARD_CONFIG_DIR", str(config_dir))
        monkeypatch.setenv("STEWARD_ENV", "staging")

        result = load_config()

        assert result["orchestration"] == {
            "evaluation_timeout_seconds": 5.0,
            "max_commit_attempts": 3,
        }

    def test_missing_environment_file_is_ignored(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "default.toml").write_text("app_name = 'steward-test'")
        monkeypatch.setenv("STEWARD_CONFIG_DIR", str(config_dir))
        monkeypatch.setenv("STEWARD_ENV", "nonexistent")

        assert load_config() == {"app_name": "steward-test"}
