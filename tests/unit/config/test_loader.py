"""Unit tests for TOML configuration loader."""

import tomllib
from pathlib import Path

import pytest

from tandem.config.loader import (
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
        base = {"presence": {"stale_after_ms": 120000, "heartbeat_interval_seconds": 30}}
        override = {"presence": {"stale_after_ms": 90000}}
        result = deep_merge(base, override)
        assert result == {"presence": {"stale_after_ms": 90000, "heartbeat_interval_seconds": 30}}

    def test_plain_lists_replaced(self) -> None:
        """Scalar arrays such as CORS origins are replaced, not concatenated."""
        base = {"api": {"cors_origins": ["*"]}}
        override = {"api": {"cors_origins": ["http://a.test"]}}
        assert deep_merge(base, override)["api"]["cors_origins"] == ["http://a.test"]

    def test_topic_tables_merged_by_position(self) -> None:
        """An overlay retunes thresholds and keeps the prompt text."""
        base = {
            "pacing": {
                "topics": [
                    {"message": "second", "threshold": 8},
                    {"message": "third", "threshold": 6},
                ]
            }
        }
        override = {"pacing": {"topics": [{"threshold": 2}]}}
        assert deep_merge(base, override)["pacing"]["topics"] == [
            {"message": "second", "threshold": 2},
            {"message": "third", "threshold": 6},
        ]

    def test_longer_topic_overlay_appends(self) -> None:
        base = {"pacing": {"topics": [{"message": "second", "threshold": 8}]}}
        override = {
            "pacing": {"topics": [{"threshold": 4}, {"message": "bonus", "threshold": 3}]}
        }
        assert deep_merge(base, override)["pacing"]["topics"] == [
            {"message": "second", "threshold": 4},
            {"message": "bonus", "threshold": 3},
        ]

    def test_base_unmodified(self) -> None:
        """Original base dictionary is not modified."""
        base = {"a": 1}
        deep_merge(base, {"b": 2})
        assert base == {"a": 1}


class TestLoadToml:
    """Tests for load_toml function."""

    def test_load_valid_toml(self, test_config_dir: Path) -> None:
        toml_file = test_config_dir / "test.toml"
        toml_file.write_text('app_name = "tandem"\n[presence]\nstale_after_ms = 120000\n')
        result = load_toml(toml_file)
        assert result == {"app_name": "tandem", "presence": {"stale_after_ms": 120000}}

    def test_missing_file_raises(self, test_config_dir: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_toml(test_config_dir / "missing.toml")

    def test_invalid_toml_raises(self, test_config_dir: Path) -> None:
        toml_file = test_config_dir / "bad.toml"
        toml_file.write_text("presence = [")
        with pytest.raises(tomllib.TOMLDecodeError):
            load_toml(toml_file)


class TestEnvironment:
    """Tests for config dir and environment lookup."""

    def test_default_environment_is_development(self, monkeypatch) -> None:
        monkeypatch.delenv("TANDEM_ENV", raising=False)
        assert get_environment() == "development"

    def test_environment_from_env(self, env_override) -> None:
        with env_override({"TANDEM_ENV": "production"}):
            assert get_environment() == "production"

    def test_config_dir_from_env(self, env_override, test_config_dir: Path) -> None:
        with env_override({"TANDEM_CONFIG_DIR": str(test_config_dir)}):
            assert get_config_dir().resolve() == test_config_dir.resolve()

    def test_missing_config_dir_raises(self, env_override, tmp_path: Path) -> None:
        with env_override({"TANDEM_CONFIG_DIR": str(tmp_path / "nope")}):
            with pytest.raises(FileNotFoundError):
                get_config_dir()


class TestLoadConfig:
    """Tests for load_config function."""

    def test_environment_file_merged_over_default(
        self, env_override, mock_toml_files, test_config_dir: Path
    ) -> None:
        mock_toml_files({
            "default.toml": "debug = false\n[presence]\nstale_after_ms = 120000\n",
            "test.toml": "debug = true\n",
        })
        with env_override({"TANDEM_CONFIG_DIR": str(test_config_dir), "TANDEM_ENV": "test"}):
            config = load_config()
        assert config["debug"] is True
        assert config["presence"]["stale_after_ms"] == 120000

    def test_environment_file_optional(
        self, env_override, mock_toml_files, test_config_dir: Path
    ) -> None:
        mock_toml_files({"default.toml": 'app_name = "tandem"\n'})
        with env_override({"TANDEM_CONFIG_DIR": str(test_config_dir), "TANDEM_ENV": "staging"}):
            assert load_config() == {"app_name": "tandem"}

    def test_missing_default_raises(self, env_override, test_config_dir: Path) -> None:
        with env_override({"TANDEM_CONFIG_DIR": str(test_config_dir)}):
            with pytest.raises(FileNotFoundError):
                load_config()

    def test_environment_overlay_retunes_topics(
        self, env_override, mock_toml_files, test_config_dir: Path
    ) -> None:
        mock_toml_files({
            "default.toml": (
                "[[pacing.topics]]\nmessage = 'second'\nthreshold = 8\n"
                "[[pacing.topics]]\nmessage = 'third'\nthreshold = 6\n"
            ),
            "test.toml": "[[pacing.topics]]\nthreshold = 1\n",
        })
        with env_override({"TANDEM_CONFIG_DIR": str(test_config_dir), "TANDEM_ENV": "test"}):
            topics = load_config()["pacing"]["topics"]
        assert topics == [
            {"message": "second", "threshold": 1},
            {"message": "third", "threshold": 6},
        ]

    def test_config_dir_discovered_from_cwd(
        self, monkeypatch, mock_toml_files, test_config_dir: Path
    ) -> None:
        mock_toml_files({"default.toml": 'app_name = "found"\n'})
        nested = test_config_dir.parent / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.delenv("TANDEM_CONFIG_DIR", raising=False)
        monkeypatch.chdir(nested)
        assert get_config_dir().resolve() == test_config_dir.resolve()
