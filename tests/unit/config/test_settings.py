"""Unit tests for Settings and configuration models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from tandem.config import get_settings, reload_settings
from tandem.config.models import APIConfig, PacingConfig, PresenceConfig, TopicPromptConfig
from tandem.config.settings import Settings, set_toml_config


@pytest.fixture(autouse=True)
def reset_toml_config():
    set_toml_config({})
    yield
    set_toml_config({})


class TestPresenceConfig:
    """Tests for the presence cadence validation."""

    def test_defaults(self) -> None:
        config = PresenceConfig()
        assert config.heartbeat_interval_seconds == 30
        assert config.stale_after_ms == 120_000
        assert config.heartbeat_interval_ms == 30_000
        assert config.announce_rejoins is True
        assert config.rejoin_clears_counterpart_flag is False

    def test_staleness_must_exceed_interval(self) -> None:
        with pytest.raises(ValidationError):
            PresenceConfig(heartbeat_interval_seconds=30, stale_after_ms=30_000)

    def test_staleness_must_respect_safety_factor(self) -> None:
        """Three missed ticks must not be enough to go stale."""
        with pytest.raises(ValidationError):
            PresenceConfig(heartbeat_interval_seconds=30, stale_after_ms=90_000)

    def test_custom_safety_factor(self) -> None:
        config = PresenceConfig(
            heartbeat_interval_seconds=30, stale_after_ms=90_000, min_safety_factor=2
        )
        assert config.stale_after_ms == 90_000


class TestPacingConfig:
    """Tests for default topic thresholds."""

    def test_default_thresholds(self) -> None:
        topics = PacingConfig().topics
        assert len(topics) == 8
        assert topics[0].threshold == 8
        assert all(t.threshold == 6 for t in topics[1:])
        assert topics[0].message == "Please move on to the 2nd topic if you haven't already."
        assert topics[1].message == "Please move on to the 3rd topic if you haven't already."

    def test_threshold_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            TopicPromptConfig(message="next", threshold=0)


class TestAPIConfig:
    def test_cors_origins_from_comma_string(self) -> None:
        config = APIConfig(cors_origins="http://a.test, http://b.test")
        assert config.cors_origins == ["http://a.test", "http://b.test"]


class TestSettings:
    """Tests for layered settings loading."""

    def test_toml_values_applied(self) -> None:
        set_toml_config({"debug": True, "presence": {"stale_after_ms": 240000}})
        settings = Settings()
        assert settings.debug is True
        assert settings.presence.stale_after_ms == 240_000
        assert settings.presence.heartbeat_interval_seconds == 30

    def test_env_overrides_toml(self, env_override) -> None:
        set_toml_config({"presence": {"stale_after_ms": 240000}})
        with env_override({"TANDEM_PRESENCE__STALE_AFTER_MS": "180000"}):
            settings = Settings()
        assert settings.presence.stale_after_ms == 180_000

    def test_env_storage_backend(self, env_override) -> None:
        with env_override({"TANDEM_STORAGE__BACKEND": "redis"}):
            assert Settings().storage.backend == "redis"

    def test_get_settings_reads_config_dir(
        self, env_override, mock_toml_files, test_config_dir: Path
    ) -> None:
        mock_toml_files({
            "default.toml": 'app_name = "tandem-test"\n[pacing]\nprompt_display_seconds = 5\n',
        })
        with env_override({"TANDEM_CONFIG_DIR": str(test_config_dir)}):
            settings = get_settings()
            assert settings.app_name == "tandem-test"
            assert settings.pacing.prompt_display_seconds == 5
            assert get_settings() is settings
            assert reload_settings() is not settings

    def test_repository_default_config_is_valid(self, env_override) -> None:
        config_dir = Path(__file__).resolve().parents[3] / "config"
        with env_override({"TANDEM_CONFIG_DIR": str(config_dir), "TANDEM_ENV": "production"}):
            settings = get_settings()
        assert settings.presence.stale_after_ms == 120_000
        assert [t.threshold for t in settings.pacing.topics] == [8, 6, 6, 6, 6, 6, 6, 6]

    def test_repository_development_overlay_shortens_quotas(self, env_override) -> None:
        config_dir = Path(__file__).resolve().parents[3] / "config"
        with env_override({"TANDEM_CONFIG_DIR": str(config_dir), "TANDEM_ENV": "development"}):
            topics = get_settings().pacing.topics
        assert [t.threshold for t in topics] == [2, 2, 6, 6, 6, 6, 6, 6]
        assert topics[0].message == "Please move on to the 2nd topic if you haven't already."
