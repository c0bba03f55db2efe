"""
Tests for settings loading from defaults, env vars and config file.
"""

import os

import pytest

from logrelay.config import get_settings, load_config_file, reload_settings


@pytest.fixture
def restore_env():
    """Drop env vars seeded from a config file during the test."""
    before = set(os.environ)
    yield
    for key in set(os.environ) - before:
        del os.environ[key]


class TestDefaults:

    def test_default_constants(self) -> None:
        settings = get_settings()
        assert settings.batch.batch_size == 500
        assert settings.batch.batch_time_seconds == 5.0
        assert settings.rate_limit.max_count == 100
        assert settings.rate_limit.window_seconds == 60.0
        assert settings.throttle.window_seconds == 60.0
        assert settings.host.provisioning_url is None

    def test_settings_are_cached(self) -> None:
        assert get_settings() is get_settings()


class TestEnvironment:

    def test_env_vars_override_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOGRELAY_BATCH_BATCH_SIZE", "25")
        monkeypatch.setenv("LOGRELAY_RATE_LIMIT_MAX_COUNT", "7")
        monkeypatch.setenv("LOGRELAY_HOST_PROVISIONING_URL", "https://logs.example.com/provision")
        settings = reload_settings()

        assert settings.batch.batch_size == 25
        assert settings.rate_limit.max_count == 7
        assert settings.host.provisioning_url == "https://logs.example.com/provision"

    def test_blank_provisioning_url_is_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOGRELAY_HOST_PROVISIONING_URL", "  ")
        assert reload_settings().host.provisioning_url is None


class TestConfigFile:

    def test_missing_file_gives_empty_config(self) -> None:
        assert load_config_file() == {}

    def test_config_file_provides_defaults(self, tmp_path, restore_env) -> None:
        (tmp_path / "config.yaml").write_text(
            "batch:\n"
            "  batch_size: 50\n"
            "  batch_time_seconds: 1.5\n"
            "host:\n"
            "  provisioning_url: https://logs.example.com/provision\n"
        )
        settings = reload_settings()
        assert settings.batch.batch_size == 50
        assert settings.batch.batch_time_seconds == 1.5
        assert settings.host.provisioning_url == "https://logs.example.com/provision"

    def test_env_vars_win_over_config_file(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "config.yaml").write_text("batch:\n  batch_size: 50\n")
        monkeypatch.setenv("LOGRELAY_BATCH_BATCH_SIZE", "10")

        assert reload_settings().batch.batch_size == 10
