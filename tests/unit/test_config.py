"""Unit tests for application settings."""
from compute_relay.config import Settings, get_settings


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        """Test documented default values."""
        for name in ("QUEUE_CAPACITY", "HEARTBEAT_INTERVAL_MS", "UPLOAD_MAX_ATTEMPTS"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.QUEUE_CAPACITY == 100
        assert settings.HEARTBEAT_INTERVAL_MS == 5000
        assert settings.HEARTBEAT_FLUSH_INTERVAL == 60
        assert settings.INPUT_POLL_ATTEMPTS == 5
        assert settings.UPLOAD_MAX_ATTEMPTS == 3
        assert settings.WORKER_MAX_CONCURRENT_JOBS == 1
        assert settings.DEFAULT_DOMAIN_VALUE == 4.0
        assert settings.ALLOWED_INPUT_EXTENSIONS == [".json", ".csv", ".dat"]
        assert settings.WORKER_ENABLED is True

    def test_environment_overrides(self, monkeypatch):
        """Test values are read from environment variables."""
        monkeypatch.setenv("QUEUE_CAPACITY", "5")
        monkeypatch.setenv("WORKER_ENABLED", "false")
        monkeypatch.setenv("RESULT_FILE_EXTENSIONS", '[".zip"]')

        settings = Settings(_env_file=None)

        assert settings.QUEUE_CAPACITY == 5
        assert settings.WORKER_ENABLED is False
        assert settings.RESULT_FILE_EXTENSIONS == [".zip"]

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
