"""Tests for runtime settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from qstash_manager.config.settings import QStashManagerSettings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep real QSTASH_MANAGER_* variables and .env files out of these tests."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "QSTASH_MANAGER_CONFIG_DIR",
        "QSTASH_MANAGER_BASE_URL",
        "QSTASH_MANAGER_MAX_RETRIES",
        "QSTASH_MANAGER_LOG_LEVEL",
        "QSTASH_MANAGER_DEBUG",
        "QSTASH_MANAGER_RETRY_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)


class TestQStashManagerSettings:
    """Test cases for QStashManagerSettings."""

    def test_default_values(self) -> None:
        """Test that default values are set correctly."""
        settings = QStashManagerSettings()

        assert settings.config_dir == Path.home() / ".qstash-manager"
        assert settings.config_path is None
        assert settings.base_url == "https://qstash.upstash.io"
        assert settings.timeout == 30.0
        assert settings.retry_enabled is True
        assert settings.max_retries == 3
        assert settings.initial_delay_ms == 1000
        assert settings.max_delay_ms == 10000
        assert settings.backoff_multiplier == 2.0
        assert settings.log_level == "WARNING"

    def test_values_from_env(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test loading settings from QSTASH_MANAGER_ variables."""
        monkeypatch.setenv("QSTASH_MANAGER_CONFIG_DIR", str(tmp_path / "cfg"))
        monkeypatch.setenv("QSTASH_MANAGER_MAX_RETRIES", "5")
        monkeypatch.setenv("QSTASH_MANAGER_BASE_URL", "https://qstash-eu.example.test/")

        settings = get_settings()

        assert settings.config_dir == tmp_path / "cfg"
        assert settings.max_retries == 5
        assert settings.base_url == "https://qstash-eu.example.test"

    def test_values_from_dotenv(self, tmp_path: Path) -> None:
        """Test loading settings from a .env file in the working directory."""
        (tmp_path / ".env").write_text("QSTASH_MANAGER_LOG_LEVEL=info\n", encoding="utf-8")

        assert QStashManagerSettings().log_level == "INFO"

    def test_invalid_log_level(self) -> None:
        """Test validation of invalid log level."""
        with pytest.raises(ValidationError):
            QStashManagerSettings(log_level="INVALID")

    def test_valid_log_level(self) -> None:
        """Test validation of valid log levels."""
        for level in ["debug", "INFO", "Warning", "ERROR", "CRITICAL"]:
            settings = QStashManagerSettings(log_level=level)
            assert settings.log_level == level.upper()

    def test_debug_overrides_log_level(self) -> None:
        settings = QStashManagerSettings(log_level="ERROR", debug=True)
        assert settings.effective_log_level == "DEBUG"

    def test_retry_bounds(self) -> None:
        """Test retry option validation."""
        QStashManagerSettings(max_retries=0)
        QStashManagerSettings(max_retries=10)

        with pytest.raises(ValidationError):
            QStashManagerSettings(max_retries=-1)
        with pytest.raises(ValidationError):
            QStashManagerSettings(max_retries=11)
        with pytest.raises(ValidationError):
            QStashManagerSettings(backoff_multiplier=0.5)
        with pytest.raises(ValidationError):
            QStashManagerSettings(timeout=0)

    def test_to_retry_config(self) -> None:
        settings = QStashManagerSettings(max_retries=2, initial_delay_ms=250, retry_enabled=False)

        config = settings.to_retry_config()

        assert config.max_retries == 2
        assert config.initial_delay_ms == 250
        assert config.max_delay_ms == 10000
        assert config.enabled is False
        assert config.max_attempts == 1

    def test_to_dict(self, tmp_path: Path) -> None:
        data = QStashManagerSettings(config_dir=tmp_path).to_dict()

        assert data["config_dir"] == str(tmp_path)
        assert data["config_path"] is None
        assert data["max_retries"] == 3
