"""
Application settings for QStash Manager.

This module provides runtime settings using Pydantic settings with support
for environment variables and .env files. Credentials themselves live in the
config file managed by ConfigStore; these settings tune where that file is
and how the API client behaves.
"""

from typing import Optional, Dict, Any
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.client.retry import RetryConfig
from .store import CONFIG_DIR_NAME

DEFAULT_BASE_URL = "https://qstash.upstash.io"


class QStashManagerSettings(BaseSettings):
    """
    Runtime settings for QStash Manager.

    Settings are loaded from multiple sources in order of preference:
    1. Environment variables (prefixed with QSTASH_MANAGER_)
    2. .env file in the working directory
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="QSTASH_MANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Directory Configuration
    config_dir: Path = Field(
        default_factory=lambda: Path.home() / CONFIG_DIR_NAME,
        description="Directory holding config.json"
    )

    config_path: Optional[Path] = Field(
        default=None,
        description="Explicit config file path (overrides config_dir)"
    )

    # API Configuration
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="QStash API base URL"
    )

    timeout: float = Field(
        default=30.0,
        description="Request timeout in seconds",
        gt=0
    )

    # Retry Configuration
    retry_enabled: bool = Field(
        default=True,
        description="Retry transient API failures"
    )

    max_retries: int = Field(
        default=3,
        description="Retries after the first attempt",
        ge=0,
        le=10
    )

    initial_delay_ms: int = Field(
        default=1000,
        description="Delay before the first retry in milliseconds",
        ge=0
    )

    max_delay_ms: int = Field(
        default=10000,
        description="Upper bound for the retry delay in milliseconds",
        ge=0
    )

    backoff_multiplier: float = Field(
        default=2.0,
        description="Factor applied to the delay after each retry",
        ge=1.0
    )

    # Logging Configuration
    log_level: str = Field(
        default="WARNING",
        description="Logging level"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level '{v}'. Valid levels: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level

    def to_retry_config(self) -> RetryConfig:
        """Build the retry policy used by the operation executor."""
        return RetryConfig(
            max_retries=self.max_retries,
            initial_delay_ms=self.initial_delay_ms,
            max_delay_ms=self.max_delay_ms,
            backoff_multiplier=self.backoff_multiplier,
            enabled=self.retry_enabled,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to a dictionary for display."""
        data = self.model_dump()
        data["config_dir"] = str(self.config_dir)
        data["config_path"] = str(self.config_path) if self.config_path else None
        return data


def get_settings() -> QStashManagerSettings:
    """Get the current QStash Manager settings."""
    return QStashManagerSettings()
