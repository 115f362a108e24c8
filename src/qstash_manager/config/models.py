"""
Data models for the QStash Manager configuration file.

The on-disk document uses camelCase keys; models expose snake_case
attributes and serialize back through their aliases.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar('T')

CONFIG_VERSION = "1"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Environment(BaseModel):
    """A named credential profile."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(description="QStash API token for this environment")
    name: str = Field(description="Human-readable name for this environment")
    created_at: datetime = Field(
        default_factory=utc_now,
        alias="createdAt",
        description="When this environment was added"
    )

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps from older files as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class Preferences(BaseModel):
    """User preferences for CLI behavior."""

    model_config = ConfigDict(populate_by_name=True)

    color_output: bool = Field(default=True, alias="colorOutput")
    confirm_destructive_actions: bool = Field(default=True, alias="confirmDestructiveActions")


class ConfigDocument(BaseModel):
    """Root configuration document stored at ~/.qstash-manager/config.json."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = CONFIG_VERSION
    default_environment: str = Field(default="", alias="defaultEnvironment")
    environments: Dict[str, Environment] = Field(default_factory=dict)
    preferences: Preferences = Field(default_factory=Preferences)

    def to_json_dict(self) -> Dict:
        """Serialize using the on-disk key names."""
        return self.model_dump(mode="json", by_alias=True)


class EnvironmentListEntry(BaseModel):
    """One row of an environment listing."""

    id: str
    name: str
    is_default: bool
    created_at: datetime
    masked_token: Optional[str] = None


class TokenSource(Enum):
    """Where a resolved token came from."""
    CLI = "cli"
    ENV = "env"
    CONFIG = "config"


@dataclass(frozen=True)
class TokenResolutionResult:
    """Result of token resolution including source information."""
    token: str
    source: TokenSource
    environment_id: Optional[str] = None


class ConfigErrorKind(Enum):
    """Failure kinds produced by local config validation."""
    INVALID_INPUT = "invalid_input"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND_LOCAL = "not_found_local"
    PERSISTENCE_FAILED = "persistence_failed"


@dataclass
class StoreResult(Generic[T]):
    """Outcome of a config store mutation."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_kind: Optional[ConfigErrorKind] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "StoreResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: ConfigErrorKind, error: str) -> "StoreResult[T]":
        return cls(success=False, error=error, error_kind=kind)


@dataclass(frozen=True)
class RemoveEnvironmentOutcome:
    """Details of a successful environment removal."""
    default_affected: bool
    new_default: str = ""


@dataclass(frozen=True)
class SetDefaultOutcome:
    """Details of a successful default switch."""
    previous_default: str
