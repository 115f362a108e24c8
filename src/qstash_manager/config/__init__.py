"""
Configuration package for QStash Manager.

This package contains the persisted multi-environment config store,
token resolution, and runtime settings.
"""

from .models import (
    ConfigDocument,
    ConfigErrorKind,
    Environment,
    EnvironmentListEntry,
    Preferences,
    RemoveEnvironmentOutcome,
    SetDefaultOutcome,
    StoreResult,
    TokenResolutionResult,
    TokenSource,
)
from .store import ConfigPersistenceError, ConfigStore, normalize_document
from .tokens import TOKEN_ENV_VAR, mask_token, normalize_environment_id, resolve_token

__all__ = [
    "ConfigDocument",
    "ConfigErrorKind",
    "ConfigPersistenceError",
    "ConfigStore",
    "Environment",
    "EnvironmentListEntry",
    "Preferences",
    "RemoveEnvironmentOutcome",
    "SetDefaultOutcome",
    "StoreResult",
    "TOKEN_ENV_VAR",
    "TokenResolutionResult",
    "TokenSource",
    "mask_token",
    "normalize_document",
    "normalize_environment_id",
    "resolve_token",
]
