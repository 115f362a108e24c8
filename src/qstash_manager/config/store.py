"""
Persistent multi-environment configuration store for QStash Manager.

This module owns the config file at ~/.qstash-manager/config.json: loading
and normalizing it, caching the loaded document, and applying validated
environment and preference changes that are persisted immediately.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import commentjson
from pydantic import ValidationError

from .models import (
    CONFIG_VERSION,
    EPOCH,
    ConfigDocument,
    ConfigErrorKind,
    Environment,
    EnvironmentListEntry,
    Preferences,
    RemoveEnvironmentOutcome,
    SetDefaultOutcome,
    StoreResult,
    TokenResolutionResult,
    utc_now,
)
from .tokens import mask_token, normalize_environment_id, resolve_token

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".qstash-manager"
CONFIG_FILE_NAME = "config.json"

_WHITESPACE = re.compile(r"\s")


class ConfigPersistenceError(Exception):
    """Raised when the config file cannot be written."""

    def __init__(self, message: str, path: Optional[Path] = None, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.original_error = original_error


def default_document() -> ConfigDocument:
    """A fresh default document: no environments, default preferences."""
    return ConfigDocument()


def _normalize_environment(env_id: str, entry: Any) -> Optional[Environment]:
    """Validate one stored environment, or return None if it is unusable.

    A missing name falls back to the id. A missing or unparseable
    createdAt falls back to the Unix epoch.
    """
    if not isinstance(entry, dict):
        logger.warning(f"Skipping environment '{env_id}': entry must be an object")
        return None

    normalized = dict(entry)
    if not normalized.get("name"):
        normalized["name"] = env_id
    if not normalized.get("createdAt"):
        normalized["createdAt"] = EPOCH

    try:
        return Environment.model_validate(normalized)
    except ValidationError:
        normalized["createdAt"] = EPOCH

    try:
        environment = Environment.model_validate(normalized)
    except ValidationError as e:
        logger.warning(f"Skipping environment '{env_id}': {e}")
        return None

    logger.warning(f"Environment '{env_id}' has an invalid createdAt; using {EPOCH.isoformat()}")
    return environment


def _normalize_preferences(raw: Any) -> Preferences:
    """Merge stored preferences key by key over the defaults."""
    merged = Preferences().model_dump(by_alias=True)
    if isinstance(raw, dict):
        merged.update(raw)
    elif raw is not None:
        logger.warning("Ignoring preferences: entry must be an object")

    try:
        return Preferences.model_validate(merged)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid preferences: {e}")
        return Preferences()


def normalize_document(raw: Any) -> ConfigDocument:
    """
    Build a canonical ConfigDocument from parsed JSON.

    Missing fields fall back to defaults:
    - version -> "1"
    - defaultEnvironment -> ""
    - environments -> {}
    - preferences -> merged key by key over the default preferences
    - environment name -> its id; environment createdAt -> the Unix epoch

    Environment ids are normalized the same way as on insert. An unusable
    environment entry is skipped with a warning; the rest of the document
    is kept. A default that does not name a stored environment is cleared.

    Raises:
        ValueError: If the content is not a JSON object
        ValidationError: If a top-level field has an unusable value
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be an object, got {type(raw).__name__}")

    raw_environments = raw.get("environments") or {}
    if not isinstance(raw_environments, dict):
        raise ValueError("Config 'environments' must be an object")

    environments: Dict[str, Environment] = {}
    for env_id, entry in raw_environments.items():
        normalized_id = normalize_environment_id(str(env_id))
        if not normalized_id:
            logger.warning(f"Skipping environment with blank id '{env_id}'")
            continue
        if normalized_id in environments:
            logger.warning(f"Skipping environment '{env_id}': duplicates '{normalized_id}'")
            continue
        environment = _normalize_environment(normalized_id, entry)
        if environment is not None:
            environments[normalized_id] = environment

    preferences = _normalize_preferences(raw.get("preferences"))

    version = raw.get("version")
    default_id = raw.get("defaultEnvironment") or ""
    document = ConfigDocument.model_validate({
        "version": str(version) if version is not None else CONFIG_VERSION,
        "defaultEnvironment": normalize_environment_id(str(default_id)),
        "environments": environments,
        "preferences": preferences,
    })

    if document.default_environment and document.default_environment not in document.environments:
        logger.warning(
            f"Default environment '{document.default_environment}' does not exist; clearing it"
        )
        document.default_environment = ""

    return document


def _pick_new_default(environments: Mapping[str, Environment]) -> str:
    """Oldest remaining environment; insertion order breaks ties."""
    if not environments:
        return ""
    return min(environments, key=lambda env_id: environments[env_id].created_at)


class ConfigStore:
    """
    Loads, caches and mutates the QStash Manager config file.

    Every mutating operation works on a copy of the loaded document and
    commits it (cache and disk) only after the write succeeds, so a failed
    operation leaves both untouched.
    """

    def __init__(self, config_dir: Optional[Path] = None, config_path: Optional[Path] = None):
        """Initialize the store.

        Args:
            config_dir: Directory holding the config file (default ~/.qstash-manager)
            config_path: Explicit config file path, overriding config_dir/config.json
        """
        self._config_dir = Path(config_dir) if config_dir else Path.home() / CONFIG_DIR_NAME
        self._config_path = Path(config_path) if config_path else self._config_dir / CONFIG_FILE_NAME
        self._cached: Optional[ConfigDocument] = None

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def config_path(self) -> Path:
        return self._config_path

    def exists(self) -> bool:
        """Check whether the config file is present."""
        return self._config_path.exists()

    def load(self) -> ConfigDocument:
        """Load the config document.

        Returns the cached document when available. A missing or unreadable
        file yields a default document; it is never an error.
        """
        if self._cached is not None:
            return self._cached

        if not self.exists():
            logger.debug(f"Config file not found: {self._config_path}")
            return default_document()

        try:
            content = self._config_path.read_text(encoding="utf-8")
            document = normalize_document(commentjson.loads(content))
        except (ValidationError, ValueError, commentjson.JSONLibraryException) as e:
            logger.warning(f"Ignoring corrupt config file {self._config_path}: {e}")
            return default_document()
        except Exception as e:
            logger.warning(f"Error loading {self._config_path}, using defaults: {e}")
            return default_document()

        self._cached = document
        logger.debug(f"Loaded config from {self._config_path}")
        return document

    def save(self, document: ConfigDocument) -> None:
        """Write the document to disk and make it the cached value.

        Raises:
            ConfigPersistenceError: If the file cannot be written
        """
        parent = self._config_path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
            content = commentjson.dumps(document.to_json_dict(), indent=2, ensure_ascii=False)
            fd, tmp_name = tempfile.mkstemp(prefix=".config-", suffix=".tmp", dir=parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_name, self._config_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, commentjson.JSONLibraryException) as e:
            error_msg = f"Failed to save config to {self._config_path}: {e}"
            logger.error(error_msg)
            raise ConfigPersistenceError(error_msg, path=self._config_path, original_error=e) from e

        self._cached = document
        logger.info(f"Saved config to {self._config_path}")

    def clear_cache(self) -> None:
        """Force the next load() to re-read the file."""
        self._cached = None

    def _working_copy(self) -> ConfigDocument:
        return self.load().model_copy(deep=True)

    def _commit(self, document: ConfigDocument) -> Optional[StoreResult]:
        """Persist a working copy; returns a failure result if the write failed."""
        try:
            self.save(document)
        except ConfigPersistenceError as e:
            return StoreResult.fail(ConfigErrorKind.PERSISTENCE_FAILED, e.message)
        return None

    # Environments

    def add_environment(
        self,
        environment_id: str,
        token: str,
        display_name: Optional[str] = None
    ) -> StoreResult[Environment]:
        """Add a new environment.

        The id is normalized (lowercase, whitespace collapsed to hyphens)
        before the duplicate check. The first environment added becomes
        the default.
        """
        if not environment_id or not environment_id.strip():
            return StoreResult.fail(ConfigErrorKind.INVALID_INPUT, "Environment ID is required")
        if not token or not token.strip():
            return StoreResult.fail(ConfigErrorKind.INVALID_INPUT, "Token is required")

        clean_token = token.strip()
        if _WHITESPACE.search(clean_token):
            return StoreResult.fail(ConfigErrorKind.INVALID_INPUT, "Token cannot contain whitespace")

        normalized_id = normalize_environment_id(environment_id)
        document = self._working_copy()

        if normalized_id in document.environments:
            return StoreResult.fail(
                ConfigErrorKind.ALREADY_EXISTS,
                f"Environment '{normalized_id}' already exists"
            )

        environment = Environment(
            token=clean_token,
            name=(display_name or "").strip() or normalized_id,
            created_at=utc_now(),
        )
        document.environments[normalized_id] = environment

        if len(document.environments) == 1:
            document.default_environment = normalized_id

        failure = self._commit(document)
        if failure:
            return failure

        logger.info(f"Added environment '{normalized_id}'")
        return StoreResult.ok(environment)

    def update_environment(
        self,
        environment_id: str,
        token: Optional[str] = None,
        name: Optional[str] = None
    ) -> StoreResult[Environment]:
        """Update the token and/or display name of an environment.

        Fields left as None keep their current value; created_at is
        always preserved. A blank name resets the display name to the id.
        """
        normalized_id = normalize_environment_id(environment_id or "")
        document = self._working_copy()

        existing = document.environments.get(normalized_id)
        if existing is None:
            return StoreResult.fail(
                ConfigErrorKind.NOT_FOUND_LOCAL,
                f"Environment '{normalized_id}' does not exist"
            )

        updates: Dict[str, Any] = {}
        if token is not None:
            clean_token = token.strip()
            if not clean_token:
                return StoreResult.fail(ConfigErrorKind.INVALID_INPUT, "Token cannot be empty")
            if _WHITESPACE.search(clean_token):
                return StoreResult.fail(ConfigErrorKind.INVALID_INPUT, "Token cannot contain whitespace")
            updates["token"] = clean_token
        if name is not None:
            updates["name"] = name.strip() or normalized_id

        updated = existing.model_copy(update=updates)
        document.environments[normalized_id] = updated

        failure = self._commit(document)
        if failure:
            return failure

        logger.info(f"Updated environment '{normalized_id}'")
        return StoreResult.ok(updated)

    def remove_environment(self, environment_id: str) -> StoreResult[RemoveEnvironmentOutcome]:
        """Remove an environment.

        When the default is removed, the oldest remaining environment
        becomes the default, or the default is cleared if none remain.
        """
        normalized_id = normalize_environment_id(environment_id or "")
        document = self._working_copy()

        if normalized_id not in document.environments:
            return StoreResult.fail(
                ConfigErrorKind.NOT_FOUND_LOCAL,
                f"Environment '{normalized_id}' does not exist"
            )

        del document.environments[normalized_id]

        default_affected = document.default_environment == normalized_id
        if default_affected or not document.environments:
            document.default_environment = _pick_new_default(document.environments)

        failure = self._commit(document)
        if failure:
            return failure

        logger.info(f"Removed environment '{normalized_id}'")
        return StoreResult.ok(RemoveEnvironmentOutcome(
            default_affected=default_affected,
            new_default=document.default_environment,
        ))

    def set_default_environment(self, environment_id: str) -> StoreResult[SetDefaultOutcome]:
        """Make an existing environment the default."""
        normalized_id = normalize_environment_id(environment_id or "")
        document = self._working_copy()

        if normalized_id not in document.environments:
            return StoreResult.fail(
                ConfigErrorKind.NOT_FOUND_LOCAL,
                f"Environment '{normalized_id}' does not exist"
            )

        previous_default = document.default_environment
        document.default_environment = normalized_id

        failure = self._commit(document)
        if failure:
            return failure

        return StoreResult.ok(SetDefaultOutcome(previous_default=previous_default))

    def get_default_environment(self) -> str:
        return self.load().default_environment

    def get_environment(self, environment_id: str) -> Optional[Environment]:
        return self.load().environments.get(normalize_environment_id(environment_id or ""))

    def list_environments(self, include_token: bool = False) -> List[EnvironmentListEntry]:
        """List environments, oldest first.

        Args:
            include_token: Attach a masked token to each entry
        """
        document = self.load()
        entries = [
            EnvironmentListEntry(
                id=env_id,
                name=env.name,
                is_default=document.default_environment == env_id,
                created_at=env.created_at,
                masked_token=mask_token(env.token) if include_token else None,
            )
            for env_id, env in document.environments.items()
        ]
        return sorted(entries, key=lambda entry: entry.created_at)

    def has_environments(self) -> bool:
        return bool(self.load().environments)

    def environment_count(self) -> int:
        return len(self.load().environments)

    # Preferences

    def get_preferences(self) -> Preferences:
        return self.load().preferences.model_copy()

    def update_preferences(self, **updates: bool) -> Preferences:
        """Shallow-merge preference updates and persist them.

        Raises:
            ValueError: If an unknown preference is given
            ConfigPersistenceError: If the file cannot be written
        """
        unknown = set(updates) - set(Preferences.model_fields)
        if unknown:
            raise ValueError(f"Unknown preferences: {', '.join(sorted(unknown))}")

        document = self._working_copy()
        merged = document.preferences.model_dump()
        merged.update(updates)
        document.preferences = Preferences.model_validate(merged)

        self.save(document)
        return document.preferences.model_copy()

    # Token resolution

    def resolve_token(
        self,
        cli_token: Optional[str] = None,
        environment_id: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Optional[TokenResolutionResult]:
        """Resolve a token from CLI flag, QSTASH_TOKEN, or this config."""
        return resolve_token(self.load(), cli_token=cli_token, environment_id=environment_id, environ=environ)

    # Whole-file operations

    def create_config(
        self,
        environment_id: str,
        token: str,
        display_name: Optional[str] = None
    ) -> ConfigDocument:
        """Write a fresh config containing a single, default environment.

        Raises:
            ValueError: If the id or token is blank, or the token contains whitespace
            ConfigPersistenceError: If the file cannot be written
        """
        if not environment_id or not environment_id.strip():
            raise ValueError("Environment ID is required")
        if not token or not token.strip():
            raise ValueError("Token is required")

        clean_token = token.strip()
        if _WHITESPACE.search(clean_token):
            raise ValueError("Token cannot contain whitespace")

        normalized_id = normalize_environment_id(environment_id)
        document = ConfigDocument(
            version=CONFIG_VERSION,
            default_environment=normalized_id,
            environments={
                normalized_id: Environment(
                    token=clean_token,
                    name=(display_name or "").strip() or normalized_id,
                ),
            },
        )
        self.save(document)
        return document

    def delete_config(self) -> bool:
        """Delete the config file. Returns False if there was nothing to delete."""
        if not self.exists():
            return False

        try:
            self._config_path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete {self._config_path}: {e}")
            return False

        self._cached = None
        logger.info(f"Deleted config file {self._config_path}")
        return True
