"""
Token helpers for QStash Manager.

Masking for display, environment id normalization, and the token
resolution priority chain (CLI flag, QSTASH_TOKEN, config file).
"""

import os
import re
from typing import Mapping, Optional

from .models import ConfigDocument, TokenResolutionResult, TokenSource

TOKEN_ENV_VAR = "QSTASH_TOKEN"

_MASK_VISIBLE_PREFIX = 6
_MASK_VISIBLE_SUFFIX = 4
_WHITESPACE_RUN = re.compile(r"\s+")


def mask_token(token: str) -> str:
    """Mask a token for display, keeping the first 6 and last 4 characters.

    Tokens of 10 characters or fewer are masked entirely.
    """
    visible = _MASK_VISIBLE_PREFIX + _MASK_VISIBLE_SUFFIX
    if len(token) <= visible:
        return "*" * len(token)
    hidden = "*" * (len(token) - visible)
    return f"{token[:_MASK_VISIBLE_PREFIX]}{hidden}{token[-_MASK_VISIBLE_SUFFIX:]}"


def normalize_environment_id(environment_id: str) -> str:
    """Lowercase an environment id and collapse whitespace runs into hyphens."""
    return _WHITESPACE_RUN.sub("-", environment_id.strip().lower())


def _non_blank(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def resolve_token(
    document: ConfigDocument,
    cli_token: Optional[str] = None,
    environment_id: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[TokenResolutionResult]:
    """
    Resolve which token to use for this invocation.

    Priority (first non-blank value wins):
    1. Token passed on the command line
    2. QSTASH_TOKEN environment variable
    3. The named environment, or the default environment, from the config file

    Args:
        document: Loaded configuration document
        cli_token: Explicit token override
        environment_id: Environment to use instead of the configured default
        environ: Process environment (defaults to os.environ)

    Returns:
        Resolution result, or None when no source provides a token
    """
    token = _non_blank(cli_token)
    if token:
        return TokenResolutionResult(token=token, source=TokenSource.CLI)

    env = os.environ if environ is None else environ
    token = _non_blank(env.get(TOKEN_ENV_VAR))
    if token:
        return TokenResolutionResult(token=token, source=TokenSource.ENV)

    selected = _non_blank(environment_id)
    name = normalize_environment_id(selected) if selected else document.default_environment
    if name and name in document.environments:
        return TokenResolutionResult(
            token=document.environments[name].token,
            source=TokenSource.CONFIG,
            environment_id=name,
        )

    return None
