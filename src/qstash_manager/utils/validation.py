"""
Input validation helpers for QStash Manager.

Validators return a ValidationResult instead of raising so the CLI can
show the message next to the offending option.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a single input."""
    is_valid: bool
    error: Optional[str] = None


VALID = ValidationResult(is_valid=True)

MAX_GROUP_NAME_LENGTH = 64
MAX_ENDPOINT_NAME_LENGTH = 128
MAX_ENVIRONMENT_NAME_LENGTH = 32
MIN_TOKEN_LENGTH = 20
MAX_PARALLELISM = 100
MAX_DELAY_SECONDS = 7 * 24 * 60 * 60
MAX_MESSAGE_BODY_BYTES = 1024 * 1024

_GROUP_NAME = re.compile(r"^[a-zA-Z0-9_-]+$")
_ENDPOINT_NAME = re.compile(r"^[a-zA-Z0-9_.\s-]+$")
_ENVIRONMENT_NAME = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]*$")
_IPV4 = re.compile(r"^[\d.]+$")
_IPV6 = re.compile(r"^[\da-f:]+$", re.IGNORECASE)


def _invalid(error: str) -> ValidationResult:
    return ValidationResult(is_valid=False, error=error)


def validate_url(url: str) -> ValidationResult:
    """Validate a destination URL. QStash only delivers to HTTPS endpoints."""
    if not url:
        return _invalid("URL is required")

    trimmed = url.strip()
    if not trimmed:
        return _invalid("URL cannot be empty")

    try:
        parsed = urlparse(trimmed)
        hostname = parsed.hostname
    except ValueError:
        return _invalid("Invalid URL format")

    if not parsed.scheme or not parsed.netloc:
        return _invalid("Invalid URL format")

    if parsed.scheme != "https":
        return _invalid("QStash requires HTTPS URLs (use ngrok for local development)")

    if not hostname or not hostname.strip():
        return _invalid("Invalid hostname in URL")

    is_local_or_ip = hostname == "localhost" or bool(_IPV4.match(hostname)) or bool(_IPV6.match(hostname))
    if not is_local_or_ip and "." not in hostname:
        return _invalid("Invalid hostname in URL")

    return VALID


def validate_group_name(name: str, label: str = "Group") -> ValidationResult:
    """Validate a URL group name: letters, digits, hyphens and underscores."""
    if not name:
        return _invalid(f"{label} name is required")

    trimmed = name.strip()
    if not trimmed:
        return _invalid(f"{label} name cannot be empty")

    if not trimmed[0].isascii() or not trimmed[0].isalnum():
        return _invalid(f"{label} name must start with a letter or number")

    if not _GROUP_NAME.match(trimmed):
        return _invalid("Only letters, numbers, hyphens, and underscores are allowed")

    if len(trimmed) > MAX_GROUP_NAME_LENGTH:
        return _invalid(f"{label} name must be {MAX_GROUP_NAME_LENGTH} characters or less")

    return VALID


def validate_queue_name(name: str) -> ValidationResult:
    return validate_group_name(name, label="Queue")


def validate_schedule_name(name: str) -> ValidationResult:
    return validate_group_name(name, label="Schedule")


def validate_endpoint_name(name: Optional[str]) -> ValidationResult:
    """Endpoint names are optional; when given they must be simple identifiers."""
    if not name or not name.strip():
        return VALID

    trimmed = name.strip()
    if not _ENDPOINT_NAME.match(trimmed):
        return _invalid(
            "Endpoint name can only contain letters, numbers, hyphens, underscores, periods, and spaces"
        )

    if len(trimmed) > MAX_ENDPOINT_NAME_LENGTH:
        return _invalid(f"Endpoint name must be {MAX_ENDPOINT_NAME_LENGTH} characters or less")

    return VALID


def validate_token(token: str) -> ValidationResult:
    """Check that a token looks plausible. Does not contact the API."""
    if not token:
        return _invalid("Token is required")

    trimmed = token.strip()
    if not trimmed:
        return _invalid("Token cannot be empty")

    if re.search(r"\s", trimmed):
        return _invalid("Token cannot contain whitespace")

    if len(trimmed) < MIN_TOKEN_LENGTH:
        return _invalid("Token appears too short to be valid")

    return VALID


def validate_environment_name(name: str) -> ValidationResult:
    """Environment names look like "production", "staging" or "dev-2"."""
    if not name:
        return _invalid("Environment name is required")

    trimmed = name.strip()
    if not trimmed:
        return _invalid("Environment name cannot be empty")

    if not trimmed[0].isascii() or not trimmed[0].isalpha():
        return _invalid("Environment name must start with a letter")

    if not _ENVIRONMENT_NAME.match(trimmed):
        return _invalid("Environment name can only contain letters, numbers, and hyphens")

    if len(trimmed) > MAX_ENVIRONMENT_NAME_LENGTH:
        return _invalid(f"Environment name must be {MAX_ENVIRONMENT_NAME_LENGTH} characters or less")

    return VALID


def validate_parallelism(value: int) -> ValidationResult:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return _invalid("Parallelism must be a number")

    if isinstance(value, float) and not value.is_integer():
        return _invalid("Parallelism must be a whole number")

    if value < 1:
        return _invalid("Parallelism must be at least 1")

    if value > MAX_PARALLELISM:
        return _invalid(f"Parallelism cannot exceed {MAX_PARALLELISM}")

    return VALID


def validate_delay(seconds: float) -> ValidationResult:
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds != seconds:
        return _invalid("Delay must be a number")

    if seconds < 0:
        return _invalid("Delay cannot be negative")

    if seconds > MAX_DELAY_SECONDS:
        return _invalid("Delay cannot exceed 7 days")

    return VALID


def validate_message_body(body: Optional[str]) -> ValidationResult:
    if not body:
        return VALID

    if len(body.encode("utf-8")) > MAX_MESSAGE_BODY_BYTES:
        return _invalid("Message body cannot exceed 1MB")

    return VALID


def is_ngrok_url(url: str) -> bool:
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return False
    return hostname.endswith(".ngrok.io") or hostname.endswith(".ngrok-free.app")


def is_localhost_url(url: str) -> bool:
    """True for URLs QStash cannot reach (loopback, private ranges, .local)."""
    try:
        hostname = (urlparse(url).hostname or "").lower()
    except ValueError:
        return False
    if not hostname:
        return False
    return (
        hostname in ("localhost", "127.0.0.1", "0.0.0.0")
        or hostname.startswith("192.168.")
        or hostname.startswith("10.")
        or hostname.endswith(".local")
    )
