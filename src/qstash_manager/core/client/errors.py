"""
Structured error system for the QStash API client.

This module classifies opaque failures raised by the transport into typed
errors with a retryability flag and a user-facing message. Failures carrying an
integer ``status_code`` (QStashHTTPError) are classified by status first.
Everything else is classified by a substring heuristic over the lower-cased
message; the match order below is stable:

1. 401 / "unauthorized" / "authentication"           -> AuthenticationError
2. 404 / "not found"                                  -> ResourceNotFoundError
3. 429 / "rate limit" / "too many requests"           -> RateLimitError
4. 400 / "bad request" / "invalid"                    -> BadRequestError
5. 500 / 502 / 503 / 504                              -> ServerError
6. network / econnrefused / enotfound / timeout /
   etimedout / "fetch failed"                         -> NetworkError
7. anything else                                      -> QStashError (UNKNOWN)
"""

import re
from enum import Enum
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    """Machine-readable kinds of classified API errors."""
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    BAD_REQUEST = "BAD_REQUEST"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN = "UNKNOWN"


class QStashError(Exception):
    """Base exception for all QStash API related errors."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status_code: Optional[int] = None,
        context: str = "",
        is_retryable: bool = False,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.context = context
        self.is_retryable = is_retryable
        self.details = details or {}
        self.original_error = original_error

    @property
    def user_message(self) -> str:
        """Message suitable for showing to the user."""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "message": self.message,
            "kind": self.kind.value,
            "status_code": self.status_code,
            "context": self.context,
            "is_retryable": self.is_retryable,
            "details": self.details,
            "type": self.__class__.__name__
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code:
            parts.append(f"(Status: {self.status_code})")
        return " ".join(parts)


class AuthenticationError(QStashError):
    """Error related to authentication issues (401)."""

    def __init__(self, context: str, original_error: Optional[BaseException] = None):
        super().__init__(
            "Authentication failed. Please check your QStash token. You can update it "
            "in the config settings or set the QSTASH_TOKEN environment variable.",
            kind=ErrorKind.UNAUTHORIZED,
            status_code=401,
            context=context,
            is_retryable=False,
            original_error=original_error,
        )


class ResourceNotFoundError(QStashError):
    """Error when the requested resource does not exist (404)."""

    def __init__(
        self,
        context: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        original_error: Optional[BaseException] = None
    ):
        if resource_type:
            target = f"{resource_type} '{resource_id}'" if resource_id else resource_type
            resource_info = f"The {target} may not exist or has been deleted."
        else:
            resource_info = "The resource may not exist or has been deleted."

        super().__init__(
            f"{context}: Resource not found. {resource_info}",
            kind=ErrorKind.NOT_FOUND,
            status_code=404,
            context=context,
            is_retryable=False,
            original_error=original_error,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id
        if resource_type:
            self.details["resource_type"] = resource_type
        if resource_id:
            self.details["resource_id"] = resource_id


class RateLimitError(QStashError):
    """Error when the API rate limit is exceeded (429)."""

    def __init__(
        self,
        context: str,
        retry_after_seconds: Optional[int] = None,
        original_error: Optional[BaseException] = None
    ):
        if retry_after_seconds:
            retry_info = f" Please wait {retry_after_seconds} seconds before retrying."
        else:
            retry_info = " Please wait a moment and try again."

        super().__init__(
            f"Rate limit exceeded.{retry_info}",
            kind=ErrorKind.RATE_LIMITED,
            status_code=429,
            context=context,
            is_retryable=True,
            original_error=original_error,
        )
        self.retry_after_seconds = retry_after_seconds
        if retry_after_seconds is not None:
            self.details["retry_after_seconds"] = retry_after_seconds


class BadRequestError(QStashError):
    """Error for invalid API requests (400)."""

    def __init__(self, context: str, detail: str, original_error: Optional[BaseException] = None):
        super().__init__(
            f"{context}: {detail}",
            kind=ErrorKind.BAD_REQUEST,
            status_code=400,
            context=context,
            is_retryable=False,
            original_error=original_error,
        )


class ServerError(QStashError):
    """Error for server-side issues (5xx)."""

    def __init__(self, context: str, status_code: int = 500, original_error: Optional[BaseException] = None):
        super().__init__(
            f"{context}: QStash server error ({status_code}). Please try again in a few moments. "
            "If the issue persists, check the Upstash status page.",
            kind=ErrorKind.SERVER_ERROR,
            status_code=status_code,
            context=context,
            is_retryable=True,
            original_error=original_error,
        )


class NetworkError(QStashError):
    """Error for connection failures and timeouts."""

    def __init__(self, context: str, original_error: Optional[BaseException] = None):
        super().__init__(
            f"{context}: Network error. Please check your internet connection and try again.",
            kind=ErrorKind.NETWORK_ERROR,
            context=context,
            is_retryable=True,
            original_error=original_error,
        )


_RETRY_AFTER = re.compile(r"retry.+?(\d+)")
_SERVER_STATUS = re.compile(r"5\d{2}")

_NETWORK_KEYWORDS = (
    "network",
    "econnrefused",
    "connection refused",
    "enotfound",
    "timeout",
    "timed out",
    "etimedout",
    "fetch failed",
)


def _failure_text(error: BaseException) -> str:
    text = str(error)
    # Exceptions like httpx.ConnectTimeout can carry an empty message
    return text or type(error).__name__


def classify_error(
    error: Any,
    context: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None
) -> QStashError:
    """
    Classify a failure into a structured QStashError.

    Args:
        error: The original exception (or any other raised value)
        context: Description of the attempted operation
        resource_type: Resource kind, used in not-found messages
        resource_id: Resource identifier, used in not-found messages

    Returns:
        Classified QStashError instance (the input itself if already classified)
    """
    if isinstance(error, QStashError):
        return error

    original = error if isinstance(error, BaseException) else None
    raw_text = _failure_text(error) if original is not None else str(error)

    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        structured = _classify_status(
            status, error, raw_text, context, resource_type, resource_id, original
        )
        if structured is not None:
            return structured

    return _classify_text(raw_text, context, resource_type, resource_id, original)


def _classify_status(
    status: int,
    error: Any,
    raw_text: str,
    context: str,
    resource_type: Optional[str],
    resource_id: Optional[str],
    original: Optional[BaseException]
) -> Optional[QStashError]:
    """Classify by HTTP status when the transport provides one."""
    if status == 401:
        return AuthenticationError(context, original_error=original)
    if status == 404:
        return ResourceNotFoundError(
            context,
            resource_type=resource_type,
            resource_id=resource_id,
            original_error=original,
        )
    if status == 429:
        retry_after = getattr(error, "retry_after", None)
        if not isinstance(retry_after, int):
            retry_match = _RETRY_AFTER.search(raw_text.lower())
            retry_after = int(retry_match.group(1)) if retry_match else None
        return RateLimitError(context, retry_after_seconds=retry_after, original_error=original)
    if status == 400:
        return BadRequestError(context, raw_text, original_error=original)
    if 500 <= status < 600:
        return ServerError(context, status_code=status, original_error=original)
    return None


def _classify_text(
    raw_text: str,
    context: str,
    resource_type: Optional[str],
    resource_id: Optional[str],
    original: Optional[BaseException]
) -> QStashError:
    """Classify by substrings of the failure message, in documented order."""
    message = raw_text.lower()

    if "401" in message or "unauthorized" in message or "authentication" in message:
        return AuthenticationError(context, original_error=original)

    if "404" in message or "not found" in message:
        return ResourceNotFoundError(
            context,
            resource_type=resource_type,
            resource_id=resource_id,
            original_error=original,
        )

    if "429" in message or "rate limit" in message or "too many requests" in message:
        retry_match = _RETRY_AFTER.search(message)
        retry_after = int(retry_match.group(1)) if retry_match else None
        return RateLimitError(context, retry_after_seconds=retry_after, original_error=original)

    if "400" in message or "bad request" in message or "invalid" in message:
        return BadRequestError(context, raw_text, original_error=original)

    if any(code in message for code in ("500", "502", "503", "504")):
        status_match = _SERVER_STATUS.search(message)
        status_code = int(status_match.group(0)) if status_match else 500
        return ServerError(context, status_code=status_code, original_error=original)

    if any(keyword in message for keyword in _NETWORK_KEYWORDS):
        return NetworkError(context, original_error=original)

    return QStashError(
        f"{context}: {raw_text}",
        kind=ErrorKind.UNKNOWN,
        context=context,
        is_retryable=False,
        original_error=original,
    )


def is_retryable_error(error: Any) -> bool:
    """Check if a failure is worth retrying."""
    return classify_error(error, "retry-check").is_retryable


def create_user_friendly_message(error: Any, context: str) -> str:
    """Classify a failure and return its user-facing message."""
    return classify_error(error, context).user_message
