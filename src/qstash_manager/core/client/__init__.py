"""
QStash API client system for QStash Manager.

This package provides the HTTP transport, error classification, retry
logic and the typed client whose operations all return OperationResult.
"""

from .errors import (
    ErrorKind,
    QStashError,
    AuthenticationError,
    ResourceNotFoundError,
    RateLimitError,
    BadRequestError,
    ServerError,
    NetworkError,
    classify_error,
    is_retryable_error,
    create_user_friendly_message,
)
from .retry import (
    RetryConfig,
    RetryManager,
    RetryStats,
    retry_with_backoff,
)
from .executor import OperationExecutor, build_error_context
from .transport import QStashHTTPError, QStashTransport
from .types import OperationResult, TokenInfo
from .qstash_client import (
    QStashClient,
    create_client_from_resolution,
    create_qstash_client,
    validate_qstash_token,
)

__all__ = [
    # Errors
    "ErrorKind",
    "QStashError",
    "AuthenticationError",
    "ResourceNotFoundError",
    "RateLimitError",
    "BadRequestError",
    "ServerError",
    "NetworkError",
    "classify_error",
    "is_retryable_error",
    "create_user_friendly_message",
    # Retry
    "RetryConfig",
    "RetryManager",
    "RetryStats",
    "retry_with_backoff",
    # Execution
    "OperationExecutor",
    "OperationResult",
    "build_error_context",
    # Transport and client
    "QStashHTTPError",
    "QStashTransport",
    "QStashClient",
    "TokenInfo",
    "create_client_from_resolution",
    "create_qstash_client",
    "validate_qstash_token",
]
