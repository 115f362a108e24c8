"""Tests for API error classification."""

import httpx
import pytest

from qstash_manager.core.client.errors import (
    AuthenticationError,
    BadRequestError,
    ErrorKind,
    NetworkError,
    QStashError,
    RateLimitError,
    ResourceNotFoundError,
    ServerError,
    classify_error,
    create_user_friendly_message,
    is_retryable_error,
)
from qstash_manager.core.client.transport import QStashHTTPError


class TestClassifyByMessage:
    """Classification of plain exceptions by message content."""

    @pytest.mark.parametrize("message,kind,error_type", [
        ("401 Unauthorized", ErrorKind.UNAUTHORIZED, AuthenticationError),
        ("Authentication required", ErrorKind.UNAUTHORIZED, AuthenticationError),
        ("404 page", ErrorKind.NOT_FOUND, ResourceNotFoundError),
        ("topic not found", ErrorKind.NOT_FOUND, ResourceNotFoundError),
        ("Too Many Requests", ErrorKind.RATE_LIMITED, RateLimitError),
        ("Bad Request: missing destination", ErrorKind.BAD_REQUEST, BadRequestError),
        ("invalid cron expression", ErrorKind.BAD_REQUEST, BadRequestError),
        ("503 Service Unavailable", ErrorKind.SERVER_ERROR, ServerError),
        ("connect ECONNREFUSED 127.0.0.1:443", ErrorKind.NETWORK_ERROR, NetworkError),
        ("fetch failed", ErrorKind.NETWORK_ERROR, NetworkError),
        ("request timed out", ErrorKind.NETWORK_ERROR, NetworkError),
        ("something odd happened", ErrorKind.UNKNOWN, QStashError),
    ])
    def test_kinds(self, message: str, kind: ErrorKind, error_type: type) -> None:
        error = classify_error(Exception(message), "Listing queues")

        assert error.kind == kind
        assert type(error) is error_type
        assert error.context == "Listing queues"

    def test_order_auth_beats_not_found(self) -> None:
        error = classify_error(Exception("401: user not found"), "ctx")
        assert error.kind == ErrorKind.UNAUTHORIZED

    def test_order_rate_limit_beats_bad_request(self) -> None:
        error = classify_error(Exception("rate limit exceeded: invalid burst"), "ctx")
        assert error.kind == ErrorKind.RATE_LIMITED

    def test_retry_after_is_extracted(self) -> None:
        error = classify_error(Exception("429 retry after 30 seconds"), "Publishing")

        assert isinstance(error, RateLimitError)
        assert error.retry_after_seconds == 30
        assert "30 seconds" in error.user_message

    def test_rate_limit_without_retry_hint(self) -> None:
        error = classify_error(Exception("429"), "Publishing")

        assert error.retry_after_seconds is None
        assert "wait a moment" in error.user_message

    def test_server_status_is_extracted(self) -> None:
        error = classify_error(Exception("502 Bad Gateway"), "Listing")

        # "bad" alone does not match the bad-request rule
        assert error.kind == ErrorKind.SERVER_ERROR
        assert error.status_code == 502

    def test_unknown_message_keeps_context(self) -> None:
        error = classify_error(Exception("weird"), "Deleting queue")

        assert error.user_message == "Deleting queue: weird"
        assert error.is_retryable is False

    def test_empty_message_uses_type_name(self) -> None:
        error = classify_error(httpx.ConnectTimeout(""), "Listing")
        assert error.kind == ErrorKind.NETWORK_ERROR

    def test_non_exception_value(self) -> None:
        error = classify_error("401", "ctx")

        assert error.kind == ErrorKind.UNAUTHORIZED
        assert error.original_error is None


class TestClassifyByStatus:
    """Classification of errors that carry an HTTP status."""

    def test_status_takes_precedence(self) -> None:
        error = classify_error(QStashHTTPError(404, "Not Found", "invalid topic"), "Getting URL group")

        assert error.kind == ErrorKind.NOT_FOUND

    def test_retry_after_header(self) -> None:
        error = classify_error(QStashHTTPError(429, "Too Many Requests", retry_after=12), "Publishing")

        assert isinstance(error, RateLimitError)
        assert error.retry_after_seconds == 12

    def test_server_status(self) -> None:
        error = classify_error(QStashHTTPError(507, "Insufficient Storage"), "ctx")

        assert error.kind == ErrorKind.SERVER_ERROR
        assert error.status_code == 507
        assert error.is_retryable

    def test_unmapped_status_falls_back_to_text(self) -> None:
        error = classify_error(QStashHTTPError(412, "Precondition Failed", "invalid state"), "ctx")

        assert error.kind == ErrorKind.BAD_REQUEST

    def test_bad_request_detail(self) -> None:
        error = classify_error(QStashHTTPError(400, "Bad Request", "cron is invalid"), "Creating schedule")

        assert error.user_message.startswith("Creating schedule: 400 Bad Request")
        assert "cron is invalid" in error.user_message


class TestErrorProperties:
    """Retryability, idempotence and serialization."""

    @pytest.mark.parametrize("message,retryable", [
        ("401", False),
        ("404", False),
        ("429", True),
        ("400", False),
        ("500", True),
        ("ECONNREFUSED", True),
        ("mystery", False),
    ])
    def test_retryability(self, message: str, retryable: bool) -> None:
        assert is_retryable_error(Exception(message)) is retryable

    def test_classification_is_idempotent(self) -> None:
        first = classify_error(Exception("500 oops"), "ctx")

        assert classify_error(first, "other") is first

    def test_classification_is_deterministic(self) -> None:
        a = classify_error(Exception("rate limit, retry in 5s"), "ctx")
        b = classify_error(Exception("rate limit, retry in 5s"), "ctx")

        assert a.to_dict() == b.to_dict()

    def test_not_found_mentions_resource(self) -> None:
        error = classify_error(
            Exception("404"), "Getting queue", resource_type="queue", resource_id="orders"
        )

        assert "queue 'orders'" in error.user_message
        assert error.details == {"resource_type": "queue", "resource_id": "orders"}

    def test_original_error_is_kept(self) -> None:
        original = RuntimeError("500")
        assert classify_error(original, "ctx").original_error is original

    def test_to_dict(self) -> None:
        data = classify_error(Exception("401"), "ctx").to_dict()

        assert data["kind"] == "UNAUTHORIZED"
        assert data["status_code"] == 401
        assert data["type"] == "AuthenticationError"
        assert data["is_retryable"] is False

    def test_str_includes_status(self) -> None:
        assert "(Status: 503)" in str(classify_error(Exception("503"), "ctx"))

    def test_user_friendly_message(self) -> None:
        message = create_user_friendly_message(Exception("401"), "ctx")
        assert "QSTASH_TOKEN" in message
