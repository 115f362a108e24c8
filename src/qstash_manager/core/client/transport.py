"""
HTTP transport for the QStash REST API.

Thin wrapper over httpx.AsyncClient: bearer authentication, JSON decoding,
and conversion of non-2xx responses into QStashHTTPError. Connection
failures and timeouts surface as httpx exceptions; retry and
classification happen a layer up, in the operation executor.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ... import USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://qstash.upstash.io"
DEFAULT_TIMEOUT_SECONDS = 30.0

_MAX_ERROR_BODY = 500


class QStashHTTPError(Exception):
    """Non-2xx response from the QStash API."""

    def __init__(
        self,
        status_code: int,
        reason: str,
        body: str = "",
        retry_after: Optional[int] = None
    ):
        detail = body.strip()[:_MAX_ERROR_BODY]
        message = f"{status_code} {reason}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.retry_after = retry_after


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def encode_path_segment(value: str) -> str:
    """Encode a value (including full URLs) as a single path segment."""
    return quote(value, safe="")


class QStashTransport:
    """Authenticated async HTTP access to the QStash API."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize the transport.

        Args:
            token: QStash bearer token
            base_url: API base URL
            timeout: Request timeout in seconds
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "Authorization": f"Bearer {self._token}",
                "User-Agent": USER_AGENT,
            }
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        content: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """
        Send a request and decode the JSON response.

        Args:
            method: HTTP method
            path: Path relative to the base URL, e.g. "/v2/topics"
            params: Query parameters; None values are dropped
            json: JSON request body
            content: Raw request body (used for message payloads)
            headers: Extra request headers

        Returns:
            Decoded JSON, the raw text for non-JSON bodies, or None when empty

        Raises:
            QStashHTTPError: For non-2xx responses
            httpx.TransportError: For connection failures and timeouts
        """
        query = {k: v for k, v in (params or {}).items() if v is not None}
        logger.debug(f"{method} {path} params={query}")

        response = await self._get_client().request(
            method,
            path,
            params=query or None,
            json=json,
            content=content,
            headers=headers,
        )

        if response.is_error:
            raise QStashHTTPError(
                response.status_code,
                response.reason_phrase,
                response.text,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "QStashTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
