"""
Typed QStash API client for QStash Manager.

Every public method returns an OperationResult: failures are retried by
the operation executor and reported as user-facing messages, never raised.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ...config.models import TokenResolutionResult, TokenSource
from .errors import classify_error
from .executor import OperationExecutor
from .retry import RetryConfig, SleepFunc
from .transport import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    QStashTransport,
    encode_path_segment,
)
from .types import (
    CreateScheduleOptions,
    DlqFilter,
    DlqMessage,
    DlqResponse,
    EnqueueMessageOptions,
    LogEntry,
    LogFilter,
    LogResponse,
    Message,
    MessageState,
    OperationResult,
    PublishMessageOptions,
    PublishResult,
    Queue,
    Schedule,
    SigningKeys,
    TokenInfo,
    UpsertQueueOptions,
    UrlGroup,
    UrlGroupEndpoint,
)

logger = logging.getLogger(__name__)


def _parse_state(value: Any) -> Optional[MessageState]:
    try:
        return MessageState(value)
    except ValueError:
        return None


def _to_url_group(raw: Dict[str, Any]) -> UrlGroup:
    return UrlGroup(
        name=raw["name"],
        endpoints=[
            UrlGroupEndpoint(url=e["url"], name=e.get("name") or None)
            for e in raw.get("endpoints") or []
        ],
        created_at=raw.get("createdAt"),
        updated_at=raw.get("updatedAt"),
    )


def _to_schedule(raw: Dict[str, Any]) -> Schedule:
    return Schedule(
        schedule_id=raw["scheduleId"],
        cron=raw["cron"],
        destination=raw["destination"],
        method=raw.get("method"),
        body=raw.get("body"),
        headers=raw.get("header"),
        is_paused=bool(raw.get("isPaused", False)),
        retries=raw.get("retries"),
        callback=raw.get("callback"),
        failure_callback=raw.get("failureCallback"),
        delay=raw.get("delay"),
        created_at=raw.get("createdAt"),
    )


def _to_queue(raw: Dict[str, Any]) -> Queue:
    return Queue(
        name=raw["name"],
        parallelism=raw.get("parallelism", 1),
        is_paused=bool(raw.get("paused", False)),
        created_at=raw.get("createdAt"),
        updated_at=raw.get("updatedAt"),
        lag=raw.get("lag"),
    )


def _to_publish_result(raw: Any) -> PublishResult:
    # URL group destinations answer with one result per endpoint
    if isinstance(raw, list):
        raw = raw[0] if raw else {}
    return PublishResult(
        message_id=raw.get("messageId", ""),
        url=raw.get("url"),
        deduplicated=raw.get("deduplicated"),
    )


def _to_dlq_message(raw: Dict[str, Any]) -> DlqMessage:
    return DlqMessage(
        dlq_id=raw["dlqId"],
        message_id=raw.get("messageId", ""),
        url=raw.get("url") or "",
        method=raw.get("method"),
        body=raw.get("body"),
        headers=raw.get("header"),
        response_status=raw.get("responseStatus"),
        response_body=raw.get("responseBody"),
        response_headers=raw.get("responseHeader"),
        created_at=raw.get("createdAt"),
        retry_count=raw.get("maxRetries") or 0,
        queue_name=raw.get("queueName"),
        url_group=raw.get("topicName"),
        schedule_id=raw.get("scheduleId"),
    )


def _to_log_entry(raw: Dict[str, Any]) -> LogEntry:
    return LogEntry(
        message_id=raw.get("messageId", ""),
        url=raw.get("url") or "",
        time=raw.get("time"),
        state=_parse_state(raw.get("state")),
        response_status=raw.get("responseStatus"),
        response_body=raw.get("responseBody"),
        queue_name=raw.get("queueName"),
        url_group=raw.get("topicName"),
        schedule_id=raw.get("scheduleId"),
    )


def _publish_headers(options: PublishMessageOptions) -> Dict[str, str]:
    """Translate publish options into Upstash-* request headers."""
    headers: Dict[str, str] = {
        "Content-Type": options.content_type or "application/json",
    }
    if options.method:
        headers["Upstash-Method"] = options.method.upper()
    if options.delay:
        headers["Upstash-Delay"] = f"{options.delay}s"
    if options.retries is not None:
        headers["Upstash-Retries"] = str(options.retries)
    if options.callback:
        headers["Upstash-Callback"] = options.callback
    if options.failure_callback:
        headers["Upstash-Failure-Callback"] = options.failure_callback
    if options.deduplication_id:
        headers["Upstash-Deduplication-Id"] = options.deduplication_id
    if options.content_based_deduplication:
        headers["Upstash-Content-Based-Deduplication"] = "true"
    for name, value in (options.headers or {}).items():
        headers[f"Upstash-Forward-{name}"] = value
    return headers


class QStashClient:
    """
    QStash API client.

    Wraps a QStashTransport with the operation executor so that every call
    is retried according to policy and returns an OperationResult.
    """

    def __init__(
        self,
        token: str,
        token_info: Optional[TokenInfo] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        retry: Optional[RetryConfig] = None,
        transport: Optional[QStashTransport] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[SleepFunc] = None
    ):
        """Initialize the client.

        Args:
            token: QStash API token
            token_info: Where the token came from
            base_url: API base URL
            timeout: Request timeout in seconds
            retry: Retry policy (defaults to 3 retries, 1s initial delay)
            transport: Pre-built QStashTransport
            http_transport: Custom httpx transport for the default QStashTransport
            sleep: Awaitable sleep used between retries
        """
        self._token = token
        self.token_info = token_info or TokenInfo()
        self.transport = transport or QStashTransport(
            token,
            base_url=base_url,
            timeout=timeout,
            transport=http_transport,
        )
        self.executor = OperationExecutor(retry, sleep=sleep)

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "QStashClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def get_token_info(self) -> TokenInfo:
        return self.token_info.model_copy()

    async def validate_token(self) -> OperationResult[bool]:
        """Validate the token by listing URL groups (no retries)."""
        try:
            await self.transport.request("GET", "/v2/topics")
        except Exception as e:
            classified = classify_error(e, "Token validation")
            self.token_info.is_valid = False
            return OperationResult(success=False, data=False, error=classified.user_message)

        self.token_info.is_valid = True
        return OperationResult(success=True, data=True)

    # URL Groups

    async def list_url_groups(self) -> OperationResult[List[UrlGroup]]:
        async def op() -> List[UrlGroup]:
            raw = await self.transport.request("GET", "/v2/topics")
            return [_to_url_group(g) for g in raw or []]

        return await self.executor.execute("Listing URL groups", op)

    async def get_url_group(self, name: str) -> OperationResult[UrlGroup]:
        async def op() -> UrlGroup:
            raw = await self.transport.request("GET", f"/v2/topics/{encode_path_segment(name)}")
            return _to_url_group(raw)

        return await self.executor.execute(
            f"Getting URL group '{name}'", op, resource_type="URL group", resource_id=name
        )

    async def upsert_url_group_endpoints(
        self,
        group_name: str,
        endpoints: List[UrlGroupEndpoint]
    ) -> OperationResult[None]:
        """Add endpoints to a URL group, creating the group if needed."""
        async def op() -> None:
            await self.transport.request(
                "POST",
                f"/v2/topics/{encode_path_segment(group_name)}/endpoints",
                json={"endpoints": [e.model_dump(exclude_none=True) for e in endpoints]},
            )

        return await self.executor.execute(f"Updating URL group '{group_name}'", op)

    async def remove_url_group_endpoints(
        self,
        group_name: str,
        endpoints: List[UrlGroupEndpoint]
    ) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request(
                "DELETE",
                f"/v2/topics/{encode_path_segment(group_name)}/endpoints",
                json={"endpoints": [e.model_dump(exclude_none=True) for e in endpoints]},
            )

        return await self.executor.execute(
            f"Removing endpoints from URL group '{group_name}'",
            op,
            resource_type="URL group",
            resource_id=group_name,
        )

    async def delete_url_group(self, name: str) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request("DELETE", f"/v2/topics/{encode_path_segment(name)}")

        return await self.executor.execute(
            f"Deleting URL group '{name}'", op, resource_type="URL group", resource_id=name
        )

    # Schedules

    async def list_schedules(self) -> OperationResult[List[Schedule]]:
        async def op() -> List[Schedule]:
            raw = await self.transport.request("GET", "/v2/schedules")
            return [_to_schedule(s) for s in raw or []]

        return await self.executor.execute("Listing schedules", op)

    async def get_schedule(self, schedule_id: str) -> OperationResult[Schedule]:
        async def op() -> Schedule:
            raw = await self.transport.request("GET", f"/v2/schedules/{encode_path_segment(schedule_id)}")
            return _to_schedule(raw)

        return await self.executor.execute(
            f"Getting schedule '{schedule_id}'", op, resource_type="schedule", resource_id=schedule_id
        )

    async def create_schedule(self, options: CreateScheduleOptions) -> OperationResult[str]:
        """Create a schedule; the result data is the new schedule id."""
        async def op() -> str:
            headers = _publish_headers(PublishMessageOptions(
                destination=options.destination,
                body=options.body,
                method=options.method,
                headers=options.headers,
                delay=options.delay,
                retries=options.retries,
                callback=options.callback,
                failure_callback=options.failure_callback,
            ))
            headers["Upstash-Cron"] = options.cron
            raw = await self.transport.request(
                "POST",
                f"/v2/schedules/{options.destination}",
                content=options.body,
                headers=headers,
            )
            return raw["scheduleId"]

        return await self.executor.execute("Creating schedule", op)

    async def pause_schedule(self, schedule_id: str) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request("PATCH", f"/v2/schedules/{encode_path_segment(schedule_id)}/pause")

        return await self.executor.execute(
            f"Pausing schedule '{schedule_id}'", op, resource_type="schedule", resource_id=schedule_id
        )

    async def resume_schedule(self, schedule_id: str) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request("PATCH", f"/v2/schedules/{encode_path_segment(schedule_id)}/resume")

        return await self.executor.execute(
            f"Resuming schedule '{schedule_id}'", op, resource_type="schedule", resource_id=schedule_id
        )

    async def delete_schedule(self, schedule_id: str) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request("DELETE", f"/v2/schedules/{encode_path_segment(schedule_id)}")

        return await self.executor.execute(
            f"Deleting schedule '{schedule_id}'", op, resource_type="schedule", resource_id=schedule_id
        )

    # Queues

    async def list_queues(self) -> OperationResult[List[Queue]]:
        async def op() -> List[Queue]:
            raw = await self.transport.request("GET", "/v2/queues")
            return [_to_queue(q) for q in raw or []]

        return await self.executor.execute("Listing queues", op)

    async def get_queue(self, name: str) -> OperationResult[Queue]:
        async def op() -> Queue:
            raw = await self.transport.request("GET", f"/v2/queues/{encode_path_segment(name)}")
            return _to_queue(raw)

        return await self.executor.execute(
            f"Getting queue '{name}'", op, resource_type="queue", resource_id=name
        )

    async def upsert_queue(self, options: UpsertQueueOptions) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request(
                "POST",
                "/v2/queues/",
                json={"queueName": options.name, "parallelism": options.parallelism},
            )

        return await self.executor.execute(f"Upserting queue '{options.name}'", op)

    async def pause_queue(self, name: str) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request("POST", f"/v2/queues/{encode_path_segment(name)}/pause")

        return await self.executor.execute(
            f"Pausing queue '{name}'", op, resource_type="queue", resource_id=name
        )

    async def resume_queue(self, name: str) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request("POST", f"/v2/queues/{encode_path_segment(name)}/resume")

        return await self.executor.execute(
            f"Resuming queue '{name}'", op, resource_type="queue", resource_id=name
        )

    async def delete_queue(self, name: str) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request("DELETE", f"/v2/queues/{encode_path_segment(name)}")

        return await self.executor.execute(
            f"Deleting queue '{name}'", op, resource_type="queue", resource_id=name
        )

    # Messages

    async def publish_message(self, options: PublishMessageOptions) -> OperationResult[PublishResult]:
        """Publish a message to a URL or URL group."""
        async def op() -> PublishResult:
            raw = await self.transport.request(
                "POST",
                f"/v2/publish/{options.destination}",
                content=options.body,
                headers=_publish_headers(options),
            )
            return _to_publish_result(raw)

        return await self.executor.execute(f"Publishing message to '{options.destination}'", op)

    async def enqueue_message(self, options: EnqueueMessageOptions) -> OperationResult[PublishResult]:
        """Enqueue a message onto a queue."""
        async def op() -> PublishResult:
            raw = await self.transport.request(
                "POST",
                f"/v2/enqueue/{encode_path_segment(options.queue_name)}/{options.destination}",
                content=options.body,
                headers=_publish_headers(options),
            )
            return _to_publish_result(raw)

        return await self.executor.execute(
            f"Enqueuing message to queue '{options.queue_name}'", op
        )

    async def get_message(self, message_id: str) -> OperationResult[Message]:
        """Track a message through its most recent delivery event."""
        async def op() -> Message:
            raw = await self.transport.request("GET", "/v2/events", params={"messageId": message_id})
            events = (raw or {}).get("events") or []
            if not events:
                raise LookupError("Message not found")

            event = events[0]
            headers = event.get("header") or {}
            method = headers.get("Upstash-Method", "POST")
            if isinstance(method, list):
                method = method[0] if method else "POST"
            return Message(
                message_id=event.get("messageId", message_id),
                url=event.get("url") or "",
                state=_parse_state(event.get("state")),
                method=method,
                body=event.get("body"),
                headers=headers or None,
                created_at=event.get("time"),
                queue_name=event.get("queueName"),
                schedule_id=event.get("scheduleId"),
            )

        return await self.executor.execute(
            f"Getting message '{message_id}'", op, resource_type="message", resource_id=message_id
        )

    async def cancel_message(self, message_id: str) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request("DELETE", f"/v2/messages/{encode_path_segment(message_id)}")

        return await self.executor.execute(
            f"Cancelling message '{message_id}'", op, resource_type="message", resource_id=message_id
        )

    # Dead Letter Queue

    async def list_dlq_messages(self, dlq_filter: Optional[DlqFilter] = None) -> OperationResult[DlqResponse]:
        async def op() -> DlqResponse:
            params = {
                "count": dlq_filter.count if dlq_filter else None,
                "cursor": dlq_filter.cursor if dlq_filter else None,
            }
            raw = await self.transport.request("GET", "/v2/dlq", params=params) or {}
            return DlqResponse(
                messages=[_to_dlq_message(m) for m in raw.get("messages") or []],
                cursor=raw.get("cursor") or None,
            )

        return await self.executor.execute("Listing DLQ messages", op)

    async def get_dlq_message(self, dlq_id: str) -> OperationResult[DlqMessage]:
        async def op() -> DlqMessage:
            raw = await self.transport.request("GET", f"/v2/dlq/{encode_path_segment(dlq_id)}")
            return _to_dlq_message(raw)

        return await self.executor.execute(
            f"Getting DLQ message '{dlq_id}'", op, resource_type="DLQ message", resource_id=dlq_id
        )

    async def delete_dlq_message(self, dlq_id: str) -> OperationResult[None]:
        async def op() -> None:
            await self.transport.request("DELETE", f"/v2/dlq/{encode_path_segment(dlq_id)}")

        return await self.executor.execute(
            f"Deleting DLQ message '{dlq_id}'", op, resource_type="DLQ message", resource_id=dlq_id
        )

    async def delete_dlq_messages(self, dlq_ids: List[str]) -> OperationResult[int]:
        """Delete several DLQ messages; the result data is the number deleted."""
        async def op() -> int:
            raw = await self.transport.request("DELETE", "/v2/dlq", json={"dlqIds": list(dlq_ids)})
            return int((raw or {}).get("deleted", 0))

        return await self.executor.execute(f"Deleting {len(dlq_ids)} DLQ messages", op)

    async def retry_dlq_message(self, dlq_id: str) -> OperationResult[PublishResult]:
        """Republish a failed message to its original URL and drop it from the DLQ."""
        fetched = await self.get_dlq_message(dlq_id)
        if not fetched.success or fetched.data is None:
            return OperationResult(success=False, error=fetched.error)

        message = fetched.data
        published = await self.publish_message(PublishMessageOptions(
            destination=message.url,
            method=message.method,
            body=message.body,
        ))
        if not published.success:
            return published

        deleted = await self.delete_dlq_message(dlq_id)
        if not deleted.success:
            logger.warning(f"Republished DLQ message '{dlq_id}' but could not remove it: {deleted.error}")
            return OperationResult(success=False, data=published.data, error=deleted.error)

        return published

    # Logs / Events

    async def get_logs(self, log_filter: Optional[LogFilter] = None) -> OperationResult[LogResponse]:
        async def op() -> LogResponse:
            f = log_filter or LogFilter()
            params = {
                "state": f.state.value if f.state else None,
                "topicName": f.url_group,
                "queueName": f.queue_name,
                "scheduleId": f.schedule_id,
                "messageId": f.message_id,
                "fromDate": f.start_time,
                "toDate": f.end_time,
                "count": f.count,
                "cursor": f.cursor,
            }
            raw = await self.transport.request("GET", "/v2/events", params=params) or {}
            return LogResponse(
                logs=[_to_log_entry(e) for e in raw.get("events") or []],
                cursor=raw.get("cursor") or None,
            )

        return await self.executor.execute("Getting logs", op)

    # Signing Keys

    async def get_signing_keys(self) -> OperationResult[SigningKeys]:
        async def op() -> SigningKeys:
            raw = await self.transport.request("GET", "/v2/keys")
            return SigningKeys(current=raw["current"], next=raw["next"])

        return await self.executor.execute("Getting signing keys", op)

    async def rotate_signing_keys(self) -> OperationResult[SigningKeys]:
        """Rotate keys: the next key becomes current and a new next key is issued."""
        async def op() -> SigningKeys:
            raw = await self.transport.request("POST", "/v2/keys/rotate")
            return SigningKeys(current=raw["current"], next=raw["next"])

        return await self.executor.execute("Rotating signing keys", op)


def create_qstash_client(
    token: str,
    token_info: Optional[TokenInfo] = None,
    **options: Any
) -> QStashClient:
    """Create a QStash client for an explicit token."""
    return QStashClient(token, token_info=token_info, **options)


def create_client_from_resolution(
    resolution: TokenResolutionResult,
    **options: Any
) -> QStashClient:
    """Create a QStash client bound to a resolved token."""
    token_info = TokenInfo(
        source=resolution.source,
        environment_id=resolution.environment_id if resolution.source == TokenSource.CONFIG else None,
    )
    return QStashClient(resolution.token, token_info=token_info, **options)


async def validate_qstash_token(token: str, **options: Any) -> OperationResult[bool]:
    """Check a token against the API."""
    async with create_qstash_client(token, **options) as client:
        return await client.validate_token()
