"""Tests for the HTTP transport and the typed QStash client."""

import json
from typing import Callable, List
from unittest.mock import AsyncMock

import httpx
import pytest

from qstash_manager import USER_AGENT
from qstash_manager.config import TokenResolutionResult, TokenSource
from qstash_manager.core.client import (
    QStashClient,
    QStashHTTPError,
    QStashTransport,
    RetryConfig,
    create_client_from_resolution,
    validate_qstash_token,
)
from qstash_manager.core.client.transport import encode_path_segment
from qstash_manager.core.client.types import (
    CreateScheduleOptions,
    DlqFilter,
    EnqueueMessageOptions,
    LogFilter,
    MessageState,
    PublishMessageOptions,
    UpsertQueueOptions,
    UrlGroupEndpoint,
)

TOKEN = "test-token-0123456789abcdef"
BASE_URL = "https://qstash.example.test"

Handler = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """Records requests and answers them from a handler."""

    def __init__(self, handler: Handler):
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def make_client(handler: Handler, retry: RetryConfig = None, sleep=None):
    recorder = Recorder(handler)
    client = QStashClient(
        TOKEN,
        base_url=BASE_URL,
        retry=retry or RetryConfig.disabled(),
        http_transport=httpx.MockTransport(recorder),
        sleep=sleep or AsyncMock(),
    )
    return client, recorder


def body_of(request: httpx.Request):
    return json.loads(request.content) if request.content else None


class TestTransport:
    """QStashTransport request and error handling."""

    @pytest.mark.asyncio
    async def test_sends_auth_and_user_agent(self) -> None:
        recorder = Recorder(lambda request: httpx.Response(200, json=[]))
        async with QStashTransport(TOKEN, BASE_URL, transport=httpx.MockTransport(recorder)) as transport:
            await transport.request("GET", "/v2/topics")

        assert recorder.last.headers["Authorization"] == f"Bearer {TOKEN}"
        assert recorder.last.headers["User-Agent"] == USER_AGENT
        assert str(recorder.last.url) == f"{BASE_URL}/v2/topics"

    @pytest.mark.asyncio
    async def test_none_params_are_dropped(self) -> None:
        recorder = Recorder(lambda request: httpx.Response(200, json={}))
        transport = QStashTransport(TOKEN, BASE_URL, transport=httpx.MockTransport(recorder))

        await transport.request("GET", "/v2/dlq", params={"count": 10, "cursor": None})
        await transport.aclose()

        assert dict(recorder.last.url.params) == {"count": "10"}

    @pytest.mark.asyncio
    async def test_error_response_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, text="slow down", headers={"Retry-After": "7"})

        transport = QStashTransport(TOKEN, BASE_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(QStashHTTPError) as exc_info:
            await transport.request("GET", "/v2/queues")
        await transport.aclose()

        error = exc_info.value
        assert error.status_code == 429
        assert error.retry_after == 7
        assert str(error) == "429 Too Many Requests: slow down"

    @pytest.mark.asyncio
    async def test_empty_and_text_bodies(self) -> None:
        responses = iter([httpx.Response(200), httpx.Response(200, text="OK")])
        transport = QStashTransport(
            TOKEN, BASE_URL, transport=httpx.MockTransport(lambda request: next(responses))
        )

        assert await transport.request("DELETE", "/v2/queues/a") is None
        assert await transport.request("DELETE", "/v2/queues/b") == "OK"
        await transport.aclose()

    def test_encode_path_segment(self) -> None:
        assert encode_path_segment("https://example.com/a?b=c") == "https%3A%2F%2Fexample.com%2Fa%3Fb%3Dc"
        assert encode_path_segment("my group") == "my%20group"


class TestUrlGroups:
    """URL group operations."""

    @pytest.mark.asyncio
    async def test_list(self) -> None:
        payload = [{
            "name": "orders",
            "createdAt": 1700000000000,
            "updatedAt": 1700000001000,
            "endpoints": [{"url": "https://a.example.com", "name": "a"}, {"url": "https://b.example.com"}],
        }]
        client, recorder = make_client(lambda request: httpx.Response(200, json=payload))

        result = await client.list_url_groups()

        assert result.success
        group = result.data[0]
        assert group.name == "orders"
        assert [e.url for e in group.endpoints] == ["https://a.example.com", "https://b.example.com"]
        assert group.endpoints[1].name is None
        assert recorder.last.method == "GET"
        assert recorder.last.url.path == "/v2/topics"

    @pytest.mark.asyncio
    async def test_upsert_endpoints(self) -> None:
        client, recorder = make_client(lambda request: httpx.Response(200))

        result = await client.upsert_url_group_endpoints(
            "orders", [UrlGroupEndpoint(url="https://a.example.com", name="a")]
        )

        assert result.success
        assert recorder.last.method == "POST"
        assert recorder.last.url.path == "/v2/topics/orders/endpoints"
        assert body_of(recorder.last) == {"endpoints": [{"url": "https://a.example.com", "name": "a"}]}

    @pytest.mark.asyncio
    async def test_get_missing_group(self) -> None:
        client, _ = make_client(lambda request: httpx.Response(404, text="topic not found"))

        result = await client.get_url_group("orders")

        assert not result.success
        assert "URL group 'orders'" in result.error

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        client, recorder = make_client(lambda request: httpx.Response(200))

        assert (await client.delete_url_group("orders")).success
        assert recorder.last.method == "DELETE"
        assert recorder.last.url.path == "/v2/topics/orders"


class TestSchedules:
    """Schedule operations."""

    @pytest.mark.asyncio
    async def test_create(self) -> None:
        client, recorder = make_client(lambda request: httpx.Response(200, json={"scheduleId": "scd_1"}))

        result = await client.create_schedule(CreateScheduleOptions(
            destination="https://example.com/hook",
            cron="*/5 * * * *",
            body='{"hello": "world"}',
            retries=2,
        ))

        assert result.data == "scd_1"
        request = recorder.last
        assert request.method == "POST"
        assert request.url.raw_path.decode().startswith("/v2/schedules/https://example.com/hook")
        assert request.headers["Upstash-Cron"] == "*/5 * * * *"
        assert request.headers["Upstash-Retries"] == "2"
        assert request.content == b'{"hello": "world"}'

    @pytest.mark.asyncio
    async def test_list(self) -> None:
        payload = [{
            "scheduleId": "scd_1",
            "cron": "0 * * * *",
            "destination": "https://example.com",
            "isPaused": True,
        }]
        client, _ = make_client(lambda request: httpx.Response(200, json=payload))

        schedule = (await client.list_schedules()).data[0]

        assert schedule.schedule_id == "scd_1"
        assert schedule.is_paused is True

    @pytest.mark.asyncio
    async def test_get(self) -> None:
        payload = {
            "scheduleId": "scd_1",
            "cron": "0 9 * * 1",
            "destination": "https://example.com/weekly",
            "method": "PUT",
            "retries": 1,
        }
        client, recorder = make_client(lambda request: httpx.Response(200, json=payload))

        result = await client.get_schedule("scd_1")

        assert result.success
        assert result.data.cron == "0 9 * * 1"
        assert result.data.method == "PUT"
        assert result.data.is_paused is False
        assert recorder.last.url.path == "/v2/schedules/scd_1"

    @pytest.mark.asyncio
    async def test_get_missing(self) -> None:
        client, _ = make_client(lambda request: httpx.Response(404, text="schedule not found"))

        result = await client.get_schedule("scd_missing")

        assert not result.success
        assert result.data is None

    @pytest.mark.asyncio
    async def test_pause_and_resume(self) -> None:
        client, recorder = make_client(lambda request: httpx.Response(200))

        await client.pause_schedule("scd_1")
        await client.resume_schedule("scd_1")

        assert [(r.method, r.url.path) for r in recorder.requests] == [
            ("PATCH", "/v2/schedules/scd_1/pause"),
            ("PATCH", "/v2/schedules/scd_1/resume"),
        ]


class TestQueues:
    """Queue operations."""

    @pytest.mark.asyncio
    async def test_upsert(self) -> None:
        client, recorder = make_client(lambda request: httpx.Response(200))

        result = await client.upsert_queue(UpsertQueueOptions(name="orders", parallelism=5))

        assert result.success
        assert recorder.last.url.path == "/v2/queues/"
        assert body_of(recorder.last) == {"queueName": "orders", "parallelism": 5}

    @pytest.mark.asyncio
    async def test_get(self) -> None:
        payload = {"name": "orders", "parallelism": 3, "paused": True, "lag": 12}
        client, _ = make_client(lambda request: httpx.Response(200, json=payload))

        queue = (await client.get_queue("orders")).data

        assert queue.parallelism == 3
        assert queue.is_paused is True
        assert queue.lag == 12


class TestMessages:
    """Publishing and tracking messages."""

    @pytest.mark.asyncio
    async def test_publish_headers(self) -> None:
        client, recorder = make_client(lambda request: httpx.Response(200, json={"messageId": "msg_1"}))

        result = await client.publish_message(PublishMessageOptions(
            destination="https://example.com/hook",
            body="hi",
            method="put",
            delay=30,
            headers={"X-Trace": "abc"},
            deduplication_id="dedupe-1",
        ))

        assert result.data.message_id == "msg_1"
        headers = recorder.last.headers
        assert headers["Upstash-Method"] == "PUT"
        assert headers["Upstash-Delay"] == "30s"
        assert headers["Upstash-Forward-X-Trace"] == "abc"
        assert headers["Upstash-Deduplication-Id"] == "dedupe-1"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_publish_to_group_takes_first_result(self) -> None:
        payload = [{"messageId": "msg_1", "url": "https://a"}, {"messageId": "msg_2", "url": "https://b"}]
        client, _ = make_client(lambda request: httpx.Response(200, json=payload))

        result = await client.publish_message(PublishMessageOptions(destination="orders"))

        assert result.data.message_id == "msg_1"

    @pytest.mark.asyncio
    async def test_enqueue(self) -> None:
        client, recorder = make_client(lambda request: httpx.Response(200, json={"messageId": "msg_1"}))

        await client.enqueue_message(EnqueueMessageOptions(
            queue_name="orders", destination="https://example.com/hook", body="{}"
        ))

        assert recorder.last.url.raw_path.decode().startswith("/v2/enqueue/orders/https://example.com/hook")

    @pytest.mark.asyncio
    async def test_get_message(self) -> None:
        payload = {"events": [{
            "messageId": "msg_1",
            "url": "https://example.com",
            "state": "DELIVERED",
            "time": 1700000000000,
            "header": {"Upstash-Method": ["PUT"]},
        }]}
        client, recorder = make_client(lambda request: httpx.Response(200, json=payload))

        message = (await client.get_message("msg_1")).data

        assert message.state == MessageState.DELIVERED
        assert message.method == "PUT"
        assert recorder.last.url.params["messageId"] == "msg_1"

    @pytest.mark.asyncio
    async def test_get_unknown_message(self) -> None:
        client, _ = make_client(lambda request: httpx.Response(200, json={"events": []}))

        result = await client.get_message("msg_404")

        assert not result.success
        assert "message 'msg_404'" in result.error

    @pytest.mark.asyncio
    async def test_unknown_state_is_tolerated(self) -> None:
        payload = {"events": [{"messageId": "msg_1", "state": "SOMETHING_NEW"}]}
        client, _ = make_client(lambda request: httpx.Response(200, json=payload))

        result = await client.get_message("msg_1")

        assert result.success
        assert result.data.state is None


class TestDeadLetterQueue:
    """DLQ operations."""

    DLQ_MESSAGE = {
        "dlqId": "dlq_1",
        "messageId": "msg_1",
        "url": "https://example.com/hook",
        "method": "POST",
        "body": "payload",
        "responseStatus": 500,
        "maxRetries": 3,
    }

    @pytest.mark.asyncio
    async def test_list_with_cursor(self) -> None:
        payload = {"messages": [self.DLQ_MESSAGE], "cursor": "next"}
        client, recorder = make_client(lambda request: httpx.Response(200, json=payload))

        response = (await client.list_dlq_messages(DlqFilter(count=5))).data

        assert response.cursor == "next"
        assert response.messages[0].response_status == 500
        assert response.messages[0].retry_count == 3
        assert dict(recorder.last.url.params) == {"count": "5"}

    @pytest.mark.asyncio
    async def test_retry_republishes_then_deletes(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json=self.DLQ_MESSAGE)
            if request.method == "POST":
                return httpx.Response(200, json={"messageId": "msg_2"})
            return httpx.Response(200)

        client, recorder = make_client(handler)

        result = await client.retry_dlq_message("dlq_1")

        assert result.success
        assert result.data.message_id == "msg_2"
        assert [r.method for r in recorder.requests] == ["GET", "POST", "DELETE"]
        assert recorder.requests[1].content == b"payload"
        assert recorder.requests[2].url.path == "/v2/dlq/dlq_1"

    @pytest.mark.asyncio
    async def test_retry_stops_when_publish_fails(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json=self.DLQ_MESSAGE)
            return httpx.Response(400, text="invalid destination")

        client, recorder = make_client(handler)

        result = await client.retry_dlq_message("dlq_1")

        assert not result.success
        assert [r.method for r in recorder.requests] == ["GET", "POST"]

    @pytest.mark.asyncio
    async def test_retry_keeps_publish_result_when_delete_fails(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, json=self.DLQ_MESSAGE)
            if request.method == "POST":
                return httpx.Response(200, json={"messageId": "msg_2"})
            return httpx.Response(400, text="invalid dlq id")

        client, recorder = make_client(handler)

        result = await client.retry_dlq_message("dlq_1")

        assert not result.success
        assert result.error
        assert result.data.message_id == "msg_2"
        assert [r.method for r in recorder.requests] == ["GET", "POST", "DELETE"]

    @pytest.mark.asyncio
    async def test_bulk_delete(self) -> None:
        client, recorder = make_client(lambda request: httpx.Response(200, json={"deleted": 2}))

        result = await client.delete_dlq_messages(["dlq_1", "dlq_2"])

        assert result.data == 2
        assert body_of(recorder.last) == {"dlqIds": ["dlq_1", "dlq_2"]}


class TestLogsAndKeys:
    """Logs and signing keys."""

    @pytest.mark.asyncio
    async def test_logs_filter(self) -> None:
        payload = {"events": [{"messageId": "msg_1", "url": "https://a", "state": "ERROR"}]}
        client, recorder = make_client(lambda request: httpx.Response(200, json=payload))

        response = (await client.get_logs(LogFilter(state=MessageState.ERROR, queue_name="orders"))).data

        assert response.logs[0].state == MessageState.ERROR
        assert response.cursor is None
        assert dict(recorder.last.url.params) == {"state": "ERROR", "queueName": "orders"}

    @pytest.mark.asyncio
    async def test_rotate_signing_keys(self) -> None:
        client, recorder = make_client(
            lambda request: httpx.Response(200, json={"current": "sig_next", "next": "sig_new"})
        )

        keys = (await client.rotate_signing_keys()).data

        assert keys.current == "sig_next"
        assert keys.next == "sig_new"
        assert (recorder.last.method, recorder.last.url.path) == ("POST", "/v2/keys/rotate")


class TestRetriesAndValidation:
    """Retry integration and token validation."""

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self) -> None:
        responses = iter([httpx.Response(503), httpx.Response(502), httpx.Response(200, json=[])])
        sleep = AsyncMock()
        client, recorder = make_client(lambda request: next(responses), retry=RetryConfig(), sleep=sleep)

        result = await client.list_queues()

        assert result.success
        assert len(recorder.requests) == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        sleep = AsyncMock()
        client, recorder = make_client(handler, retry=RetryConfig(), sleep=sleep)

        result = await client.list_schedules()

        assert not result.success
        assert "Network error" in result.error
        assert len(recorder.requests) == 4

    @pytest.mark.asyncio
    async def test_unauthorized_is_not_retried(self) -> None:
        sleep = AsyncMock()
        client, recorder = make_client(lambda request: httpx.Response(401), retry=RetryConfig(), sleep=sleep)

        result = await client.list_url_groups()

        assert not result.success
        assert "Authentication failed" in result.error
        assert len(recorder.requests) == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_validate_token(self) -> None:
        client, _ = make_client(lambda request: httpx.Response(401))

        result = await client.validate_token()

        assert result.success is False
        assert result.data is False
        assert client.get_token_info().is_valid is False

    @pytest.mark.asyncio
    async def test_validate_qstash_token(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))

        result = await validate_qstash_token(TOKEN, base_url=BASE_URL, http_transport=transport)

        assert result.success
        assert result.data is True

    def test_client_from_resolution(self) -> None:
        resolution = TokenResolutionResult(token=TOKEN, source=TokenSource.CONFIG, environment_id="prod")

        client = create_client_from_resolution(resolution, base_url=BASE_URL)

        info = client.get_token_info()
        assert info.source == TokenSource.CONFIG
        assert info.environment_id == "prod"
        assert client.transport.base_url == BASE_URL
