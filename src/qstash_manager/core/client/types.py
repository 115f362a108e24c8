"""QStash entity types and operation results."""

from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from ...config.models import TokenSource

T = TypeVar('T')


class OperationResult(BaseModel, Generic[T]):
    """Uniform result of a remote operation. Never raised."""

    success: bool = Field(description="Whether the operation succeeded")
    data: Optional[T] = Field(default=None, description="The operation result data")
    error: Optional[str] = Field(default=None, description="User-facing error message if it failed")

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "OperationResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, data: Optional[T] = None) -> "OperationResult[T]":
        return cls(success=False, data=data, error=error)


class TokenInfo(BaseModel):
    """Information about the token a client is bound to."""
    source: TokenSource = TokenSource.CLI
    environment_id: Optional[str] = None
    is_valid: Optional[bool] = None


# URL groups

class UrlGroupEndpoint(BaseModel):
    """An endpoint within a URL group."""
    url: str
    name: Optional[str] = None


class UrlGroup(BaseModel):
    """A URL group (topic) containing multiple endpoints."""
    name: str
    endpoints: List[UrlGroupEndpoint] = Field(default_factory=list)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


# Schedules

class Schedule(BaseModel):
    """A cron schedule that publishes to a destination."""
    schedule_id: str
    cron: str
    destination: str
    method: Optional[str] = None
    body: Optional[str] = None
    headers: Optional[Dict[str, Any]] = None
    is_paused: bool = False
    retries: Optional[int] = None
    callback: Optional[str] = None
    failure_callback: Optional[str] = None
    delay: Optional[int] = None
    created_at: Optional[int] = None


class CreateScheduleOptions(BaseModel):
    """Options for creating a schedule."""
    destination: str
    cron: str
    method: Optional[str] = None
    body: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    retries: Optional[int] = None
    callback: Optional[str] = None
    failure_callback: Optional[str] = None
    delay: Optional[int] = Field(default=None, description="Delay in seconds")


# Queues

class Queue(BaseModel):
    """A FIFO queue with bounded parallelism."""
    name: str
    parallelism: int = 1
    is_paused: bool = False
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    lag: Optional[int] = None


class UpsertQueueOptions(BaseModel):
    """Options for creating or updating a queue."""
    name: str
    parallelism: int = 1


# Messages

class MessageState(Enum):
    """Delivery states reported by the events API."""
    CREATED = "CREATED"
    ACTIVE = "ACTIVE"
    RETRY = "RETRY"
    ERROR = "ERROR"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    CANCEL_REQUESTED = "CANCEL_REQUESTED"
    CANCELLED = "CANCELLED"
    IN_PROGRESS = "IN_PROGRESS"


class PublishMessageOptions(BaseModel):
    """Options for publishing a message to a URL or URL group."""
    destination: str
    body: Optional[str] = None
    method: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    content_type: Optional[str] = None
    delay: Optional[int] = Field(default=None, description="Delay in seconds")
    retries: Optional[int] = None
    callback: Optional[str] = None
    failure_callback: Optional[str] = None
    deduplication_id: Optional[str] = None
    content_based_deduplication: Optional[bool] = None


class EnqueueMessageOptions(PublishMessageOptions):
    """Options for enqueuing a message onto a queue."""
    queue_name: str


class PublishResult(BaseModel):
    """Result of publishing or enqueuing a message."""
    message_id: str
    url: Optional[str] = None
    deduplicated: Optional[bool] = None


class Message(BaseModel):
    """Tracked state of a message."""
    message_id: str
    url: str = ""
    state: Optional[MessageState] = None
    method: str = "POST"
    body: Optional[str] = None
    headers: Optional[Dict[str, Any]] = None
    created_at: Optional[int] = None
    queue_name: Optional[str] = None
    schedule_id: Optional[str] = None


# Dead letter queue

class DlqMessage(BaseModel):
    """A message that exhausted its delivery retries."""
    dlq_id: str
    message_id: str
    url: str = ""
    method: Optional[str] = None
    body: Optional[str] = None
    headers: Optional[Dict[str, Any]] = None
    response_status: Optional[int] = None
    response_body: Optional[str] = None
    response_headers: Optional[Dict[str, Any]] = None
    created_at: Optional[int] = None
    retry_count: int = 0
    queue_name: Optional[str] = None
    url_group: Optional[str] = None
    schedule_id: Optional[str] = None


class DlqFilter(BaseModel):
    """Pagination for DLQ listings."""
    count: Optional[int] = None
    cursor: Optional[str] = None


class DlqResponse(BaseModel):
    """A page of DLQ messages."""
    messages: List[DlqMessage] = Field(default_factory=list)
    cursor: Optional[str] = None


# Logs

class LogFilter(BaseModel):
    """Filters for the events (logs) API."""
    state: Optional[MessageState] = None
    url_group: Optional[str] = None
    queue_name: Optional[str] = None
    schedule_id: Optional[str] = None
    message_id: Optional[str] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    count: Optional[int] = None
    cursor: Optional[str] = None


class LogEntry(BaseModel):
    """A single delivery event."""
    message_id: str
    url: str = ""
    time: Optional[int] = None
    state: Optional[MessageState] = None
    response_status: Optional[int] = None
    response_body: Optional[str] = None
    queue_name: Optional[str] = None
    url_group: Optional[str] = None
    schedule_id: Optional[str] = None


class LogResponse(BaseModel):
    """A page of delivery events."""
    logs: List[LogEntry] = Field(default_factory=list)
    cursor: Optional[str] = None


# Signing keys

class SigningKeys(BaseModel):
    """Current and next request-signing keys."""
    current: str
    next: str
