"""
Remote operation executor for the QStash API client.

The executor is the single boundary where raised failures become
OperationResult values: it runs an operation under the retry policy and
classifies whatever is left over once retries are exhausted.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import QStashError, classify_error
from .retry import RetryConfig, RetryManager, SleepFunc
from .types import OperationResult

logger = logging.getLogger(__name__)

T = TypeVar('T')


def build_error_context(
    context: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None
) -> str:
    """Attach resource information to an operation description."""
    if resource_type and resource_id:
        return f"{context} ({resource_type}: {resource_id})"
    return context


class OperationExecutor:
    """Runs remote operations with retry and converts outcomes to results."""

    def __init__(self, retry_config: Optional[RetryConfig] = None, sleep: Optional[SleepFunc] = None):
        self.retry_manager = RetryManager(retry_config or RetryConfig(), sleep=sleep)
        self.last_error: Optional[QStashError] = None

    @property
    def retry_config(self) -> RetryConfig:
        return self.retry_manager.config

    async def execute(
        self,
        context: str,
        operation: Callable[[], Awaitable[T]],
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None
    ) -> OperationResult[T]:
        """
        Execute an operation with error handling and retry.

        Args:
            context: Description of the operation, used in error messages
            operation: Async callable performing the remote call
            resource_type: Kind of resource targeted, for error messages
            resource_id: Identifier of the resource targeted

        Returns:
            OperationResult with data on success or a user-facing error
        """
        try:
            data = await self.retry_manager.retry(operation)
        except Exception as e:
            full_context = build_error_context(context, resource_type, resource_id)
            classified = classify_error(
                e,
                full_context,
                resource_type=resource_type,
                resource_id=resource_id,
            )
            self.last_error = classified
            logger.debug(f"{full_context} failed: {classified.kind.value}", exc_info=e)
            return OperationResult(success=False, error=classified.user_message)

        self.last_error = None
        return OperationResult(success=True, data=data)
