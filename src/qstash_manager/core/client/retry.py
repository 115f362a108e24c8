"""
Exponential backoff retry system for the QStash API client.

Delays grow deterministically: each retry waits the current delay, then
the delay is multiplied by the backoff multiplier and capped at the
maximum. There is no jitter, so a given configuration always produces the
same delay sequence.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from dataclasses import dataclass
import logging

from .errors import classify_error

logger = logging.getLogger(__name__)

T = TypeVar('T')

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2.0
    enabled: bool = True

    @classmethod
    def disabled(cls) -> "RetryConfig":
        """A policy that makes exactly one attempt."""
        return cls(enabled=False)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1 if self.enabled else 1


class RetryStats:
    """Statistics about retry attempts."""

    def __init__(self):
        self.total_attempts = 0
        self.failed_attempts = 0
        self.delays_ms: List[int] = []
        self.error_counts: Dict[str, int] = {}
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def record_attempt(self, error: Optional[BaseException] = None):
        """Record an attempt and its failure, if any."""
        if self.start_time is None:
            self.start_time = time.monotonic()

        self.total_attempts += 1
        if error is not None:
            self.failed_attempts += 1
            error_type = type(error).__name__
            self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1
        self.end_time = time.monotonic()

    def record_delay(self, delay_ms: int):
        """Record delay time."""
        self.delays_ms.append(delay_ms)

    @property
    def total_delay_ms(self) -> int:
        return sum(self.delays_ms)

    @property
    def total_duration_ms(self) -> float:
        """Get total duration in milliseconds."""
        if self.start_time is not None and self.end_time is not None:
            return (self.end_time - self.start_time) * 1000
        return 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "total_attempts": self.total_attempts,
            "failed_attempts": self.failed_attempts,
            "delays_ms": list(self.delays_ms),
            "total_delay_ms": self.total_delay_ms,
            "total_duration_ms": self.total_duration_ms,
            "error_counts": self.error_counts.copy(),
        }


class RetryManager:
    """Runs async operations under the configured retry policy."""

    def __init__(self, config: Optional[RetryConfig] = None, sleep: Optional[SleepFunc] = None):
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self.last_stats: Optional[RetryStats] = None

    async def retry(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Run a function, retrying transient failures with exponential backoff.

        Args:
            func: Async function to run

        Returns:
            Result of the function call

        Raises:
            The original exception when it is not retryable or the retry
            budget is exhausted
        """
        stats = RetryStats()
        self.last_stats = stats
        current_delay = self.config.initial_delay_ms
        max_attempts = self.config.max_attempts

        for attempt in range(max_attempts):
            try:
                result = await func()
                stats.record_attempt()

                if attempt > 0:
                    logger.info(f"Succeeded after {attempt + 1} attempts. Stats: {stats.to_dict()}")

                return result

            except Exception as e:
                stats.record_attempt(e)
                classified = classify_error(e, "retry-check")

                logger.warning(
                    f"Attempt {attempt + 1}/{max_attempts} failed: {classified}",
                    extra={"error_kind": classified.kind.value, "attempt": attempt + 1}
                )

                if not classified.is_retryable:
                    logger.debug(f"Not retrying non-retryable {classified.kind.value} error")
                    raise

                if attempt >= max_attempts - 1:
                    logger.error(f"All {max_attempts} attempts failed. Final stats: {stats.to_dict()}")
                    raise

                stats.record_delay(current_delay)
                logger.info(f"Waiting {current_delay}ms before retry {attempt + 2}")
                await self._sleep(current_delay / 1000.0)

                current_delay = self._next_delay(current_delay)

        # range() always runs at least once and every path above returns or raises
        raise RuntimeError("retry loop exited without a result")

    def _next_delay(self, current_delay: int) -> int:
        """Update delay for next iteration."""
        return min(
            int(current_delay * self.config.backoff_multiplier),
            self.config.max_delay_ms
        )


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    sleep: Optional[SleepFunc] = None
) -> T:
    """
    Convenience function for retrying with exponential backoff.

    Args:
        func: Async function to retry
        config: Retry configuration
        sleep: Awaitable sleep function (seconds)

    Returns:
        Result of the function call
    """
    manager = RetryManager(config, sleep=sleep)
    return await manager.retry(func)
