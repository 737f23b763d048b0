"""Opt-in retry helpers for callers that need resilience.

The client itself never retries: every failure reaches the caller. These
helpers implement the usual caller-side policies on top of it.
"""

import asyncio
import logging
import random
from contextlib import aclosing
from typing import (
    TYPE_CHECKING,
    AsyncIterator,
    Awaitable,
    Callable,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

import httpx

from etcdv2.errors import (
    EventIndexClearedError,
    RaftError,
    RetryExhaustedError,
    WatcherClearedError,
)
from etcdv2.types import EtcdResponse, RetryConfig

if TYPE_CHECKING:
    from etcdv2.client import EtcdClient

T = TypeVar("T")

logger = logging.getLogger("etcdv2.retry")


class RetryPolicy:
    """Implements retry logic with exponential backoff and jitter."""

    # Errors that are retryable
    RETRYABLE_ERRORS: Tuple[Type[Exception], ...] = (
        httpx.TransportError,
        RaftError,
        WatcherClearedError,
    )

    def __init__(self, config: Optional[RetryConfig] = None):
        """Initialize the retry policy.

        Args:
            config: Retry configuration; defaults to RetryConfig()
        """
        self._config = config or RetryConfig()

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "operation",
    ) -> T:
        """Execute an operation with retry logic.

        Args:
            operation: Async function to execute
            operation_name: Name of the operation for error messages

        Returns:
            The result of the operation

        Raises:
            RetryExhaustedError: If all retry attempts are exhausted
            Exception: The original error if it is not retryable
        """
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                attempt += 1
                if not self.is_retryable(e):
                    raise
                if attempt >= self._config.max_attempts:
                    raise RetryExhaustedError(
                        f"{operation_name} failed after {attempt} attempts",
                        attempts=attempt,
                        last_error=e,
                    ) from e

                delay = self.calculate_backoff(attempt)
                logger.warning(
                    "etcd_retry",
                    extra={
                        "event": {"category": ["etcd"], "action": "retry"},
                        "etcd": {"operation": operation_name, "attempt": attempt},
                        "error": {"message": str(e), "type": type(e).__name__},
                    },
                )
                await asyncio.sleep(delay)

    def is_retryable(self, error: Exception) -> bool:
        """Check if an error is retryable.

        Redirect loops are transport errors but will not resolve by retrying.
        """
        if isinstance(error, httpx.TooManyRedirects):
            return False
        return isinstance(error, self.RETRYABLE_ERRORS)

    def calculate_backoff(self, attempt: int) -> float:
        """Calculate backoff delay with exponential backoff and jitter.

        Args:
            attempt: The attempt number (1-indexed)

        Returns:
            Delay in seconds
        """
        base_delay = self._config.initial_delay_ms / 1000.0
        delay = base_delay * (self._config.backoff_multiplier ** (attempt - 1))

        # Cap at max delay
        max_delay = self._config.max_delay_ms / 1000.0
        delay = min(delay, max_delay)

        if self._config.jitter:
            delay *= 0.5 + random.random()

        return delay


async def resilient_watch(
    client: "EtcdClient",
    key: str,
    wait_index: Optional[int] = None,
    recursive: bool = False,
    quorum: bool = False,
    policy: Optional[RetryPolicy] = None,
) -> AsyncIterator[EtcdResponse]:
    """Watch a key, re-establishing the watch after recoverable failures.

    After a retryable failure the watch resumes, with backoff, right after
    the last change delivered. When the requested index has been compacted
    away it resumes from the current cluster index; the compacted changes
    are lost and a warning is logged. A cleared index that does not move
    the watch forward counts as a failed attempt. Other errors propagate.

    Args:
        client: EtcdClient to watch with
        key: The key to watch
        wait_index: First index to report; None starts from now
        recursive: Also report changes below a directory
        quorum: Require quorum reads
        policy: Retry policy; defaults to one built from the client config

    Raises:
        RetryExhaustedError: After max_attempts consecutive retryable failures
    """
    retry_policy = policy or RetryPolicy(client.config.retry)

    attempt = 0

    async def back_off(error: Exception) -> None:
        nonlocal attempt
        attempt += 1
        if attempt >= retry_policy.max_attempts:
            raise RetryExhaustedError(
                f"watch of {key} failed after {attempt} attempts",
                attempts=attempt,
                last_error=error,
            ) from error
        logger.warning(
            "etcd_watch_retry",
            extra={
                "event": {"category": ["etcd"], "action": "watch_retry"},
                "etcd": {"key": key, "wait_index": wait_index, "attempt": attempt},
                "error": {"message": str(error), "type": type(error).__name__},
            },
        )
        await asyncio.sleep(retry_policy.calculate_backoff(attempt))

    while True:
        try:
            async with aclosing(
                client.watch(key, wait_index, recursive=recursive, quorum=quorum)
            ) as stream:
                async for response in stream:
                    attempt = 0
                    wait_index = response.node.modified_index + 1
                    yield response
        except EventIndexClearedError as e:
            resume_index = e.index + 1
            if wait_index is not None and resume_index <= wait_index:
                # The reported index does not move the watch forward
                await back_off(e)
                continue
            logger.warning(
                "etcd_watch_history_cleared",
                extra={
                    "event": {"category": ["etcd"], "action": "watch_resumed"},
                    "etcd": {
                        "key": key,
                        "requested_index": wait_index,
                        "resume_index": resume_index,
                    },
                },
            )
            wait_index = resume_index
        except Exception as e:
            if not retry_policy.is_retryable(e):
                raise
            await back_off(e)
