"""Bounded retry with delay for a single unit of upload work."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from common.logging_config import get_logger
from uploader.cancellation import CancellationHandle
from uploader.config import UploadSettings
from uploader.exceptions import RetryExhaustedError, UploadCancelledError, UploadError

logger = get_logger(__name__)

T = TypeVar('T')

RetryCallback = Callable[[int, Exception], None]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry an async operation on UploadError, never on cancellation.

    The delay before retry n (1-based) is base_delay * backoff_multiplier ** (n - 1);
    a multiplier of 1 gives a fixed delay.
    """
    max_attempts: int
    base_delay: float
    backoff_multiplier: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay cannot be negative")

    @classmethod
    def from_settings(cls, settings: UploadSettings) -> 'RetryPolicy':
        """One initial attempt plus max_retry_count retries."""
        return cls(
            max_attempts=settings.max_retry_count + 1,
            base_delay=settings.retry_delay,
            backoff_multiplier=settings.retry_backoff_multiplier,
        )

    def delay_for(self, retry_number: int) -> float:
        return self.base_delay * (self.backoff_multiplier ** (retry_number - 1))

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        token: Optional[CancellationHandle] = None,
        on_retry: Optional[RetryCallback] = None
    ) -> T:
        """
        Await operation() until it succeeds or attempts run out.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            token: Cancellation handle; the delay between attempts is cancellable
            on_retry: Called with (retry_number, error) before each retry

        Returns:
            Result of the first successful attempt

        Raises:
            UploadCancelledError: Immediately, without further attempts
            RetryExhaustedError: After max_attempts failures
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            if token is not None:
                token.raise_if_cancelled()
            try:
                return await operation()
            except UploadCancelledError:
                raise
            except UploadError as e:
                last_error = e

            if attempt == self.max_attempts:
                break

            delay = self.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt}/{self.max_attempts} failed: {last_error}, retrying in {delay}s"
            )
            if on_retry is not None:
                on_retry(attempt, last_error)

            if token is not None:
                await token.sleep(delay)
            else:
                await asyncio.sleep(delay)

        raise RetryExhaustedError(self.max_attempts, last_error)
