"""Per-file cancellation token that aborts in-flight requests."""

import asyncio
from typing import Awaitable, Optional, Set, TypeVar

from common.logging_config import get_logger
from uploader.exceptions import UploadCancelledError

logger = get_logger(__name__)

T = TypeVar('T')


class CancellationHandle:
    """
    Cancellation token owned by one file upload.

    Awaitables run through guard() are wrapped in tasks that cancel() aborts.
    Cancelling is idempotent and only affects work registered on this handle.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self._cancelled = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def in_flight(self) -> int:
        """Number of guarded tasks still running."""
        return sum(1 for task in self._tasks if not task.done())

    def cancel(self) -> bool:
        """
        Fire the token and abort every guarded task.

        Returns:
            True if this call fired the token, False if it was already fired
        """
        if self._cancelled:
            return False
        self._cancelled = True
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        logger.debug(f"Cancelled {self.label or 'upload'}, aborted {len(pending)} in-flight request(s)")
        return True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise UploadCancelledError(f"Upload cancelled: {self.label}" if self.label else "Upload cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await an operation that this handle can abort.

        Args:
            awaitable: Coroutine or future to run

        Returns:
            Result of the awaitable

        Raises:
            UploadCancelledError: If the handle fired before or during the operation
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            # A cancel of the calling task surfaces here; a fired handle only cancels task.
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._tasks.discard(task)

        if task.cancelled() and self._cancelled:
            self.raise_if_cancelled()
        return task.result()

    async def sleep(self, delay: float) -> None:
        """asyncio.sleep that ends early with UploadCancelledError when the handle fires."""
        await self.guard(asyncio.sleep(delay))


def ensure_handle(token: Optional[CancellationHandle]) -> CancellationHandle:
    """Return token, or a fresh handle that is never fired."""
    return token if token is not None else CancellationHandle()
