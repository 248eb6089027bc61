"""Bounded-concurrency chunk uploads for a single file."""

import asyncio
from typing import AbstractSet, Callable, List, Optional

from common.logging_config import get_logger
from uploader.cancellation import CancellationHandle
from uploader.exceptions import (
    ChunkUploadFailedError,
    RetryExhaustedError,
    UploadCancelledError,
)
from uploader.files import UploadFile
from uploader.retry import RetryPolicy
from uploader.store_client import RemoteStoreClient
from uploader.types import ChunkState, ChunkStatus, FileUploadState

logger = get_logger(__name__)


class ChunkUploadScheduler:
    """
    Drives the pending chunks of one file through the store.

    A fixed pool of at most max_concurrent_chunks workers takes chunks in index
    order; completion order is unspecified. After the first terminal chunk
    failure no further chunks are started, but uploads already in flight are
    allowed to finish.
    """

    def __init__(
        self,
        store: RemoteStoreClient,
        retry_policy: RetryPolicy,
        max_concurrent_chunks: int
    ):
        if max_concurrent_chunks < 1:
            raise ValueError("max_concurrent_chunks must be at least 1")
        self.store = store
        self.retry_policy = retry_policy
        self.max_concurrent_chunks = max_concurrent_chunks

    async def run(
        self,
        file: UploadFile,
        state: FileUploadState,
        received_chunk_indexes: AbstractSet[int],
        token: CancellationHandle,
        on_change: Optional[Callable[[], None]] = None
    ) -> None:
        """
        Upload every chunk of state.chunks the store does not already hold.

        Args:
            file: Upload source
            state: File state; its chunk list must already be planned
            received_chunk_indexes: Chunk indexes the store reported as received
            token: File's cancellation handle
            on_change: Called after every chunk or progress update

        Raises:
            ChunkUploadFailedError: If a chunk exhausted its retries
            UploadCancelledError: If the token fired
        """
        notify = on_change or (lambda: None)

        for chunk in state.chunks:
            if chunk.index in received_chunk_indexes or chunk.status == ChunkStatus.SUCCEEDED:
                chunk.mark_succeeded()
        state.recompute_progress()
        notify()

        pending = [c for c in state.chunks if c.status != ChunkStatus.SUCCEEDED]
        skipped = len(state.chunks) - len(pending)
        if skipped:
            logger.info(f"{file.name}: {skipped}/{len(state.chunks)} chunk(s) already on the store")

        if not pending:
            return

        if len(state.chunks) == 1:
            await self._upload_chunk(file, state, pending[0], token, notify)
            return

        await self._run_pool(file, state, pending, token, notify)

    async def _run_pool(
        self,
        file: UploadFile,
        state: FileUploadState,
        pending: List[ChunkState],
        token: CancellationHandle,
        notify: Callable[[], None]
    ) -> None:
        queue: asyncio.Queue = asyncio.Queue()
        for chunk in pending:
            queue.put_nowait(chunk)

        failures: List[ChunkUploadFailedError] = []

        async def worker() -> None:
            while not failures and not token.cancelled:
                try:
                    chunk = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    await self._upload_chunk(file, state, chunk, token, notify)
                except ChunkUploadFailedError as e:
                    failures.append(e)
                    return

        pool_size = min(self.max_concurrent_chunks, len(pending))
        logger.debug(f"{file.name}: uploading {len(pending)} chunk(s) with {pool_size} worker(s)")

        workers = [asyncio.create_task(worker()) for _ in range(pool_size)]
        results = await asyncio.gather(*workers, return_exceptions=True)

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            if isinstance(error, UploadCancelledError):
                raise error
        if errors:
            raise errors[0]
        if failures:
            raise failures[0]
        token.raise_if_cancelled()

    async def _upload_chunk(
        self,
        file: UploadFile,
        state: FileUploadState,
        chunk: ChunkState,
        token: CancellationHandle,
        notify: Callable[[], None]
    ) -> None:
        total_chunks = len(state.chunks)
        loop = asyncio.get_running_loop()

        try:
            data = await token.guard(
                loop.run_in_executor(None, file.read, chunk.byte_start, chunk.size)
            )
        except OSError as e:
            chunk.status = ChunkStatus.FAILED
            notify()
            raise ChunkUploadFailedError(chunk.index, chunk.retry_count, e) from e

        def on_progress(sent: int, total: int) -> None:
            chunk.status = ChunkStatus.UPLOADING
            chunk.uploaded_bytes = sent
            chunk.progress_percent = 100.0 if total == 0 else sent * 100.0 / total
            state.recompute_progress()
            notify()

        def on_retry(retry_number: int, error: Exception) -> None:
            chunk.retry_count += 1
            chunk.reset_progress()
            state.recompute_progress()
            notify()

        async def attempt() -> None:
            chunk.status = ChunkStatus.UPLOADING
            await self.store.upload_chunk(
                state.fingerprint,
                file.name,
                chunk.index,
                total_chunks,
                data,
                on_progress,
                token,
            )

        try:
            await self.retry_policy.run(attempt, token, on_retry)
        except RetryExhaustedError as e:
            chunk.status = ChunkStatus.FAILED
            state.recompute_progress()
            notify()
            logger.error(
                f"{file.name}: chunk {chunk.index} failed after {chunk.retry_count} retries: {e.last_error}"
            )
            raise ChunkUploadFailedError(chunk.index, chunk.retry_count, e.last_error) from e
        except UploadCancelledError:
            chunk.status = ChunkStatus.WAITING
            chunk.reset_progress()
            state.recompute_progress()
            raise

        chunk.mark_succeeded()
        chunk.uploaded_bytes = chunk.size
        state.recompute_progress()
        notify()
        logger.debug(f"{file.name}: chunk {chunk.index + 1}/{total_chunks} done")
