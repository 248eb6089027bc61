"""Per-file upload state machine: hash, check, upload chunks, merge."""

import asyncio
import time
from typing import Callable, Optional

from common.logging_config import get_logger
from uploader.cancellation import CancellationHandle
from uploader.chunk_planner import plan_chunks
from uploader.config import UploadSettings
from uploader.exceptions import MergeFailedError, UploadCancelledError, UploadError
from uploader.files import UploadFile, describe
from uploader.hasher import ContentHasher
from uploader.retry import RetryPolicy
from uploader.scheduler import ChunkUploadScheduler
from uploader.store_client import RemoteStoreClient
from uploader.types import (
    ChunkState,
    ChunkStatus,
    FileUploadSnapshot,
    FileUploadState,
    UploadPhase,
)

logger = get_logger(__name__)

SnapshotCallback = Callable[[FileUploadSnapshot], None]


class FileUploadOrchestrator:
    """
    Runs one upload attempt for one file.

    Phases: pending -> hashing -> checking -> uploading -> merging -> succeeded,
    with the instant-upload shortcut checking -> succeeded when the store already
    holds the whole file. Any phase may end in failed or cancelled.

    The FileUploadState passed in survives the attempt. Running a new
    orchestrator over the state of a failed attempt skips hashing and only
    uploads chunks that are neither succeeded locally nor held by the store.
    """

    def __init__(
        self,
        file: UploadFile,
        store: RemoteStoreClient,
        settings: Optional[UploadSettings] = None,
        state: Optional[FileUploadState] = None,
        hasher: Optional[ContentHasher] = None,
        on_change: Optional[SnapshotCallback] = None
    ):
        """
        Initialize orchestrator.

        Args:
            file: Upload source
            store: Remote store client shared by every file
            settings: Upload tunables (defaults if None)
            state: State from an earlier attempt to resume from
            hasher: Content hasher (built from settings if None)
            on_change: Receives a snapshot after every state change
        """
        self.file = file
        self.store = store
        self.settings = settings or UploadSettings()
        self.state = state or FileUploadState(file_id=file.id, name=file.name, size=file.size)
        self.hasher = hasher or ContentHasher(
            self.settings.hash_window_bytes,
            self.settings.hash_algorithm
        )
        self.scheduler = ChunkUploadScheduler(
            store,
            RetryPolicy.from_settings(self.settings),
            self.settings.max_concurrent_chunks_per_file
        )
        self.token = CancellationHandle(label=file.name)
        self._on_change = on_change

    def cancel(self) -> None:
        """Cancel this attempt. Safe to call repeatedly and after completion."""
        if self.state.phase.is_terminal:
            return
        if self.token.cancel():
            logger.info(f"Cancelling upload of {describe(self.file)} during {self.state.phase.value}")

    def snapshot(self) -> FileUploadSnapshot:
        return self.state.snapshot()

    def _publish(self) -> None:
        if self._on_change is not None:
            self._on_change(self.state.snapshot())

    def _transition(self, phase: UploadPhase) -> None:
        logger.debug(f"{self.file.name}: {self.state.phase.value} -> {phase.value}")
        self.state.phase = phase
        self._publish()

    def _finish(self, phase: UploadPhase, error: Optional[str] = None) -> None:
        self.state.error = error
        self.state.finished_at = time.monotonic()
        self._transition(phase)

    def _begin_attempt(self) -> None:
        state = self.state
        if state.phase.is_active:
            raise RuntimeError(f"Upload of {self.file.name} is already running")
        state.phase = UploadPhase.PENDING
        state.error = None
        state.url = None
        state.instant = False
        state.started_at = time.monotonic()
        state.finished_at = None
        for chunk in state.chunks:
            chunk.uploaded_bytes = 0
        state.recompute_progress()

    def _prepare_chunks(self) -> None:
        """Plan chunks, keeping succeeded chunks of an earlier attempt with the same layout."""
        state = self.state
        descriptors = plan_chunks(state.size, self.settings.chunk_size_bytes)

        same_layout = len(state.chunks) == len(descriptors) and all(
            c.byte_start == d.byte_start and c.byte_end == d.byte_end
            for c, d in zip(state.chunks, descriptors)
        )
        if not same_layout:
            state.chunks = [ChunkState.from_descriptor(d) for d in descriptors]
        else:
            for chunk in state.chunks:
                chunk.retry_count = 0
                if chunk.status != ChunkStatus.SUCCEEDED:
                    chunk.status = ChunkStatus.WAITING
                    chunk.reset_progress()
        state.recompute_progress()

    async def run(self) -> FileUploadSnapshot:
        """
        Run the attempt to a terminal phase.

        Upload errors never escape; they end the attempt in the failed phase
        with a readable error message.

        Returns:
            Final snapshot (succeeded, failed or cancelled)
        """
        self._begin_attempt()
        state = self.state
        token = self.token

        logger.info(f"Starting upload of {describe(self.file)}")

        try:
            token.raise_if_cancelled()

            if not state.fingerprint:
                self._transition(UploadPhase.HASHING)
                state.fingerprint = await self.hasher.hash(self.file, token)

            self._transition(UploadPhase.CHECKING)
            check = await self.store.check(state.fingerprint, self.file.name, state.size, token)

            if check.already_complete:
                for chunk in state.chunks:
                    chunk.mark_succeeded()
                state.overall_progress = 100.0
                state.instant = True
                state.url = check.url
                self._finish(UploadPhase.SUCCEEDED)
                logger.info(f"{self.file.name} already on the store, skipped upload [hash={state.fingerprint}]")
                return state.snapshot()

            self._prepare_chunks()
            self._transition(UploadPhase.UPLOADING)
            await self.scheduler.run(
                self.file,
                state,
                check.received_chunk_indexes,
                token,
                self._publish
            )

            self._transition(UploadPhase.MERGING)
            try:
                result = await self.store.merge(
                    state.fingerprint,
                    self.file.name,
                    state.size,
                    len(state.chunks),
                    token
                )
            except UploadCancelledError:
                raise
            except UploadError as e:
                raise MergeFailedError(f"Merge failed: {e}") from e

            state.url = result.url
            self._finish(UploadPhase.SUCCEEDED)
            logger.info(
                f"Uploaded {self.file.name} in {len(state.chunks)} chunk(s) [hash={state.fingerprint}]"
            )

        except UploadCancelledError:
            self._finish(UploadPhase.CANCELLED)
            logger.info(f"Upload of {self.file.name} cancelled")
        except asyncio.CancelledError:
            self._finish(UploadPhase.CANCELLED)
            raise
        except UploadError as e:
            logger.error(f"Upload of {self.file.name} failed during {state.phase.value}: {e}")
            self._finish(UploadPhase.FAILED, str(e))
        except Exception as e:
            logger.error(f"Unexpected error uploading {self.file.name}: {e}", exc_info=True)
            self._finish(UploadPhase.FAILED, f"Unexpected error: {e}")

        return state.snapshot()
