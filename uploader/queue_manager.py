"""Multi-file upload queue with bounded concurrent files."""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Literal, Optional, Union

from common.logging_config import get_logger
from uploader.config import UploadSettings
from uploader.exceptions import FileTooLargeError
from uploader.files import UploadFile, describe
from uploader.hasher import ContentHasher
from uploader.orchestrator import FileUploadOrchestrator
from uploader.store_client import RemoteStoreClient
from uploader.types import FileUploadSnapshot, FileUploadState, UploadPhase

logger = get_logger(__name__)


@dataclass(frozen=True)
class EnqueueCommand:
    """Add a file to the back of the queue."""

    file: UploadFile
    command: Literal["enqueue"] = "enqueue"


@dataclass(frozen=True)
class CancelFileCommand:
    """Cancel one queued or active file."""

    file_id: str
    command: Literal["cancel"] = "cancel"


@dataclass(frozen=True)
class CancelAllCommand:
    """Cancel every queued and active file."""

    command: Literal["cancel-all"] = "cancel-all"


@dataclass(frozen=True)
class RetryFileCommand:
    """Re-queue a failed or cancelled file, keeping its fingerprint and chunks."""

    file_id: str
    command: Literal["retry"] = "retry"


@dataclass(frozen=True)
class FileFinishedCommand:
    """Posted by a file task when its attempt ends."""

    file_id: str
    command: Literal["finished"] = "finished"


QueueCommand = Union[
    EnqueueCommand,
    CancelFileCommand,
    CancelAllCommand,
    RetryFileCommand,
    FileFinishedCommand,
]


class UploadQueueManager:
    """
    Accepts files and uploads at most max_concurrent_files of them at once.

    All mutation happens inside a single command loop: enqueue, cancel and
    retry only post commands, so the queue, the active set and the aggregate
    counters have exactly one owner. Admission is FIFO; any terminal outcome
    frees the slot for the next queued file.

    Usage:
        async with UploadQueueManager(store, settings) as manager:
            manager.enqueue(LocalFile.from_path("video.mp4"))
            await manager.join()
    """

    def __init__(
        self,
        store: RemoteStoreClient,
        settings: Optional[UploadSettings] = None,
        on_change: Optional[Callable[[FileUploadSnapshot], None]] = None
    ):
        """
        Initialize queue manager.

        Args:
            store: Remote store client shared by all files
            settings: Upload tunables (defaults if None)
            on_change: Receives every file snapshot as it changes
        """
        self.store = store
        self.settings = settings or UploadSettings()
        self.hasher = ContentHasher(self.settings.hash_window_bytes, self.settings.hash_algorithm)
        self._on_change = on_change

        self._files: Dict[str, UploadFile] = {}
        self._states: Dict[str, FileUploadState] = {}
        self._queue: Deque[str] = deque()
        self._active: Dict[str, FileUploadOrchestrator] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._completed_bytes = 0

        self._commands: asyncio.Queue = asyncio.Queue()
        self._idle = asyncio.Event()
        self._idle.set()
        self._loop_task: Optional[asyncio.Task] = None
        self._closing = False

    async def __aenter__(self) -> 'UploadQueueManager':
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def start(self) -> None:
        """Start the command loop on the running event loop."""
        if self._loop_task is None or self._loop_task.done():
            self._closing = False
            self._loop_task = asyncio.create_task(self._command_loop())
            logger.info(
                f"Upload queue started [max_files={self.settings.max_concurrent_files}, "
                f"max_chunks_per_file={self.settings.max_concurrent_chunks_per_file}]"
            )

    async def close(self) -> None:
        """Cancel every upload and stop the command loop."""
        self._closing = True
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        while self._queue:
            state = self._states[self._queue.popleft()]
            state.phase = UploadPhase.CANCELLED
            self._publish(state)

        for orchestrator in self._active.values():
            orchestrator.cancel()
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        for file_id in self._active:
            self._completed_bytes += self._states[file_id].uploaded_bytes
        self._active.clear()
        self._tasks.clear()
        self._idle.set()
        logger.info("Upload queue closed")

    async def join(self) -> None:
        """Wait until no command, queued file or active file remains."""
        await self._idle.wait()

    def enqueue(self, file: UploadFile) -> None:
        """
        Queue a file for upload.

        Args:
            file: Upload source

        Raises:
            FileTooLargeError: If the file exceeds max_file_size_bytes; it is not queued
        """
        if file.size > self.settings.max_file_size_bytes:
            logger.warning(f"Rejected {describe(file)}: larger than {self.settings.max_file_size_bytes} bytes")
            raise FileTooLargeError(file.name, file.size, self.settings.max_file_size_bytes)
        self._post(EnqueueCommand(file=file))

    def cancel_file(self, file_id: str) -> None:
        self._post(CancelFileCommand(file_id=file_id))

    def cancel_all(self) -> None:
        self._post(CancelAllCommand())

    def retry_file(self, file_id: str) -> None:
        self._post(RetryFileCommand(file_id=file_id))

    def snapshot(self, file_id: str) -> Optional[FileUploadSnapshot]:
        state = self._states.get(file_id)
        return state.snapshot() if state is not None else None

    def snapshots(self) -> List[FileUploadSnapshot]:
        """Snapshots of every known file in enqueue order."""
        return [state.snapshot() for state in self._states.values()]

    @property
    def active_file_count(self) -> int:
        return len(self._active)

    @property
    def queued_file_count(self) -> int:
        return len(self._queue)

    @property
    def total_bytes_uploaded(self) -> int:
        """Bytes sent across every finished attempt plus the attempts in progress."""
        return self._completed_bytes + sum(
            self._states[file_id].uploaded_bytes for file_id in self._active
        )

    @property
    def speed(self) -> float:
        """Combined bytes per second of the active files."""
        return sum(self._states[file_id].speed() for file_id in self._active)

    def _post(self, command: QueueCommand) -> None:
        if self._closing:
            return
        self._idle.clear()
        self._commands.put_nowait(command)

    def _publish(self, state: FileUploadState) -> None:
        self._notify(state.snapshot())

    def _notify(self, snapshot: FileUploadSnapshot) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(snapshot)
        except Exception as e:
            logger.error(f"Observer failed on {snapshot.name} ({snapshot.phase.value}): {e}", exc_info=True)

    async def _command_loop(self) -> None:
        while True:
            command = await self._commands.get()
            try:
                self._handle(command)
            except Exception as e:
                logger.error(f"Failed to handle {command.command} command: {e}", exc_info=True)
            try:
                self._admit()
            except Exception as e:
                logger.error(f"Failed to admit queued files: {e}", exc_info=True)

            if self._commands.empty() and not self._queue and not self._active:
                self._idle.set()

    def _handle(self, command: QueueCommand) -> None:
        if isinstance(command, EnqueueCommand):
            self._handle_enqueue(command.file)
        elif isinstance(command, CancelFileCommand):
            self._handle_cancel(command.file_id)
        elif isinstance(command, CancelAllCommand):
            for file_id in list(self._queue) + list(self._active):
                self._handle_cancel(file_id)
        elif isinstance(command, RetryFileCommand):
            self._handle_retry(command.file_id)
        elif isinstance(command, FileFinishedCommand):
            self._handle_finished(command.file_id)

    def _handle_enqueue(self, file: UploadFile) -> None:
        if file.id in self._active or file.id in self._queue:
            logger.warning(f"Ignoring duplicate enqueue of {describe(file)}")
            return

        self._files[file.id] = file
        state = self._states.get(file.id)
        if state is None or state.phase == UploadPhase.SUCCEEDED:
            state = FileUploadState(file_id=file.id, name=file.name, size=file.size)
            self._states[file.id] = state
        state.phase = UploadPhase.PENDING
        state.error = None
        self._queue.append(file.id)
        logger.info(f"Queued {describe(file)} [queued={len(self._queue)}]")
        self._publish(state)

    def _handle_cancel(self, file_id: str) -> None:
        if file_id in self._queue:
            self._queue.remove(file_id)
            state = self._states[file_id]
            state.phase = UploadPhase.CANCELLED
            logger.info(f"Cancelled queued file {state.name}")
            self._publish(state)
        elif file_id in self._active:
            self._active[file_id].cancel()

    def _handle_retry(self, file_id: str) -> None:
        state = self._states.get(file_id)
        if state is None:
            logger.warning(f"Cannot retry unknown file {file_id}")
            return
        if state.phase not in (UploadPhase.FAILED, UploadPhase.CANCELLED):
            logger.warning(f"Cannot retry {state.name} in phase {state.phase.value}")
            return

        state.phase = UploadPhase.PENDING
        state.error = None
        self._queue.append(file_id)
        logger.info(f"Re-queued {state.name} [hash={state.fingerprint or 'pending'}]")
        self._publish(state)

    def _handle_finished(self, file_id: str) -> None:
        self._active.pop(file_id, None)
        task = self._tasks.pop(file_id, None)
        state = self._states[file_id]
        self._completed_bytes += state.uploaded_bytes

        if task is not None and not task.cancelled() and task.exception() is not None:
            logger.error(f"Upload task for {state.name} crashed: {task.exception()}")
        if state.phase == UploadPhase.SUCCEEDED:
            self._files.pop(file_id, None)

        logger.info(
            f"{state.name} finished: {state.phase.value} "
            f"[active={len(self._active)}, queued={len(self._queue)}]"
        )

    def _admit(self) -> None:
        if self._closing:
            return
        while len(self._active) < self.settings.max_concurrent_files:
            # A file re-queued before its previous task reported back waits for that report.
            file_id = next((fid for fid in self._queue if fid not in self._active), None)
            if file_id is None:
                return
            self._queue.remove(file_id)
            orchestrator = FileUploadOrchestrator(
                self._files[file_id],
                self.store,
                settings=self.settings,
                state=self._states[file_id],
                hasher=self.hasher,
                on_change=self._notify,
            )
            self._active[file_id] = orchestrator
            task = asyncio.create_task(orchestrator.run())
            task.add_done_callback(lambda _, file_id=file_id: self._post(FileFinishedCommand(file_id=file_id)))
            self._tasks[file_id] = task
