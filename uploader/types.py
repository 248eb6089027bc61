"""Upload data type definitions (ChunkDescriptor, ChunkState, FileUploadState, snapshots)."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class ChunkStatus(str, Enum):
    """Lifecycle of a single chunk within one upload attempt."""
    WAITING = "waiting"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class UploadPhase(str, Enum):
    """Lifecycle of a file upload."""
    PENDING = "pending"
    HASHING = "hashing"
    CHECKING = "checking"
    UPLOADING = "uploading"
    MERGING = "merging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadPhase.SUCCEEDED, UploadPhase.FAILED, UploadPhase.CANCELLED)

    @property
    def is_active(self) -> bool:
        return self in (
            UploadPhase.HASHING,
            UploadPhase.CHECKING,
            UploadPhase.UPLOADING,
            UploadPhase.MERGING,
        )


@dataclass(frozen=True)
class ChunkDescriptor:
    """
    Byte range of one chunk, half-open: [byte_start, byte_end).
    """
    index: int
    byte_start: int
    byte_end: int

    @property
    def size(self) -> int:
        return self.byte_end - self.byte_start


@dataclass
class ChunkState:
    """
    Mutable upload state of one chunk. Only the scheduler writes to it.
    """
    index: int
    byte_start: int
    byte_end: int
    status: ChunkStatus = ChunkStatus.WAITING
    retry_count: int = 0
    progress_percent: float = 0.0
    uploaded_bytes: int = 0

    @classmethod
    def from_descriptor(cls, descriptor: ChunkDescriptor) -> 'ChunkState':
        return cls(
            index=descriptor.index,
            byte_start=descriptor.byte_start,
            byte_end=descriptor.byte_end,
        )

    @property
    def size(self) -> int:
        return self.byte_end - self.byte_start

    def mark_succeeded(self) -> None:
        self.status = ChunkStatus.SUCCEEDED
        self.progress_percent = 100.0

    def reset_progress(self) -> None:
        self.progress_percent = 0.0
        self.uploaded_bytes = 0


@dataclass(frozen=True)
class ChunkSnapshot:
    """Read-only copy of a ChunkState."""
    index: int
    byte_start: int
    byte_end: int
    status: ChunkStatus
    retry_count: int
    progress_percent: float


@dataclass(frozen=True)
class FileUploadSnapshot:
    """
    Read-only view of a file upload, published to observers on every change.

    Attributes:
        file_id: Client-assigned file id
        name: File name
        size: File size in bytes
        fingerprint: Content hash, empty until computed
        phase: Current UploadPhase
        overall_progress: Unweighted mean of chunk percentages (0-100)
        uploaded_bytes: Bytes sent during the current attempt
        speed: Bytes per second over the current attempt
        error: Human-readable failure message, if any
        url: Location reported by the store once the file is complete
        instant: True when the store already held the whole file
        chunks: Per-chunk snapshots in index order
    """
    file_id: str
    name: str
    size: int
    fingerprint: str
    phase: UploadPhase
    overall_progress: float
    uploaded_bytes: int
    speed: float
    error: Optional[str]
    url: Optional[str]
    instant: bool
    chunks: Tuple[ChunkSnapshot, ...]


@dataclass
class FileUploadState:
    """
    Mutable state of one admitted file, owned by its orchestrator.

    Survives across attempts so a retry keeps the fingerprint and the
    chunks that already succeeded.
    """
    file_id: str
    name: str
    size: int
    fingerprint: str = ""
    chunks: List[ChunkState] = field(default_factory=list)
    overall_progress: float = 0.0
    phase: UploadPhase = UploadPhase.PENDING
    error: Optional[str] = None
    uploaded_bytes: int = 0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    url: Optional[str] = None
    instant: bool = False

    def recompute_progress(self) -> None:
        """Recompute overall_progress and uploaded_bytes from the chunk list."""
        if not self.chunks:
            self.overall_progress = 0.0
            self.uploaded_bytes = 0
            return
        self.overall_progress = sum(c.progress_percent for c in self.chunks) / len(self.chunks)
        self.uploaded_bytes = sum(c.uploaded_bytes for c in self.chunks)

    def speed(self, now: Optional[float] = None) -> float:
        """Bytes per second sent during the current attempt."""
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else (now or time.monotonic())
        elapsed = end - self.started_at
        if elapsed <= 0:
            return 0.0
        return self.uploaded_bytes / elapsed

    def snapshot(self) -> FileUploadSnapshot:
        return FileUploadSnapshot(
            file_id=self.file_id,
            name=self.name,
            size=self.size,
            fingerprint=self.fingerprint,
            phase=self.phase,
            overall_progress=self.overall_progress,
            uploaded_bytes=self.uploaded_bytes,
            speed=self.speed(),
            error=self.error,
            url=self.url,
            instant=self.instant,
            chunks=tuple(
                ChunkSnapshot(
                    index=c.index,
                    byte_start=c.byte_start,
                    byte_end=c.byte_end,
                    status=c.status,
                    retry_count=c.retry_count,
                    progress_percent=c.progress_percent,
                )
                for c in self.chunks
            ),
        )
