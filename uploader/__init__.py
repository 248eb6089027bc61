"""Resumable, chunked, content-addressed upload client."""

from uploader.cancellation import CancellationHandle
from uploader.chunk_planner import chunk_count, plan_chunks
from uploader.config import Config, UploadSettings
from uploader.exceptions import (
    ChunkUploadFailedError,
    FileTooLargeError,
    HashFailedError,
    MergeFailedError,
    NetworkError,
    RetryExhaustedError,
    ServerError,
    UploadCancelledError,
    UploadError,
)
from uploader.files import BytesFile, LocalFile, UploadFile
from uploader.hasher import ContentHasher
from uploader.orchestrator import FileUploadOrchestrator
from uploader.queue_manager import UploadQueueManager
from uploader.retry import RetryPolicy
from uploader.scheduler import ChunkUploadScheduler
from uploader.store_client import CheckResult, MergeResult, RemoteStoreClient
from uploader.types import (
    ChunkDescriptor,
    ChunkSnapshot,
    ChunkState,
    ChunkStatus,
    FileUploadSnapshot,
    FileUploadState,
    UploadPhase,
)

__all__ = [
    "BytesFile",
    "CancellationHandle",
    "CheckResult",
    "ChunkDescriptor",
    "ChunkSnapshot",
    "ChunkState",
    "ChunkStatus",
    "ChunkUploadFailedError",
    "ChunkUploadScheduler",
    "Config",
    "ContentHasher",
    "FileTooLargeError",
    "FileUploadOrchestrator",
    "FileUploadSnapshot",
    "FileUploadState",
    "HashFailedError",
    "LocalFile",
    "MergeFailedError",
    "MergeResult",
    "NetworkError",
    "RemoteStoreClient",
    "RetryExhaustedError",
    "RetryPolicy",
    "ServerError",
    "UploadCancelledError",
    "UploadError",
    "UploadFile",
    "UploadPhase",
    "UploadQueueManager",
    "UploadSettings",
    "chunk_count",
    "plan_chunks",
]
