"""Custom exception classes for the upload client."""

from typing import Optional


class UploadError(Exception):
    """
    Base exception class for all upload-related errors.
    """
    pass


class HashFailedError(UploadError):
    """
    Raised when the file content cannot be read while computing its fingerprint.
    """
    pass


class NetworkError(UploadError):
    """
    Raised when the remote store cannot be reached or the connection drops.
    """
    pass


class ServerError(UploadError):
    """
    Raised when the remote store answers with a non-success status.
    """

    def __init__(self, status: int, message: str):
        super().__init__(f"{message} (HTTP {status})")
        self.status = status
        self.message = message


class UploadCancelledError(UploadError):
    """
    Raised when the owning file's cancellation handle has fired.
    """
    pass


class ChunkUploadFailedError(UploadError):
    """
    Raised when a chunk still fails after every retry attempt.
    """

    def __init__(self, chunk_index: int, retry_count: int, cause: Optional[Exception] = None):
        message = f"Chunk {chunk_index} failed after {retry_count} retries"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.chunk_index = chunk_index
        self.retry_count = retry_count
        self.cause = cause


class MergeFailedError(UploadError):
    """
    Raised when the remote store refuses or fails to assemble the chunks.
    """
    pass


class FileTooLargeError(UploadError):
    """
    Raised when a file exceeds the configured size limit and is refused admission.
    """

    def __init__(self, name: str, size: int, limit: int):
        super().__init__(f"File {name} is {size} bytes, limit is {limit} bytes")
        self.name = name
        self.size = size
        self.limit = limit


class RetryExhaustedError(UploadError):
    """
    Raised by RetryPolicy when every attempt has failed.
    """

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
