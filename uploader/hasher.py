"""Computes the content fingerprint of an upload source."""

import asyncio
import hashlib
from typing import Optional

from common.constants import DEFAULT_HASH_ALGORITHM, DEFAULT_HASH_WINDOW_BYTES
from common.logging_config import get_logger
from uploader.cancellation import CancellationHandle
from uploader.exceptions import HashFailedError
from uploader.files import UploadFile, describe

logger = get_logger(__name__)


class IncrementalHasher:
    """
    Calculate a digest incrementally for streamed data.

    Usage:
        hasher = IncrementalHasher()
        hasher.update(window1)
        hasher.update(window2)
        fingerprint = hasher.finalize()
    """

    def __init__(self, algorithm: str = DEFAULT_HASH_ALGORITHM):
        self.algorithm = algorithm
        self._hasher = hashlib.new(algorithm)
        self._finalized = False

    def update(self, data: bytes) -> None:
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)

    def finalize(self) -> str:
        self._finalized = True
        return self._hasher.hexdigest()


class ContentHasher:
    """
    Streams a file in fixed windows through an incremental hash.

    The window size is independent of the upload chunk size. Hashing always
    restarts from the first byte; there is no mid-file resume.
    """

    def __init__(
        self,
        window_bytes: int = DEFAULT_HASH_WINDOW_BYTES,
        algorithm: str = DEFAULT_HASH_ALGORITHM
    ):
        """
        Args:
            window_bytes: Bytes read per step
            algorithm: Any hashlib algorithm name

        Raises:
            ValueError: If window_bytes is not positive or the algorithm is unknown
        """
        if window_bytes <= 0:
            raise ValueError("window_bytes must be positive")
        hashlib.new(algorithm)
        self.window_bytes = window_bytes
        self.algorithm = algorithm

    def hash_bytes(self, data: bytes) -> str:
        """Fingerprint of in-memory content."""
        hasher = IncrementalHasher(self.algorithm)
        hasher.update(data)
        return hasher.finalize()

    async def hash(self, file: UploadFile, token: Optional[CancellationHandle] = None) -> str:
        """
        Compute the fingerprint of a file.

        Args:
            file: Upload source
            token: Optional cancellation handle checked between windows

        Returns:
            Hex digest of the whole content

        Raises:
            HashFailedError: If any window cannot be read
            UploadCancelledError: If the token fires while hashing
        """
        loop = asyncio.get_running_loop()
        hasher = IncrementalHasher(self.algorithm)
        offset = 0

        logger.debug(f"Hashing {describe(file)} with {self.algorithm}")

        while offset < file.size:
            if token is not None:
                token.raise_if_cancelled()

            length = min(self.window_bytes, file.size - offset)
            try:
                window = await loop.run_in_executor(None, file.read, offset, length)
            except OSError as e:
                logger.error(f"Hash read failed for {describe(file)} at offset {offset}: {e}")
                raise HashFailedError(f"Could not read {file.name} at offset {offset}: {e}") from e

            if len(window) != length:
                raise HashFailedError(
                    f"Could not read {file.name}: expected {length} bytes at offset {offset}, got {len(window)}"
                )

            hasher.update(window)
            offset += length

        if token is not None:
            token.raise_if_cancelled()

        fingerprint = hasher.finalize()
        logger.debug(f"Hashed {describe(file)} -> {fingerprint}")
        return fingerprint
