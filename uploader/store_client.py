"""HTTP client for the remote chunk store (check, upload, merge)."""

import io
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional

import httpx
from pydantic import ValidationError

from common.constants import (
    CHECK_ENDPOINT,
    CHUNK_INDEX_HEADER,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    FILE_HASH_HEADER,
    HEALTH_ENDPOINT,
    MERGE_ENDPOINT,
    UPLOAD_ENDPOINT,
)
from common.logging_config import get_logger
from uploader.cancellation import CancellationHandle, ensure_handle
from uploader.config import Config
from uploader.exceptions import NetworkError, ServerError
from uploader.schemas import (
    CheckRequest,
    CheckResponse,
    MergeRequest,
    MergeResponse,
    StoreErrorResponse,
    UploadChunkResponse,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class CheckResult:
    """What the store already holds for a fingerprint."""
    already_complete: bool
    received_chunk_indexes: FrozenSet[int]
    url: Optional[str] = None


@dataclass(frozen=True)
class MergeResult:
    """Outcome of a successful merge."""
    url: Optional[str] = None


class ProgressReader:
    """File-like view of a chunk that reports how much of it has been read."""

    def __init__(self, data: bytes, on_progress: Optional[ProgressCallback] = None):
        """
        Args:
            data: Chunk bytes
            on_progress: Called with (bytes_sent, total_bytes) after every read
        """
        self._buffer = io.BytesIO(data)
        self._total = len(data)
        self._on_progress = on_progress

    def read(self, size: int = -1) -> bytes:
        piece = self._buffer.read(size)
        if self._on_progress is not None and (piece or self._total == 0):
            self._on_progress(self._buffer.tell(), self._total)
        return piece

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        return self._buffer.tell()


class RemoteStoreClient:
    """
    Async client for the three store endpoints.

    Every call takes the owning file's CancellationHandle; firing it aborts the
    request and surfaces UploadCancelledError. No call retries on its own.
    """

    STATUS_MESSAGES = {
        400: 'Bad request',
        401: 'Not authenticated',
        403: 'Access forbidden',
        404: 'Not found',
        409: 'Conflict',
        413: 'Chunk too large',
        500: 'Server error',
        502: 'Bad gateway',
        503: 'Service unavailable',
        504: 'Gateway timeout',
        507: 'Insufficient storage',
    }

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize store client.

        Args:
            base_url: Store base URL (e.g., "http://localhost:3001")
            timeout: Per-request timeout in seconds
            api_key: Optional bearer credential sent on every request
            transport: Optional httpx transport (mock or ASGI transports in tests)
        """
        headers = {'Authorization': f'Bearer {api_key}'} if api_key else {}
        self.base_url = base_url
        self.session = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        logger.info(f"Initialized RemoteStoreClient [base_url={base_url}]")

    @classmethod
    def from_config(cls, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> 'RemoteStoreClient':
        return cls(
            base_url=config.get_base_url(),
            timeout=config.get_timeout(),
            api_key=config.get_api_key(),
            transport=transport,
        )

    async def __aenter__(self) -> 'RemoteStoreClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.session.aclose()

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map an error response to a readable message.

        Args:
            response: HTTP response object

        Returns:
            The store's own error text when present, else a status description
        """
        try:
            return StoreErrorResponse.model_validate(response.json()).error
        except (ValueError, ValidationError):
            pass
        return self.STATUS_MESSAGES.get(response.status_code, response.reason_phrase or 'Unknown error')

    async def _post(self, endpoint: str, token: CancellationHandle, **kwargs) -> httpx.Response:
        """
        POST to the store under the file's cancellation handle.

        Raises:
            NetworkError: On connection failures and timeouts
            ServerError: On any non-2xx status
            UploadCancelledError: If the handle fires
        """
        try:
            response = await token.guard(self.session.post(endpoint, **kwargs))
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request to {endpoint} timed out: {type(e).__name__}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Cannot reach store at {self.base_url}{endpoint}: {e}") from e

        if not response.is_success:
            message = self._format_error(response)
            logger.debug(f"POST {endpoint} failed: status={response.status_code} message={message}")
            raise ServerError(response.status_code, message)

        return response

    def _parse(self, response: httpx.Response, model):
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ServerError(response.status_code, f"Malformed response from store: {e}") from e

    async def check(
        self,
        fingerprint: str,
        filename: str,
        size: int,
        token: Optional[CancellationHandle] = None
    ) -> CheckResult:
        """
        Ask which chunks of a fingerprint the store already holds.

        Args:
            fingerprint: Content hash of the file
            filename: Original filename
            size: File size in bytes
            token: Owning file's cancellation handle

        Returns:
            CheckResult; already_complete means the merged file exists
        """
        payload = CheckRequest(hash=fingerprint, filename=filename, file_size=size)
        response = await self._post(
            CHECK_ENDPOINT,
            ensure_handle(token),
            json=payload.model_dump(by_alias=True),
        )
        body = self._parse(response, CheckResponse)
        logger.debug(
            f"Check {fingerprint}: uploaded={body.uploaded} received_chunks={len(body.uploaded_chunks)}"
        )
        return CheckResult(
            already_complete=body.uploaded,
            received_chunk_indexes=frozenset(body.uploaded_chunks),
            url=body.url,
        )

    async def upload_chunk(
        self,
        fingerprint: str,
        filename: str,
        chunk_index: int,
        total_chunks: int,
        data: bytes,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancellationHandle] = None
    ) -> None:
        """
        Send one chunk. Re-sending a chunk the store already has is harmless.

        Args:
            fingerprint: Content hash of the file
            filename: Original filename
            chunk_index: Zero-based chunk position
            total_chunks: Number of chunks in the file
            data: Chunk bytes
            on_progress: Called with (bytes_sent, total_bytes) while the body streams
            token: Owning file's cancellation handle
        """
        files = {'file': (filename, ProgressReader(data, on_progress), 'application/octet-stream')}
        form = {
            'hash': fingerprint,
            'filename': filename,
            'chunkIndex': str(chunk_index),
            'totalChunks': str(total_chunks),
        }
        headers = {
            FILE_HASH_HEADER: fingerprint,
            CHUNK_INDEX_HEADER: str(chunk_index),
        }
        response = await self._post(
            UPLOAD_ENDPOINT,
            ensure_handle(token),
            data=form,
            files=files,
            headers=headers,
        )
        self._parse(response, UploadChunkResponse)
        logger.debug(f"Uploaded chunk {chunk_index + 1}/{total_chunks} of {fingerprint} ({len(data)} bytes)")

    async def merge(
        self,
        fingerprint: str,
        filename: str,
        size: int,
        total_chunks: int,
        token: Optional[CancellationHandle] = None
    ) -> MergeResult:
        """
        Ask the store to assemble the chunks. Calling it twice is harmless.

        Args:
            fingerprint: Content hash of the file
            filename: Original filename
            size: File size in bytes
            total_chunks: Number of chunks the store must assemble
            token: Owning file's cancellation handle

        Returns:
            MergeResult with the stored file location when the store reports one
        """
        payload = MergeRequest(hash=fingerprint, filename=filename, size=size, total_chunks=total_chunks)
        response = await self._post(
            MERGE_ENDPOINT,
            ensure_handle(token),
            json=payload.model_dump(by_alias=True),
        )
        body = self._parse(response, MergeResponse)
        logger.debug(f"Merged {fingerprint} from {total_chunks} chunk(s)")
        return MergeResult(url=body.url)

    async def ping(self) -> bool:
        """
        Check if the store is reachable.

        Returns:
            True if the health endpoint answers 2xx, False otherwise
        """
        try:
            response = await self.session.get(HEALTH_ENDPOINT, timeout=5)
            return response.is_success
        except httpx.HTTPError as e:
            logger.warning(f"Ping failed: {e}")
            return False
