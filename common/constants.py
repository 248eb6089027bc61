"""Project-wide constants (default chunk size, concurrency bounds, retry settings)."""

MIB: int = 1024 * 1024
GIB: int = 1024 * MIB

DEFAULT_CHUNK_SIZE_BYTES: int = 2 * MIB
DEFAULT_HASH_WINDOW_BYTES: int = 4 * MIB
DEFAULT_HASH_ALGORITHM: str = "md5"

DEFAULT_MAX_CONCURRENT_CHUNKS_PER_FILE: int = 6
DEFAULT_MAX_CONCURRENT_FILES: int = 3

DEFAULT_MAX_RETRY_COUNT: int = 3
DEFAULT_RETRY_DELAY_SECONDS: float = 1.0
DEFAULT_RETRY_BACKOFF_MULTIPLIER: float = 1.0

DEFAULT_MAX_FILE_SIZE_BYTES: int = 10 * GIB

DEFAULT_STORE_URL: str = "http://localhost:3001"
DEFAULT_REQUEST_TIMEOUT_SECONDS: int = 60

CHECK_ENDPOINT: str = "/check"
UPLOAD_ENDPOINT: str = "/upload"
MERGE_ENDPOINT: str = "/merge"
HEALTH_ENDPOINT: str = "/"

FILE_HASH_HEADER: str = "X-File-Hash"
CHUNK_INDEX_HEADER: str = "X-Chunk-Index"
