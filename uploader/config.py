"""Configuration management for the upload client."""

import json
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from common.constants import (
    DEFAULT_CHUNK_SIZE_BYTES,
    DEFAULT_HASH_ALGORITHM,
    DEFAULT_HASH_WINDOW_BYTES,
    DEFAULT_MAX_CONCURRENT_CHUNKS_PER_FILE,
    DEFAULT_MAX_CONCURRENT_FILES,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    DEFAULT_MAX_RETRY_COUNT,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_STORE_URL,
)
from common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class UploadSettings:
    """
    Tunables consumed by the scheduler, orchestrator and queue manager.
    """
    chunk_size_bytes: int = DEFAULT_CHUNK_SIZE_BYTES
    max_concurrent_chunks_per_file: int = DEFAULT_MAX_CONCURRENT_CHUNKS_PER_FILE
    max_concurrent_files: int = DEFAULT_MAX_CONCURRENT_FILES
    max_retry_count: int = DEFAULT_MAX_RETRY_COUNT
    retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS
    retry_backoff_multiplier: float = DEFAULT_RETRY_BACKOFF_MULTIPLIER
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    hash_window_bytes: int = DEFAULT_HASH_WINDOW_BYTES
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM

    def __post_init__(self):
        if self.chunk_size_bytes <= 0:
            raise ValueError("chunk_size_bytes must be positive")
        if self.max_concurrent_chunks_per_file < 1:
            raise ValueError("max_concurrent_chunks_per_file must be at least 1")
        if self.max_concurrent_files < 1:
            raise ValueError("max_concurrent_files must be at least 1")
        if self.max_retry_count < 0:
            raise ValueError("max_retry_count cannot be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")
        if self.retry_backoff_multiplier < 1:
            raise ValueError("retry_backoff_multiplier must be at least 1")
        if self.max_file_size_bytes <= 0:
            raise ValueError("max_file_size_bytes must be positive")
        if self.hash_window_bytes <= 0:
            raise ValueError("hash_window_bytes must be positive")


class Config:
    """Manages uploader configuration stored in a JSON file."""

    DEFAULT_CONFIG = {
        "store_url": os.environ.get("UPLOADER_STORE_URL", DEFAULT_STORE_URL),
        "timeout": DEFAULT_REQUEST_TIMEOUT_SECONDS,
        "chunk_size_bytes": DEFAULT_CHUNK_SIZE_BYTES,
        "max_concurrent_chunks_per_file": DEFAULT_MAX_CONCURRENT_CHUNKS_PER_FILE,
        "max_concurrent_files": DEFAULT_MAX_CONCURRENT_FILES,
        "max_retry_count": DEFAULT_MAX_RETRY_COUNT,
        "retry_delay": DEFAULT_RETRY_DELAY_SECONDS,
        "retry_backoff_multiplier": DEFAULT_RETRY_BACKOFF_MULTIPLIER,
        "max_file_size_bytes": DEFAULT_MAX_FILE_SIZE_BYTES,
        "hash_window_bytes": DEFAULT_HASH_WINDOW_BYTES,
        "hash_algorithm": DEFAULT_HASH_ALGORITHM,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.redcloud/uploader.json)
        """
        self.config_path = Path(config_path)
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            import tempfile
            self.config_path = Path(tempfile.gettempdir()) / '.redcloud' / self.config_path.name
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        config = self.DEFAULT_CONFIG.copy()
        api_key = os.environ.get("UPLOADER_API_KEY")
        if api_key:
            config['api_key'] = api_key

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("config root must be an object")
                config.update(data)
                return config
            except (json.JSONDecodeError, ValueError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Unreadable config {self.config_path} ({e}), backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except IOError as copy_error:
                    logger.warning(f"Could not back up config: {copy_error}")
                return config
        else:
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(self.DEFAULT_CONFIG, f, indent=2)
            except IOError as e:
                logger.warning(f"Could not write default config to {self.config_path}: {e}")
            return config

    def get_api_key(self) -> Optional[str]:
        """
        Get stored API key.

        Returns:
            API key string or None if not set
        """
        return self.data.get('api_key')

    def get_base_url(self) -> str:
        """
        Get remote store base URL.

        Returns:
            Base URL string without trailing slash (e.g., "http://localhost:3001")
        """
        return str(self.data.get('store_url', DEFAULT_STORE_URL)).rstrip('/')

    def get_timeout(self) -> float:
        """
        Get request timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return float(self.data.get('timeout', DEFAULT_REQUEST_TIMEOUT_SECONDS))

    def get_upload_settings(self) -> UploadSettings:
        """
        Build the upload tunables from the loaded configuration.

        Returns:
            UploadSettings instance

        Raises:
            ValueError: If a value is missing its expected type or out of range
        """
        try:
            return UploadSettings(
                chunk_size_bytes=int(self.data['chunk_size_bytes']),
                max_concurrent_chunks_per_file=int(self.data['max_concurrent_chunks_per_file']),
                max_concurrent_files=int(self.data['max_concurrent_files']),
                max_retry_count=int(self.data['max_retry_count']),
                retry_delay=float(self.data['retry_delay']),
                retry_backoff_multiplier=float(self.data['retry_backoff_multiplier']),
                max_file_size_bytes=int(self.data['max_file_size_bytes']),
                hash_window_bytes=int(self.data['hash_window_bytes']),
                hash_algorithm=str(self.data['hash_algorithm']),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid upload configuration: {e}")
