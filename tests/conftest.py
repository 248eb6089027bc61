"""Shared pytest fixtures for all tests."""

import pytest

from uploader.config import Config, UploadSettings
from uploader.files import BytesFile

from fake_store import FakeStore


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .redcloud directory
    """
    config_dir = tmp_path / '.redcloud'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'uploader.json')


@pytest.fixture
def settings():
    """
    Small chunks, no retry delay.

    Returns:
        UploadSettings with 1 KiB chunks, 3 chunk workers, 2 files, 3 retries
    """
    return UploadSettings(
        chunk_size_bytes=1024,
        max_concurrent_chunks_per_file=3,
        max_concurrent_files=2,
        max_retry_count=3,
        retry_delay=0,
        hash_window_bytes=700,
    )


@pytest.fixture
def store():
    """In-memory store recording every call."""
    return FakeStore()


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file of 3000 bytes (three 1 KiB chunks).

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample binary file
    """
    file_path = tmp_path / 'sample.bin'
    file_path.write_bytes(bytes(i % 251 for i in range(3000)))
    return file_path


@pytest.fixture
def make_file():
    """
    Factory for in-memory files with distinct content.

    Returns:
        Callable (name, size, seed=0) -> BytesFile
    """
    def factory(name: str, size: int, seed: int = 0) -> BytesFile:
        content = bytes((i * 7 + seed) % 256 for i in range(size))
        return BytesFile(name=name, content=content)
    return factory
