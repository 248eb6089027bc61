"""Splits a file into contiguous fixed-size byte ranges."""

import math
from typing import List

from uploader.types import ChunkDescriptor


def chunk_count(size: int, chunk_size: int) -> int:
    """
    Number of chunks for a file; never zero so empty files still get merged.

    Args:
        size: File size in bytes
        chunk_size: Chunk size in bytes

    Returns:
        max(1, ceil(size / chunk_size))
    """
    if size < 0:
        raise ValueError(f"size cannot be negative: {size}")
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive: {chunk_size}")
    return max(1, math.ceil(size / chunk_size))


def plan_chunks(size: int, chunk_size: int) -> List[ChunkDescriptor]:
    """
    Partition [0, size) into ordered chunk descriptors.

    Args:
        size: File size in bytes
        chunk_size: Chunk size in bytes

    Returns:
        Descriptors covering [0, size) with no gaps or overlaps, in index order.
        A file of zero bytes yields a single empty chunk.

    Raises:
        ValueError: If size is negative or chunk_size is not positive
    """
    return [
        ChunkDescriptor(
            index=i,
            byte_start=i * chunk_size,
            byte_end=min((i + 1) * chunk_size, size),
        )
        for i in range(chunk_count(size, chunk_size))
    ]
