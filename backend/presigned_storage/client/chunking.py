"""
Chunk planning for multipart uploads.

Splits a byte length into contiguous, 1-based numbered parts. All parts
have the same size except the last one, which may be shorter.
"""
from dataclasses import dataclass
from typing import List

# S3-compatible stores reject parts smaller than 5 MiB (except the last)
# and larger than 5 GiB
MIN_CHUNK_SIZE = 5 * 1024 * 1024
MAX_CHUNK_SIZE = 5 * 1024 * 1024 * 1024
DEFAULT_CHUNK_SIZE = MIN_CHUNK_SIZE


@dataclass(frozen=True)
class ChunkRange:
    """Half-open byte range [start, end) of one part."""
    part_number: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


def _check(length: int, chunk_size: int) -> None:
    if length < 0:
        raise ValueError(f"length must be >= 0, got {length}")
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")


def count_chunks(length: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Number of parts plan_chunks would produce: ceil(length / chunk_size)."""
    _check(length, chunk_size)
    return -(-length // chunk_size)


def plan_chunks(length: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[ChunkRange]:
    """
    Partition [0, length) into ordered, gap-free ranges.

    Args:
        length: Total size in bytes
        chunk_size: Size of every part except possibly the last

    Returns:
        ChunkRange list, empty when length is 0

    Raises:
        ValueError: If length is negative or chunk_size is not positive
    """
    _check(length, chunk_size)
    return [
        ChunkRange(part_number=index + 1, start=start, end=min(start + chunk_size, length))
        for index, start in enumerate(range(0, length, chunk_size))
    ]
