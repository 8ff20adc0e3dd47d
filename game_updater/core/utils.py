"""Shared utilities for game_updater."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO


def chunked_read(
    stream: BinaryIO,
    chunk_size: int = 1024 * 1024
) -> Iterator[bytes]:
    """Read stream in chunks.

    Args:
        stream: Binary stream to read from
        chunk_size: Size of each chunk in bytes

    Yields:
        Data chunks as bytes

    Raises:
        ValueError: If chunk_size is not positive

    Example:
        >>> import io
        >>> list(chunked_read(io.BytesIO(b"hello world"), chunk_size=5))
        [b'hello', b' worl', b'd']
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        yield chunk


def format_checksum(checksum: int) -> str:
    """Format a 32-bit checksum as 8 uppercase hex digits."""
    return f"{checksum:08X}"


def modified_millis(path: Path) -> int:
    """Return the modification time of ``path`` in epoch milliseconds.

    Raises:
        OSError: If the file cannot be stat'ed
    """
    return path.stat().st_mtime_ns // 1_000_000


def format_size(size: int) -> str:
    """Format byte size as human-readable string.

    Example:
        >>> format_size(1536)
        '1.5 KB'
    """
    if size < 0:
        return "0 B"

    size_float = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_float < 1024.0:
            if unit == "B":
                return f"{int(size_float)} {unit}"
            return f"{size_float:.1f} {unit}"
        size_float /= 1024.0
    return f"{size_float:.1f} PB"
