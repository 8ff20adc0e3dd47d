"""Common interface of the binary format parsers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Generic, TypeVar

import structlog
from pydantic import BaseModel

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


class FormatParser(ABC, Generic[T]):
    """Two-way conversion between raw bytes and a pydantic model."""

    @abstractmethod
    def parse(self, data: bytes | BinaryIO) -> T:
        """Decode ``data``.

        Raises:
            ValueError: If the data is not in this format
        """
        ...

    @abstractmethod
    def build(self, obj: T) -> bytes:
        """Encode ``obj`` into bytes that ``parse`` accepts."""
        ...

    def parse_file(self, path: Path | str) -> T:
        """Decode the contents of ``path``.

        Raises:
            ValueError: If the file cannot be read or is not in this format
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.error("format_file_unreadable", path=str(path), error=str(e))
            raise ValueError(f"Cannot read {path}: {e}") from e
        return self.parse(data)
