"""Packed checksum lists.

A section's checksum list is the central directory of the zip archive the
section was packed into. Every central directory record carries the CRC32
of the file it describes, which is exactly what an installed copy of that
file must hash to.

Central directory record (little-endian, 46 bytes + variable fields):

- signature ``PK\\x01\\x02``
- version made by, version needed, flags, method, time, date (6 x uint16)
- crc32, compressed size, uncompressed size (3 x uint32)
- name length, extra length, comment length, disk start, internal attrs
  (5 x uint16)
- external attrs, local header offset (2 x uint32)
- name, extra, comment

The blob may hold a whole archive or only its central directory. When the
end-of-central-directory record is present its size field locates the
first record; otherwise parsing starts at the first record signature.
"""

from __future__ import annotations

import struct
from io import BytesIO
from pathlib import Path
from typing import BinaryIO

import structlog
from pydantic import BaseModel, Field

from game_updater.core.types import FileExpectation
from game_updater.formats.base import FormatParser

logger = structlog.get_logger()

CENTRAL_SIGNATURE = b"PK\x01\x02"
END_SIGNATURE = b"PK\x05\x06"
CENTRAL_HEADER = struct.Struct("<4sHHHHHHIIIHHHHHII")
END_HEADER = struct.Struct("<4sHHHHIIH")

FLAG_UTF8 = 0x0800
ATTR_DIRECTORY = 0x10
ATTR_ARCHIVE = 0x20


class ChecksumListEntry(BaseModel):
    """File listed in a checksum list."""

    name: str = Field(description="Path relative to the installation root")
    crc32: int = Field(ge=0, le=0xFFFFFFFF, description="CRC32 of the file")
    size: int = Field(default=0, ge=0, description="Uncompressed file size")


class ChecksumList(BaseModel):
    """Decoded checksum list."""

    entries: list[ChecksumListEntry] = Field(default_factory=list)

    def to_expectations(self, base_dir: Path) -> list[FileExpectation]:
        """Turn entries into expectations on files under ``base_dir``."""
        return [
            FileExpectation(path=base_dir / entry.name, expected_checksum=entry.crc32)
            for entry in self.entries
        ]


class ChecksumListParser(FormatParser[ChecksumList]):
    """Parser and builder for zip central directory checksum lists."""

    def parse(self, data: bytes | BinaryIO) -> ChecksumList:
        """Parse a checksum list.

        Args:
            data: Archive or central directory bytes, or a stream of them

        Returns:
            ChecksumList with every file record (directories skipped)

        Raises:
            ValueError: If no central directory record is found or a record
                is truncated
        """
        if not isinstance(data, (bytes, bytearray)):
            data = data.read()
        data = bytes(data)

        offset = self._find_start(data)
        if offset < 0:
            raise ValueError("No central directory record found")

        entries: list[ChecksumListEntry] = []
        while data[offset:offset + 4] == CENTRAL_SIGNATURE:
            if offset + CENTRAL_HEADER.size > len(data):
                raise ValueError(f"Truncated central directory record at offset {offset}")

            (
                _sig, _made_by, _needed, flags, _method, _time, _date,
                crc32, _csize, usize, name_len, extra_len, comment_len,
                _disk, _int_attrs, ext_attrs, _local_offset,
            ) = CENTRAL_HEADER.unpack_from(data, offset)

            name_start = offset + CENTRAL_HEADER.size
            name_end = name_start + name_len
            if name_end > len(data):
                raise ValueError(f"Truncated file name at offset {name_start}")

            name = self._decode_name(data[name_start:name_end], flags).replace("\\", "/")
            if not name.endswith("/") and not ext_attrs & ATTR_DIRECTORY:
                entries.append(ChecksumListEntry(name=name, crc32=crc32, size=usize))

            offset = name_end + extra_len + comment_len

        logger.debug("checksum_list_parsed", entries=len(entries))
        return ChecksumList(entries=entries)

    def _decode_name(self, raw: bytes, flags: int) -> str:
        # Many packers write UTF-8 names without setting the flag.
        if flags & FLAG_UTF8:
            return raw.decode("utf-8")
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw.decode("cp437")

    def _find_start(self, data: bytes) -> int:
        end = data.rfind(END_SIGNATURE)
        if end >= 0 and end + END_HEADER.size <= len(data):
            fields = END_HEADER.unpack_from(data, end)
            central_size = fields[5]
            start = end - central_size
            if start >= 0 and data[start:start + 4] == CENTRAL_SIGNATURE:
                return start
        return data.find(CENTRAL_SIGNATURE)

    def build(self, obj: ChecksumList) -> bytes:
        """Build a central directory followed by its end record.

        Args:
            obj: Checksum list

        Returns:
            Binary data accepted by ``parse``
        """
        body = BytesIO()
        for entry in obj.entries:
            name = entry.name.encode("utf-8")
            body.write(CENTRAL_HEADER.pack(
                CENTRAL_SIGNATURE, 20, 20, FLAG_UTF8, 0, 0, 0,
                entry.crc32, entry.size, entry.size, len(name), 0, 0,
                0, 0, ATTR_ARCHIVE, 0,
            ))
            body.write(name)

        central = body.getvalue()
        end = END_HEADER.pack(
            END_SIGNATURE, 0, 0, len(obj.entries), len(obj.entries),
            len(central), 0, 0,
        )
        return central + end
