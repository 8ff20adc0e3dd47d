"""Core type definitions for game_updater."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from game_updater.core.version import Version, parse_version


class FileCheckStatus(StrEnum):
    """Outcome of verifying a single file."""
    MATCH = "match"
    MISMATCH = "mismatch"
    MISSING = "missing"
    ERROR = "error"
    CANCELLED = "cancelled"


class PatchDescriptor(BaseModel):
    """Incremental patch taking an installation from one version to the next."""
    from_version: Version = Field(..., description="Version the patch applies to")
    to_version: Version = Field(..., description="Version after applying the patch")
    payload_refs: tuple[str, ...] = Field(..., description="Archive part locators, in order")
    compressed_size: int = Field(..., ge=0, description="Size of each downloaded part")
    uncompressed_size: int = Field(..., ge=0, description="Total size of all parts")

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @field_validator("from_version", "to_version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> Version:
        """Accept version strings as well as parsed versions."""
        return parse_version(v)

    @property
    def label(self) -> str:
        return f"{self.from_version} -> {self.to_version}"


class ChecksumRecord(BaseModel):
    """Cached checksum of a file at a given modification time."""
    path: str = Field(..., description="File identity (path as checked)")
    checksum: int = Field(..., ge=0, le=0xFFFFFFFF, description="CRC32 of file contents")
    modified_at: int = Field(..., description="Modification time in epoch milliseconds")

    model_config = ConfigDict(frozen=True)

    def to_line(self) -> str:
        """Serialize as a ``path|modifiedAtMillis|checksumHex`` line."""
        return f"{self.path}|{self.modified_at}|{self.checksum:08x}"


class FileExpectation(BaseModel):
    """A file that must match a known checksum."""
    path: Path = Field(..., description="File to verify")
    expected_checksum: int = Field(..., ge=0, le=0xFFFFFFFF, description="Expected CRC32")

    model_config = ConfigDict(frozen=True)


class PatchEntry(BaseModel):
    """File extracted from a patch archive, awaiting application."""
    archive_key: str = Field(..., description="Path of the entry inside the archive")
    payload_path: Path = Field(..., description="Where the entry was extracted")

    model_config = ConfigDict(frozen=True)

    @property
    def is_delta(self) -> bool:
        """Whether the entry is a binary-diff payload rather than a full file.

        Delta payloads carry an extra extension starting with ``p-``.
        """
        name = self.archive_key.replace("\\", "/").rsplit("/", 1)[-1]
        if "." not in name:
            return False
        return name.rsplit(".", 1)[1].startswith("p-")

    @property
    def target_key(self) -> str:
        """Archive path of the installed file this entry updates."""
        key = self.archive_key.replace("\\", "/")
        if self.is_delta:
            return key.rsplit(".", 1)[0]
        return key
