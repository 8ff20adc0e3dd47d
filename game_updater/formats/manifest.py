"""Update manifest documents.

The manifest is published as two JSON documents.

Main document::

    {
      "metadata": "<url of the metadata document>",
      "links": {
        "Base Game 1.0":               [split_size, ["<part url>", ...]],
        "DLC EP01 Get to Work 12":     [split_size, ["<part url>", ...]],
        "Patch 1.3.0.0 from 1.2.0.0":  [split_size, [["<part url>", ...]]]
      }
    }

Metadata document, keyed by the same section names::

    {"Base Game 1.0": [total_size, <unused>, "<base64 checksum list>"]}

Patch sections are named ``Patch <to> from <from>``. Other section names end
with a trailing token (size or revision) that is dropped for display.
"""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field

from game_updater.core.errors import MalformedVersion, ManifestError
from game_updater.core.types import FileExpectation, PatchDescriptor
from game_updater.core.version import Version
from game_updater.formats.checksum_list import ChecksumListParser

logger = structlog.get_logger()

PATCH_PREFIX = "Patch "


class ManifestSection(BaseModel):
    """Downloadable section listed in the main document."""

    name: str = Field(description="Section key in the manifest")
    split_size: int = Field(ge=0, description="Size of every part but the last")
    urls: list[str] = Field(default_factory=list, description="Part URLs, in order")

    @property
    def display_name(self) -> str:
        """Section name without its trailing token."""
        if " " not in self.name:
            return self.name
        return self.name[: self.name.rindex(" ")]

    @property
    def is_patch(self) -> bool:
        return is_patch_section(self.name)


class SectionMetadata(BaseModel):
    """Per-section entry of the metadata document."""

    total_size: int = Field(ge=0, description="Total size of all parts")
    checksum_blob: str | None = Field(
        default=None, description="Base64 zip central directory listing file CRCs"
    )


def is_patch_section(name: str) -> bool:
    """Check whether a section name denotes an incremental patch."""
    return name.startswith(PATCH_PREFIX)


def parse_patch_section_name(name: str) -> tuple[Version, Version]:
    """Parse ``Patch <to> from <from>`` into (from_version, to_version).

    Raises:
        ManifestError: If the name does not follow the pattern
    """
    words = name.split(" ")
    if len(words) != 4 or words[0] != "Patch" or words[2] != "from":
        raise ManifestError(f"Unrecognised patch section name: {name!r}")
    try:
        return Version.parse(words[3]), Version.parse(words[1])
    except MalformedVersion as e:
        raise ManifestError(f"Invalid version in patch section {name!r}: {e}") from e


def _parse_link(name: str, value: Any) -> ManifestSection:
    if not isinstance(value, list) or len(value) < 2:
        raise ManifestError(f"Link entry {name!r} must be [split_size, urls]")

    split_size, urls = value[0], value[1]
    if isinstance(urls, list) and urls and isinstance(urls[0], list):
        urls = urls[0]
    if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
        raise ManifestError(f"Link entry {name!r} has no URL list")
    if not isinstance(split_size, int):
        raise ManifestError(f"Link entry {name!r} has a non-integer split size")

    return ManifestSection(name=name, split_size=split_size, urls=list(urls))


def _parse_metadata(name: str, value: Any) -> SectionMetadata:
    if not isinstance(value, list) or not value or not isinstance(value[0], int):
        raise ManifestError(f"Metadata entry {name!r} must start with the total size")
    blob = value[2] if len(value) > 2 and isinstance(value[2], str) else None
    return SectionMetadata(total_size=value[0], checksum_blob=blob)


class GameManifest(BaseModel):
    """Parsed main and metadata documents."""

    metadata_url: str | None = Field(default=None, description="Metadata document URL")
    sections: dict[str, ManifestSection] = Field(default_factory=dict)
    metadata: dict[str, SectionMetadata] = Field(default_factory=dict)

    def section(self, prefix: str) -> ManifestSection:
        """Return the first section whose name starts with ``prefix``.

        Raises:
            ManifestError: If no section matches
        """
        for name, section in self.sections.items():
            if name.startswith(prefix):
                return section
        raise ManifestError(f"No manifest section starting with {prefix!r}")

    def sections_matching(self, prefix: str) -> list[ManifestSection]:
        return [s for name, s in self.sections.items() if name.startswith(prefix)]

    def section_metadata(self, name: str) -> SectionMetadata:
        """Return the metadata of section ``name``.

        Raises:
            ManifestError: If the metadata document has no entry for it
        """
        try:
            return self.metadata[name]
        except KeyError:
            raise ManifestError(f"No metadata for section {name!r}") from None

    def patch_descriptors(self) -> list[PatchDescriptor]:
        """Build a descriptor for every patch section.

        Patch sections with unparseable names are skipped with a warning.

        Raises:
            ManifestError: If a patch section has no metadata entry
        """
        descriptors: list[PatchDescriptor] = []
        for name, section in self.sections.items():
            if not section.is_patch:
                continue
            try:
                from_version, to_version = parse_patch_section_name(name)
            except ManifestError as e:
                logger.warning("patch_section_skipped", section=name, error=str(e))
                continue

            descriptors.append(
                PatchDescriptor(
                    from_version=from_version,
                    to_version=to_version,
                    payload_refs=tuple(section.urls),
                    compressed_size=section.split_size,
                    uncompressed_size=self.section_metadata(name).total_size,
                )
            )
        return descriptors

    def expected_files(self, name: str, base_dir: Path) -> list[FileExpectation]:
        """Decode the checksum list of section ``name``.

        Args:
            name: Section name
            base_dir: Installation root the listed paths are relative to

        Raises:
            ManifestError: If the section has no usable checksum list
        """
        blob = self.section_metadata(name).checksum_blob
        if not blob:
            raise ManifestError(f"Section {name!r} has no checksum list")

        try:
            data = base64.b64decode(blob, validate=True)
            checksum_list = ChecksumListParser().parse(data)
        except (binascii.Error, ValueError) as e:
            raise ManifestError(f"Invalid checksum list for {name!r}: {e}") from e

        return checksum_list.to_expectations(base_dir)


def parse_manifest(main: dict[str, Any], metadata: dict[str, Any]) -> GameManifest:
    """Build a GameManifest from the decoded JSON documents.

    Raises:
        ManifestError: If a required key is missing or malformed
    """
    links = main.get("links")
    if not isinstance(links, dict):
        raise ManifestError("Main manifest has no 'links' object")

    sections = {name: _parse_link(name, value) for name, value in links.items()}

    section_metadata: dict[str, SectionMetadata] = {}
    for name, value in metadata.items():
        try:
            section_metadata[name] = _parse_metadata(name, value)
        except ManifestError as e:
            logger.debug("metadata_entry_skipped", section=name, error=str(e))

    metadata_url = main.get("metadata")
    manifest = GameManifest(
        metadata_url=metadata_url if isinstance(metadata_url, str) else None,
        sections=sections,
        metadata=section_metadata,
    )
    logger.debug("manifest_parsed", sections=len(sections), metadata=len(section_metadata))
    return manifest
