"""Manifest and checksum list formats."""

from game_updater.formats.checksum_list import (
    ChecksumList,
    ChecksumListEntry,
    ChecksumListParser,
)
from game_updater.formats.manifest import (
    GameManifest,
    ManifestSection,
    SectionMetadata,
    parse_manifest,
)

__all__ = [
    "ChecksumList",
    "ChecksumListEntry",
    "ChecksumListParser",
    "GameManifest",
    "ManifestSection",
    "SectionMetadata",
    "parse_manifest",
]
