"""Game Updater - incremental updates for installed games.

Brings an installed game up to the latest published version by applying a
chain of incremental patches (binary deltas decoded with xdelta3 plus
verbatim replacements), and verifies installed content against CRC32
checksum lists with a persistent checksum cache.

Key modules:
- core: Update engine (versions, patch chains, integrity, delta application)
- formats: Manifest and checksum list parsers
- commands: CLI command implementations
"""

__version__ = "0.1.0"
__author__ = "Game Updater Team"

# Re-export commonly used types and functions
from game_updater.core.types import (
    ChecksumRecord,
    FileCheckStatus,
    FileExpectation,
    PatchDescriptor,
)
from game_updater.core.version import Version, compare_versions

__all__ = [
    "__version__",
    "__author__",
    "ChecksumRecord",
    "FileCheckStatus",
    "FileExpectation",
    "PatchDescriptor",
    "Version",
    "compare_versions",
]
