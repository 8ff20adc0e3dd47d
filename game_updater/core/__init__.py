"""Core functionality for game_updater.

This module provides the incremental update engine:
- Version parsing and comparison
- Patch chain resolution
- Checksum cache and integrity verification
- Delta patch application
"""

from game_updater.core.checksum_cache import ChecksumCache
from game_updater.core.delta import ChainResult, DeltaApplier, XDelta3Tool
from game_updater.core.errors import (
    DeltaToolFailure,
    MalformedVersion,
    PatchApplicationIOError,
    UpdaterError,
)
from game_updater.core.integrity import IntegrityVerifier
from game_updater.core.patch_chain import PatchResolution, resolve_patch_chain
from game_updater.core.version import Version, compare_versions, parse_version

__all__ = [
    # Engine
    "ChecksumCache",
    "IntegrityVerifier",
    "DeltaApplier",
    "ChainResult",
    "XDelta3Tool",
    "PatchResolution",
    "resolve_patch_chain",
    # Versions
    "Version",
    "compare_versions",
    "parse_version",
    # Errors
    "UpdaterError",
    "MalformedVersion",
    "DeltaToolFailure",
    "PatchApplicationIOError",
]
