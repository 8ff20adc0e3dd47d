"""Exception hierarchy for game_updater.

Recoverable conditions (cache persistence, single-file hashing failures) are
logged and folded into verification results by their callers. Patch
application errors abort the enclosing patch and the rest of the chain.
"""

from __future__ import annotations

from pathlib import Path


class UpdaterError(Exception):
    """Base exception for all updater failures."""


class MalformedVersion(UpdaterError, ValueError):
    """Raised when a version string cannot be parsed.

    Attributes:
        text: The rejected version string
    """

    def __init__(self, text: str, reason: str = "non-numeric component"):
        self.text = text
        super().__init__(f"Malformed version {text!r}: {reason}")


class ChecksumComputeError(UpdaterError):
    """Raised when a file cannot be read while computing its checksum."""

    def __init__(self, path: Path | str, reason: str):
        self.path = str(path)
        super().__init__(f"Cannot compute checksum of {path}: {reason}")


class CachePersistenceError(UpdaterError):
    """Raised by checksum stores when the backing file cannot be read or written."""


class ManifestError(UpdaterError):
    """Raised when manifest documents are missing required data."""


class DownloadError(UpdaterError):
    """Raised when a section or patch part cannot be downloaded.

    Attributes:
        url: URL that failed
    """

    def __init__(self, message: str, *, url: str | None = None):
        self.url = url
        super().__init__(message)


class ArchiveError(UpdaterError):
    """Raised when a downloaded archive cannot be opened or extracted."""


class PatchApplicationError(UpdaterError):
    """Base for failures that abort the patch being applied."""


class DeltaToolFailure(PatchApplicationError):
    """Raised when the external diff tool exits with a non-zero status.

    Attributes:
        path: Original file the delta targeted
        payload: Delta payload that was being applied
        exit_code: Exit status reported by the tool
    """

    def __init__(self, path: Path | str, payload: Path | str, exit_code: int):
        self.path = str(path)
        self.payload = str(payload)
        self.exit_code = exit_code
        super().__init__(
            f"Delta tool failed for {path} with exit code {exit_code}"
        )


class PatchApplicationIOError(PatchApplicationError):
    """Raised when moving or deleting a file during patch application fails.

    Attributes:
        path: File that could not be moved or deleted
    """

    def __init__(self, path: Path | str, reason: str):
        self.path = str(path)
        super().__init__(f"Cannot update {path}: {reason}")
