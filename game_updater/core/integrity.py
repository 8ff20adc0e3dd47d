"""Installed file integrity verification.

Files are verified against expected CRC32 checksums. Checksums already
recorded in the ChecksumCache for the file's current modification time are
reused; everything else is hashed by streaming the file in fixed windows.

All checks of a batch run concurrently. The first failed check trips a
shared cancellation token: checks that are still hashing stop at the next
window boundary and report CANCELLED, since the batch has already failed.
"""

from __future__ import annotations

import asyncio
import threading
import zlib
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from game_updater.core.checksum_cache import ChecksumCache
from game_updater.core.errors import ChecksumComputeError
from game_updater.core.types import FileCheckStatus, FileExpectation
from game_updater.core.utils import chunked_read, format_checksum, modified_millis

logger = structlog.get_logger()

DEFAULT_CHUNK_SIZE = 1024 * 1024


class CancellationToken:
    """Cancellation flag shared by every check of one verification batch."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class FileCheckResult:
    """Outcome of verifying a single file.

    Attributes:
        path: File that was checked
        status: Check outcome
        expected: Expected checksum
        actual: Actual checksum, None when it was not obtained
        from_cache: True if the actual checksum came from the cache
    """

    path: Path
    status: FileCheckStatus
    expected: int
    actual: int | None = None
    from_cache: bool = False

    @property
    def matched(self) -> bool:
        return self.status is FileCheckStatus.MATCH


def _result_list() -> list[FileCheckResult]:
    return []


@dataclass
class VerificationReport:
    """Per-file results of a verification batch."""

    results: list[FileCheckResult] = field(default_factory=_result_list)

    @property
    def verified(self) -> bool:
        """True iff every file matched its expected checksum."""
        return all(result.matched for result in self.results)

    @property
    def failures(self) -> list[FileCheckResult]:
        """Checks that failed on their own account (cancelled ones excluded)."""
        return [
            r for r in self.results
            if r.status not in (FileCheckStatus.MATCH, FileCheckStatus.CANCELLED)
        ]

    def count(self, status: FileCheckStatus) -> int:
        return sum(1 for r in self.results if r.status is status)


def compute_file_crc32(
    path: Path,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    token: CancellationToken | None = None,
) -> int | None:
    """Stream a file through CRC32.

    Args:
        path: File to hash
        chunk_size: Window size in bytes
        token: Polled between windows; hashing stops once it is cancelled

    Returns:
        Unsigned CRC32, or None if the token was cancelled mid-way

    Raises:
        ChecksumComputeError: If the file cannot be read
    """
    crc = 0
    try:
        with open(path, "rb") as f:
            for chunk in chunked_read(f, chunk_size):
                if token is not None and token.cancelled:
                    return None
                crc = zlib.crc32(chunk, crc)
    except OSError as e:
        raise ChecksumComputeError(path, str(e)) from e
    return crc & 0xFFFFFFFF


class IntegrityVerifier:
    """Verifies batches of files against expected checksums.

    Args:
        cache: Checksum cache consulted before hashing and updated after
        chunk_size: Hashing window size in bytes
    """

    def __init__(self, cache: ChecksumCache, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.cache = cache
        self.chunk_size = chunk_size

    def check_file(
        self, expectation: FileExpectation, token: CancellationToken
    ) -> FileCheckResult:
        """Check one file, tripping ``token`` if it does not match.

        Runs synchronously; ``verify`` dispatches it to worker threads.
        """
        path = expectation.path
        expected = expectation.expected_checksum

        if token.cancelled:
            return FileCheckResult(path, FileCheckStatus.CANCELLED, expected)

        result = self._check(path, expected, token)
        if result.status not in (FileCheckStatus.MATCH, FileCheckStatus.CANCELLED):
            token.cancel()
        return result

    def _check(
        self, path: Path, expected: int, token: CancellationToken
    ) -> FileCheckResult:
        if not path.is_file():
            logger.info("file_missing", path=str(path))
            return FileCheckResult(path, FileCheckStatus.MISSING, expected)

        try:
            modified_at = modified_millis(path)
        except OSError as e:
            logger.warning("file_stat_failed", path=str(path), error=str(e))
            return FileCheckResult(path, FileCheckStatus.ERROR, expected)

        cached = self.cache.lookup(path)
        if cached is not None and cached.modified_at == modified_at:
            return self._compare(path, expected, cached.checksum, from_cache=True)

        try:
            actual = compute_file_crc32(path, self.chunk_size, token)
        except ChecksumComputeError as e:
            logger.warning("checksum_compute_failed", path=str(path), error=str(e))
            return FileCheckResult(path, FileCheckStatus.ERROR, expected)

        if actual is None:
            return FileCheckResult(path, FileCheckStatus.CANCELLED, expected)

        # The cache records what is on disk, whether or not it matches.
        self.cache.record(path, actual, modified_at)
        return self._compare(path, expected, actual, from_cache=False)

    def _compare(
        self, path: Path, expected: int, actual: int, *, from_cache: bool
    ) -> FileCheckResult:
        if actual == expected:
            return FileCheckResult(path, FileCheckStatus.MATCH, expected, actual, from_cache)

        logger.warning(
            "checksum_mismatch",
            path=str(path),
            expected=format_checksum(expected),
            actual=format_checksum(actual),
            cached=from_cache,
        )
        return FileCheckResult(path, FileCheckStatus.MISMATCH, expected, actual, from_cache)

    async def verify_detailed(
        self, expectations: Iterable[FileExpectation]
    ) -> VerificationReport:
        """Check every file concurrently and collect per-file results.

        Args:
            expectations: Files and their expected checksums

        Returns:
            VerificationReport in the order of ``expectations``
        """
        token = CancellationToken()
        batch = list(expectations)

        results = await asyncio.gather(
            *(asyncio.to_thread(self.check_file, exp, token) for exp in batch)
        )
        report = VerificationReport(results=list(results))

        logger.debug(
            "verification_complete",
            files=len(batch),
            verified=report.verified,
            cancelled=report.count(FileCheckStatus.CANCELLED),
        )
        return report

    async def verify(self, expectations: Iterable[FileExpectation]) -> bool:
        """Return True iff every file matches its expected checksum."""
        report = await self.verify_detailed(expectations)
        return report.verified
